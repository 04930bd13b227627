import logging
from typing import List, Optional

from studyhub.application.analysis_service import stale_message
from studyhub.core.config import Settings
from studyhub.infrastructure.db import connection as db
from studyhub.infrastructure.db.job_repository import JobRepository
from studyhub.infrastructure.messaging.celery_app import celery_app

logger = logging.getLogger(__name__)


def _job_repository() -> JobRepository:
    try:
        pool = db.get_pool()
    except RuntimeError:
        settings = Settings.from_env()
        pool = db.init_pool(settings.database_url, min_size=settings.db_pool_min, max_size=settings.db_pool_max)
    return JobRepository(pool)


@celery_app.task(name="studyhub.interfaces.worker.sweep_stale_jobs")
def sweep_stale_jobs(max_age_seconds: Optional[int] = None) -> List[str]:
    """Fail jobs whose background run stopped reporting progress."""
    max_age = max_age_seconds or Settings.from_env().stale_job_seconds
    failed = _job_repository().fail_stale_jobs(max_age, stale_message(max_age))
    if failed:
        logger.warning("Failed %s stale analysis jobs", len(failed))
    return failed


@celery_app.task(name="studyhub.interfaces.worker.purge_finished_jobs")
def purge_finished_jobs(older_than_days: Optional[int] = None) -> int:
    days = older_than_days or Settings.from_env().job_retention_days
    deleted = _job_repository().purge_finished(days)
    logger.info("Purged %s finished analysis jobs older than %s days", deleted, days)
    return deleted
