import os

from celery import Celery

BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://redis:6379/0")
RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", BROKER_URL)
TASK_TIME_LIMIT = int(os.environ.get("CELERY_TASK_TIME_LIMIT", "120"))
TASK_SOFT_TIME_LIMIT = int(os.environ.get("CELERY_TASK_SOFT_TIME_LIMIT", "110"))
SWEEP_INTERVAL_S = int(os.environ.get("STALE_SWEEP_INTERVAL_S", "300"))
PURGE_INTERVAL_S = int(os.environ.get("JOB_PURGE_INTERVAL_S", "3600"))

celery_app = Celery(
    "studyhub",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
)

celery_app.conf.update(
    # Maintenance is cheap and periodic; one queue is enough.
    task_routes={"studyhub.interfaces.worker.*": {"queue": "maintenance"}},
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    task_time_limit=TASK_TIME_LIMIT,
    task_soft_time_limit=TASK_SOFT_TIME_LIMIT,
    beat_schedule={
        "sweep-stale-analysis-jobs": {
            "task": "studyhub.interfaces.worker.sweep_stale_jobs",
            "schedule": float(SWEEP_INTERVAL_S),
        },
        "purge-finished-analysis-jobs": {
            "task": "studyhub.interfaces.worker.purge_finished_jobs",
            "schedule": float(PURGE_INTERVAL_S),
        },
    },
)

celery_app.autodiscover_tasks(["studyhub.interfaces.worker"])
