import uuid
from typing import Any, Dict, List, Optional

from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from studyhub.core.domain.analysis import AnalysisJob, JobStatus, PipelineResult


TABLE_DDL = """
CREATE TABLE IF NOT EXISTS analysis_jobs (
    id TEXT PRIMARY KEY,
    resource_id INTEGER NOT NULL,
    file_path TEXT,
    file_type TEXT,
    status TEXT NOT NULL DEFAULT 'PENDING',
    progress INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100),
    results JSONB NOT NULL DEFAULT '{}'::jsonb,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_analysis_jobs_resource_status ON analysis_jobs(resource_id, status);
CREATE INDEX IF NOT EXISTS idx_analysis_jobs_status_updated ON analysis_jobs(status, updated_at);
"""

COLUMNS = (
    "id, resource_id, file_path, file_type, status, progress, results, error_message, "
    "created_at, started_at, completed_at, updated_at"
)

ACTIVE = ("PENDING", "PROCESSING")
TERMINAL = ("COMPLETED", "FAILED")


def _row_to_job(row) -> AnalysisJob:
    getter = row.get if hasattr(row, "get") else lambda k: row[k]
    return AnalysisJob(
        id=getter("id"),
        resource_id=int(getter("resource_id")),
        file_path=getter("file_path"),
        file_type=getter("file_type"),
        status=JobStatus.parse(getter("status")),
        progress=int(getter("progress")),
        results=PipelineResult.from_payload(getter("results")),
        error_message=getter("error_message"),
        created_at=getter("created_at"),
        updated_at=getter("updated_at"),
        started_at=getter("started_at"),
        completed_at=getter("completed_at"),
    )


class JobRepository:
    """Postgres store for analysis jobs.

    Every write is guarded in SQL so that terminal rows are never touched
    again and progress never moves backwards, whatever the caller does.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def ensure_table(self) -> None:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(TABLE_DDL)
            conn.commit()

    def _fetch_one(self, query: str, params: Dict[str, Any]) -> Optional[AnalysisJob]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
            conn.commit()
        return _row_to_job(row) if row else None

    def create_job(
        self, resource_id: int, file_path: Optional[str] = None, file_type: Optional[str] = None
    ) -> AnalysisJob:
        job = self._fetch_one(
            f"""
            INSERT INTO analysis_jobs (id, resource_id, file_path, file_type, status, progress, results)
            VALUES (%(id)s, %(resource_id)s, %(file_path)s, %(file_type)s, 'PENDING', 0, %(results)s)
            RETURNING {COLUMNS}
            """,
            {
                "id": str(uuid.uuid4()),
                "resource_id": resource_id,
                "file_path": file_path,
                "file_type": file_type,
                "results": Json({}),
            },
        )
        if job is None:
            raise RuntimeError("Job insert returned no row")
        return job

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        return self._fetch_one(
            f"SELECT {COLUMNS} FROM analysis_jobs WHERE id = %(id)s",
            {"id": job_id},
        )

    def find_active_job(self, resource_id: int) -> Optional[AnalysisJob]:
        return self._fetch_one(
            f"""
            SELECT {COLUMNS} FROM analysis_jobs
            WHERE resource_id = %(resource_id)s AND status = ANY(%(active)s)
            ORDER BY created_at DESC
            LIMIT 1
            """,
            {"resource_id": resource_id, "active": list(ACTIVE)},
        )

    def mark_processing(self, job_id: str, progress: int) -> Optional[AnalysisJob]:
        return self._fetch_one(
            f"""
            UPDATE analysis_jobs
            SET status = 'PROCESSING',
                progress = GREATEST(progress, %(progress)s),
                started_at = now(),
                updated_at = now()
            WHERE id = %(id)s AND status = 'PENDING'
            RETURNING {COLUMNS}
            """,
            {"id": job_id, "progress": progress},
        )

    def update_progress(self, job_id: str, progress: int) -> Optional[AnalysisJob]:
        return self._fetch_one(
            f"""
            UPDATE analysis_jobs
            SET progress = GREATEST(progress, %(progress)s), updated_at = now()
            WHERE id = %(id)s AND status = 'PROCESSING'
            RETURNING {COLUMNS}
            """,
            {"id": job_id, "progress": progress},
        )

    def mark_completed(self, job_id: str, results: Dict[str, Any]) -> Optional[AnalysisJob]:
        return self._fetch_one(
            f"""
            UPDATE analysis_jobs
            SET status = 'COMPLETED',
                progress = 100,
                results = %(results)s,
                completed_at = now(),
                updated_at = now()
            WHERE id = %(id)s AND status = 'PROCESSING'
            RETURNING {COLUMNS}
            """,
            {"id": job_id, "results": Json(results)},
        )

    def mark_failed(self, job_id: str, error_message: str) -> Optional[AnalysisJob]:
        return self._fetch_one(
            f"""
            UPDATE analysis_jobs
            SET status = 'FAILED',
                error_message = %(error)s,
                completed_at = now(),
                updated_at = now()
            WHERE id = %(id)s AND status = ANY(%(active)s)
            RETURNING {COLUMNS}
            """,
            {"id": job_id, "error": error_message, "active": list(ACTIVE)},
        )

    def list_jobs(self, limit: int = 10, status: Optional[JobStatus] = None) -> List[AnalysisJob]:
        params: Dict[str, Any] = {"limit": limit}
        where_sql = ""
        if status is not None:
            where_sql = "WHERE status = %(status)s"
            params["status"] = status.value
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {COLUMNS} FROM analysis_jobs {where_sql} ORDER BY created_at DESC LIMIT %(limit)s",
                params,
            )
            rows = cur.fetchall()
        return [_row_to_job(row) for row in rows]

    def count_by_status(self) -> Dict[JobStatus, int]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute("SELECT status, count(*) AS total FROM analysis_jobs GROUP BY status")
            rows = cur.fetchall()
        counts = {status: 0 for status in JobStatus}
        for row in rows:
            counts[JobStatus.parse(row["status"])] = int(row["total"])
        return counts

    def fail_stale_jobs(self, max_age_seconds: int, message: str) -> List[str]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                UPDATE analysis_jobs
                SET status = 'FAILED',
                    error_message = %(message)s,
                    completed_at = now(),
                    updated_at = now()
                WHERE status = ANY(%(active)s)
                  AND updated_at < now() - make_interval(secs => %(max_age)s)
                RETURNING id
                """,
                {"message": message, "active": list(ACTIVE), "max_age": max_age_seconds},
            )
            rows = cur.fetchall()
            conn.commit()
        return [row["id"] for row in rows]

    def purge_finished(self, older_than_days: int) -> int:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                DELETE FROM analysis_jobs
                WHERE status = ANY(%(terminal)s)
                  AND updated_at < now() - make_interval(days => %(days)s)
                """,
                {"terminal": list(TERMINAL), "days": older_than_days},
            )
            deleted = cur.rowcount
            conn.commit()
        return deleted
