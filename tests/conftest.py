import copy
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure apps/api is on path for imports inside the API package (e.g., `studyhub.interfaces.api.schemas`).
ROOT = Path(__file__).resolve().parents[1]
API_PATH = ROOT / "apps" / "api"
if str(API_PATH) not in sys.path:
    sys.path.insert(0, str(API_PATH))

from studyhub.core.domain.analysis import (  # noqa: E402
    ACTIVE_STATUSES,
    AnalysisJob,
    Concept,
    JobStatus,
    PipelineResult,
    ResourceSummary,
)


class InMemoryJobRepository:
    """Mirrors the SQL guards of JobRepository over a dict."""

    def __init__(self):
        self.jobs = {}
        self.progress_log = {}
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._seq = 0

    def _tick(self):
        self.now += timedelta(seconds=1)
        return self.now

    def _copy(self, job):
        return copy.deepcopy(job) if job else None

    def create_job(self, resource_id, file_path=None, file_type=None):
        self._seq += 1
        now = self._tick()
        job = AnalysisJob(
            id=f"job-{self._seq}",
            resource_id=resource_id,
            status=JobStatus.PENDING,
            progress=0,
            results=None,
            error_message=None,
            created_at=now,
            updated_at=now,
            file_path=file_path,
            file_type=file_type,
        )
        self.jobs[job.id] = job
        self.progress_log[job.id] = [0]
        return self._copy(job)

    def get_job(self, job_id):
        return self._copy(self.jobs.get(job_id))

    def find_active_job(self, resource_id):
        active = [j for j in self.jobs.values() if j.resource_id == resource_id and j.status in ACTIVE_STATUSES]
        return self._copy(max(active, key=lambda j: j.created_at)) if active else None

    def _set_progress(self, job, progress):
        job.progress = max(job.progress, progress)
        job.updated_at = self._tick()
        self.progress_log[job.id].append(job.progress)

    def mark_processing(self, job_id, progress):
        job = self.jobs.get(job_id)
        if job is None or job.status is not JobStatus.PENDING:
            return None
        job.status = JobStatus.PROCESSING
        job.started_at = self.now
        self._set_progress(job, progress)
        return self._copy(job)

    def update_progress(self, job_id, progress):
        job = self.jobs.get(job_id)
        if job is None or job.status is not JobStatus.PROCESSING:
            return None
        self._set_progress(job, progress)
        return self._copy(job)

    def mark_completed(self, job_id, results):
        job = self.jobs.get(job_id)
        if job is None or job.status is not JobStatus.PROCESSING:
            return None
        job.status = JobStatus.COMPLETED
        job.results = PipelineResult.from_payload(results)
        job.completed_at = self.now
        self._set_progress(job, 100)
        return self._copy(job)

    def mark_failed(self, job_id, error_message):
        job = self.jobs.get(job_id)
        if job is None or job.status not in ACTIVE_STATUSES:
            return None
        job.status = JobStatus.FAILED
        job.error_message = error_message
        job.completed_at = job.updated_at = self._tick()
        return self._copy(job)

    def list_jobs(self, limit=10, status=None):
        jobs = [j for j in self.jobs.values() if status is None or j.status is status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [self._copy(j) for j in jobs[:limit]]

    def count_by_status(self):
        counts = {status: 0 for status in JobStatus}
        for job in self.jobs.values():
            counts[job.status] += 1
        return counts

    def fail_stale_jobs(self, max_age_seconds, message):
        cutoff = self.now - timedelta(seconds=max_age_seconds)
        failed = []
        for job in self.jobs.values():
            if job.status in ACTIVE_STATUSES and job.updated_at < cutoff:
                job.status = JobStatus.FAILED
                job.error_message = message
                job.completed_at = self.now
                failed.append(job.id)
        return failed

    def purge_finished(self, older_than_days):
        cutoff = self.now - timedelta(days=older_than_days)
        doomed = [j.id for j in self.jobs.values() if j.status.is_terminal and j.updated_at < cutoff]
        for job_id in doomed:
            del self.jobs[job_id]
        return len(doomed)


class InMemoryContentRepository:
    def __init__(self):
        self.resources = {}
        self.questions = []
        self.concepts = {}
        self.replace_calls = 0
        self._question_seq = 0
        self.create_calls = 0

    def add_resource(self, resource_id, title="Past Paper", rag_content=None, course_id=None, description=None):
        self.resources[resource_id] = {
            "summary": ResourceSummary(id=resource_id, title=title, rag_content=rag_content),
            "course_id": course_id,
            "description": description,
        }

    def get_resource(self, resource_id):
        entry = self.resources.get(resource_id)
        return copy.deepcopy(entry["summary"]) if entry else None

    def set_rag_content(self, resource_id, excerpt):
        self.resources.setdefault(
            resource_id,
            {"summary": ResourceSummary(id=resource_id, title=""), "course_id": None, "description": None},
        )
        self.resources[resource_id]["summary"].rag_content = excerpt

    def set_processing_status(self, resource_id, status):
        entry = self.resources.get(resource_id)
        if entry:
            entry["summary"].ai_processing_status = status

    def list_rag_documents(self, limit=50, course_id=None):
        rows = []
        for resource_id, entry in self.resources.items():
            summary = entry["summary"]
            if summary.rag_content is None:
                continue
            if course_id is not None and entry["course_id"] != course_id:
                continue
            rows.append(
                {
                    "id": resource_id,
                    "title": summary.title,
                    "description": entry["description"],
                    "rag_content": summary.rag_content,
                }
            )
        return rows[:limit]

    def replace_questions(self, resource_id, questions):
        self.replace_calls += 1
        self.questions = [q for q in self.questions if q.resource_id != resource_id]
        for question in questions:
            stored = copy.deepcopy(question)
            stored.resource_id = resource_id
            self._question_seq += 1
            stored.id = self._question_seq
            self.questions.append(stored)
        return len(questions)

    def list_questions(self, resource_id):
        return [copy.deepcopy(q) for q in self.questions if q.resource_id == resource_id]

    def find_concept(self, name):
        return self.concepts.get(name)

    def get_or_create_concept(self, candidate):
        if candidate.name not in self.concepts:
            self.create_calls += 1
            self.concepts[candidate.name] = Concept(
                id=len(self.concepts) + 1,
                name=candidate.name,
                description=candidate.description,
                category=candidate.category,
            )
        return self.concepts[candidate.name]

    def list_concepts(self, limit=100):
        return sorted(self.concepts.values(), key=lambda c: c.name)[:limit]


@pytest.fixture
def job_repo():
    return InMemoryJobRepository()


@pytest.fixture
def content_repo():
    return InMemoryContentRepository()
