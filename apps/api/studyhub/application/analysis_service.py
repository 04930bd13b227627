import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Set

from studyhub.application.concept_tagger import ConceptTagger
from studyhub.application.rag_index import RagIndex
from studyhub.core.domain.analysis import (
    AnalysisJob,
    AnalysisRequest,
    JobStatus,
    JobView,
    PipelineResult,
    SegmentationResult,
    SubmitResult,
)
from studyhub.core.domain.errors import JobNotFoundError, JobStateError
from studyhub.infrastructure.db.content_repository import ContentRepository
from studyhub.infrastructure.db.job_repository import JobRepository
from studyhub.infrastructure.extraction.extractor import TextExtractor

logger = logging.getLogger(__name__)

# Progress checkpoints, reached after the named stage finishes.
PROGRESS_STARTED = 10
PROGRESS_EXTRACTED = 40
PROGRESS_SEGMENTED = 60
PROGRESS_TAGGED = 80

DISABLED_MESSAGE = "AI analysis not enabled for this resource"
STARTED_MESSAGE = "Question extraction started"
REUSED_MESSAGE = "Question extraction already in progress"


class Segmenter(Protocol):
    def segment(self, text: str) -> SegmentationResult: ...


def stale_message(max_age_seconds: int) -> str:
    return f"Job abandoned: no progress for {max_age_seconds} seconds"


class _JobReleased(Exception):
    """The job row is no longer PROCESSING, so this run must not write results."""


class AnalysisService:
    """
    Runs the document analysis pipeline as background asyncio tasks and keeps
    every job's lifecycle in the job table.

    Stages: extract text (40) -> segment and store questions (60) -> tag
    concepts (80) -> refresh the RAG excerpt (100). The first stage error
    fails the job; nothing is retried automatically.
    """

    def __init__(
        self,
        jobs: JobRepository,
        content: ContentRepository,
        extractor: TextExtractor,
        segmenter: Segmenter,
        tagger: ConceptTagger,
        rag: RagIndex,
        *,
        stale_job_seconds: int = 900,
        job_retention_days: int = 7,
    ):
        self.jobs = jobs
        self.content = content
        self.extractor = extractor
        self.segmenter = segmenter
        self.tagger = tagger
        self.rag = rag
        self.stale_job_seconds = stale_job_seconds
        self.job_retention_days = job_retention_days
        self._tasks: Set[asyncio.Task] = set()

    # ---------- submission ----------

    async def submit(self, request: AnalysisRequest, reuse_active: bool = True) -> SubmitResult:
        if not request.enable_analysis:
            return SubmitResult(accepted=False, message=DISABLED_MESSAGE)

        if reuse_active:
            active = self.jobs.find_active_job(request.resource_id)
            if active is not None:
                logger.info("Reusing active job %s for resource %s", active.id, request.resource_id)
                return SubmitResult(
                    accepted=True,
                    message=REUSED_MESSAGE,
                    job_id=active.id,
                    status=active.status,
                    progress=active.progress,
                    reused=True,
                )

        job = self.jobs.create_job(request.resource_id, request.file_path, request.file_type)
        logger.info("Queued analysis job %s for resource %s", job.id, request.resource_id)
        self._schedule(job.id, request)
        return SubmitResult(
            accepted=True,
            message=STARTED_MESSAGE,
            job_id=job.id,
            status=job.status,
            progress=job.progress,
        )

    async def retry(self, job_id: str) -> SubmitResult:
        job = self.jobs.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        if job.status is not JobStatus.FAILED:
            raise JobStateError(f"Only failed jobs can be retried (job {job_id} is {job.status.value})")
        if not job.file_path or not job.file_type:
            raise JobStateError(f"Job {job_id} has no stored source file to retry")

        request = AnalysisRequest(resource_id=job.resource_id, file_path=job.file_path, file_type=job.file_type)
        return await self.submit(request, reuse_active=True)

    def _schedule(self, job_id: str, request: AnalysisRequest) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.run_pipeline(job_id, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_for_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---------- pipeline ----------

    async def run_pipeline(self, job_id: str, request: AnalysisRequest) -> Optional[AnalysisJob]:
        resource_id = request.resource_id
        started = self.jobs.mark_processing(job_id, PROGRESS_STARTED)
        if started is None:
            logger.warning("Job %s is no longer pending; skipping run", job_id)
            return self.jobs.get_job(job_id)

        try:
            self.content.set_processing_status(resource_id, JobStatus.PROCESSING.value)

            extraction = await self.extractor.extract(request.file_path, request.file_type)
            self._checkpoint(job_id, PROGRESS_EXTRACTED)

            segmentation = await asyncio.to_thread(self.segmenter.segment, extraction.text)
            for question in segmentation.questions:
                question.resource_id = resource_id
            await asyncio.to_thread(self.content.replace_questions, resource_id, segmentation.questions)
            self._checkpoint(job_id, PROGRESS_SEGMENTED)

            question_texts = [q.question_text for q in segmentation.questions]
            tagging = await asyncio.to_thread(self.tagger.tag, question_texts)
            self._checkpoint(job_id, PROGRESS_TAGGED)

            index = await asyncio.to_thread(self.rag.update, resource_id, extraction.text)

            result = PipelineResult.compose(extraction, segmentation, tagging, index)
            completed = self.jobs.mark_completed(job_id, result.to_payload())
            if completed is None:
                raise _JobReleased(job_id)
            self.content.set_processing_status(resource_id, JobStatus.COMPLETED.value)
            logger.info(
                "Job %s completed: %s questions, %s concepts",
                job_id,
                result.questions_extracted,
                result.concepts_identified,
            )
            return completed
        except _JobReleased:
            return self._abandon(job_id, resource_id)
        except Exception as exc:
            logger.exception("Job %s failed for resource %s", job_id, resource_id)
            return self._fail(job_id, resource_id, str(exc) or exc.__class__.__name__)

    def _checkpoint(self, job_id: str, progress: int) -> None:
        if self.jobs.update_progress(job_id, progress) is None:
            raise _JobReleased(job_id)

    def _abandon(self, job_id: str, resource_id: int) -> Optional[AnalysisJob]:
        """Stop a run whose job was finished elsewhere, e.g. by the stale sweep."""
        job = self.jobs.get_job(job_id)
        logger.warning(
            "Job %s left PROCESSING while running (now %s); dropping its results",
            job_id,
            job.status.value if job else "deleted",
        )
        if job is not None and job.status is JobStatus.FAILED and self.jobs.find_active_job(resource_id) is None:
            self.content.set_processing_status(resource_id, JobStatus.FAILED.value)
        return job

    def _fail(self, job_id: str, resource_id: int, message: str) -> Optional[AnalysisJob]:
        try:
            failed = self.jobs.mark_failed(job_id, message)
            self.content.set_processing_status(resource_id, JobStatus.FAILED.value)
            return failed
        except Exception:
            logger.exception("Could not record failure for job %s", job_id)
            return None

    # ---------- queries ----------

    def get_status(self, job_id: str) -> Optional[JobView]:
        job = self.jobs.get_job(job_id)
        if job is None:
            return None
        return JobView(job=job, resource=self.content.get_resource(job.resource_id))

    def list_jobs(self, limit: int = 10, status: Optional[JobStatus] = None) -> List[AnalysisJob]:
        return self.jobs.list_jobs(limit=limit, status=status)

    def stats(self) -> Dict[str, int]:
        counts = {status.value: total for status, total in self.jobs.count_by_status().items()}
        counts["total"] = sum(counts.values())
        return counts

    # ---------- maintenance ----------

    def sweep_stale_jobs(self, max_age_seconds: Optional[int] = None) -> List[str]:
        max_age = max_age_seconds or self.stale_job_seconds
        failed = self.jobs.fail_stale_jobs(max_age, stale_message(max_age))
        if failed:
            logger.warning("Failed %s stale analysis jobs: %s", len(failed), ", ".join(failed))
        return failed

    def purge_finished_jobs(self, older_than_days: Optional[int] = None) -> int:
        days = older_than_days or self.job_retention_days
        deleted = self.jobs.purge_finished(days)
        logger.info("Purged %s finished analysis jobs older than %s days", deleted, days)
        return deleted
