import logging

from psycopg_pool import ConnectionPool

from studyhub.application.analysis_service import AnalysisService
from studyhub.application.concept_tagger import AIConceptClassifier, ConceptTagger, StaticConceptClassifier
from studyhub.application.rag_index import RagIndex
from studyhub.core.config import Settings
from studyhub.infrastructure.db.content_repository import ContentRepository
from studyhub.infrastructure.db.job_repository import JobRepository
from studyhub.infrastructure.extraction.documentai import DocumentAIClient
from studyhub.infrastructure.extraction.extractor import TextExtractor
from studyhub.infrastructure.extraction.ocr import TesseractOcr
from studyhub.infrastructure.extraction.segmenter import AISegmenter, PatternSegmenter
from studyhub.infrastructure.extraction.sources import SourceFetcher
from studyhub.infrastructure.llm.ai_client import AIContentClient

logger = logging.getLogger(__name__)


def build_ai_client(settings: Settings) -> AIContentClient:
    client = AIContentClient(api_key=settings.openai_api_key, model=settings.openai_model)
    if not client.available:
        logger.info("OpenAI not configured; AI endpoints return fallback content")
    return client


def build_extractor(settings: Settings) -> TextExtractor:
    return TextExtractor(
        SourceFetcher(timeout=settings.download_timeout_s),
        ocr=TesseractOcr(lang=settings.ocr_lang),
        document_ai=DocumentAIClient(
            project_id=settings.gcp_project_id,
            processor_id=settings.document_ai_processor_id,
            location=settings.document_ai_location,
            credentials_path=settings.google_credentials_path,
        ),
        pdf_timeout=settings.pdf_timeout_s,
        ocr_timeout=settings.ocr_timeout_s,
        document_ai_timeout=settings.document_ai_timeout_s,
        max_pages=settings.pdf_max_pages,
    )


def build_analysis_service(settings: Settings, pool: ConnectionPool, ai_client: AIContentClient) -> AnalysisService:
    content = ContentRepository(pool)

    segmenter = PatternSegmenter()
    if settings.question_segmenter == "ai":
        segmenter = AISegmenter(ai_client, fallback=segmenter)

    classifier = StaticConceptClassifier()
    if settings.concept_classifier == "ai":
        classifier = AIConceptClassifier(ai_client)

    return AnalysisService(
        jobs=JobRepository(pool),
        content=content,
        extractor=build_extractor(settings),
        segmenter=segmenter,
        tagger=ConceptTagger(content, classifier),
        rag=RagIndex(content, excerpt_chars=settings.rag_excerpt_chars),
        stale_job_seconds=settings.stale_job_seconds,
        job_retention_days=settings.job_retention_days,
    )
