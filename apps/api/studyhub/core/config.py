import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _optional_int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    return int(raw)


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    db_pool_min: int = 1
    db_pool_max: int = 5

    download_timeout_s: int = 30
    pdf_timeout_s: int = 60
    ocr_timeout_s: int = 300
    document_ai_timeout_s: int = 120
    ocr_lang: str = "eng"
    pdf_max_pages: Optional[int] = None

    rag_excerpt_chars: int = 2000
    stale_job_seconds: int = 900
    job_retention_days: int = 7

    # "static" or "ai"
    concept_classifier: str = "static"
    # "pattern" or "ai"
    question_segmenter: str = "pattern"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    gcp_project_id: Optional[str] = None
    document_ai_processor_id: Optional[str] = None
    document_ai_location: str = "us"
    google_credentials_path: Optional[str] = None

    frontend_origin: str = "http://localhost:3000"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            database_url=env.get("DATABASE_URL"),
            db_pool_min=_int(env, "DB_POOL_MIN", 1),
            db_pool_max=_int(env, "DB_POOL_MAX", 5),
            download_timeout_s=_int(env, "DOWNLOAD_TIMEOUT_S", 30),
            pdf_timeout_s=_int(env, "PDF_TIMEOUT_S", 60),
            ocr_timeout_s=_int(env, "OCR_TIMEOUT_S", 300),
            document_ai_timeout_s=_int(env, "DOCUMENT_AI_TIMEOUT_S", 120),
            ocr_lang=env.get("OCR_LANG", "eng"),
            pdf_max_pages=_optional_int(env, "PDF_MAX_PAGES"),
            rag_excerpt_chars=_int(env, "RAG_EXCERPT_CHARS", 2000),
            stale_job_seconds=_int(env, "STALE_JOB_SECONDS", 900),
            job_retention_days=_int(env, "JOB_RETENTION_DAYS", 7),
            concept_classifier=env.get("CONCEPT_CLASSIFIER", "static").strip().lower(),
            question_segmenter=env.get("QUESTION_SEGMENTER", "pattern").strip().lower(),
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
            gcp_project_id=env.get("GOOGLE_CLOUD_PROJECT_ID") or None,
            document_ai_processor_id=env.get("DOCUMENT_AI_PROCESSOR_ID") or None,
            document_ai_location=env.get("DOCUMENT_AI_LOCATION", "us"),
            google_credentials_path=env.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
            frontend_origin=env.get("FRONTEND_ORIGIN", "http://localhost:3000"),
        )
