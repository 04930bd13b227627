from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: "str | JobStatus") -> "JobStatus":
        if isinstance(value, JobStatus):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown job status: {value}") from None

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING)


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    EXPERT = "EXPERT"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Difficulty":
        if not value:
            return cls.MEDIUM
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.MEDIUM


class FileKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"


@dataclass
class AnalysisRequest:
    resource_id: int
    file_path: str
    file_type: str
    enable_analysis: bool = True


@dataclass
class ExtractedQuestion:
    question_text: str
    question_number: Optional[str] = None
    marks: float = 0
    difficulty: Difficulty = Difficulty.MEDIUM
    ai_analysis: Dict[str, Any] = field(default_factory=dict)
    resource_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Concept:
    id: int
    name: str
    description: str = ""
    category: str = ""
    ai_summary: str = ""


@dataclass
class ConceptCandidate:
    name: str
    description: str = ""
    category: str = "General"


@dataclass
class ResourceSummary:
    id: int
    title: str
    course_title: Optional[str] = None
    uploader: Optional[str] = None
    file_type: Optional[str] = None
    ai_processing_status: Optional[str] = None
    rag_content: Optional[str] = None


# ---------- Stage results ----------


@dataclass
class ExtractedTable:
    rows: int
    columns: int
    content: List[List[str]] = field(default_factory=list)


@dataclass
class FormField:
    name: str
    value: str


@dataclass
class ExtractionResult:
    text: str
    method: str
    page_count: Optional[int] = None
    tables: List[ExtractedTable] = field(default_factory=list)
    form_fields: List[FormField] = field(default_factory=list)
    # True when a placeholder replaced real text (OCR timeout or failure).
    degraded: bool = False


@dataclass
class SegmentationResult:
    questions: List[ExtractedQuestion] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.questions)


@dataclass
class TaggingResult:
    concepts: List[Concept] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.concepts)


@dataclass
class IndexResult:
    indexed: bool
    content_length: int
    excerpt_length: int


@dataclass
class PipelineResult:
    questions_extracted: int
    concepts_identified: int
    rag_indexed: bool
    extraction_method: Optional[str] = None
    degraded_extraction: bool = False
    page_count: Optional[int] = None
    concepts: List[str] = field(default_factory=list)
    tables: List[ExtractedTable] = field(default_factory=list)
    form_fields: List[FormField] = field(default_factory=list)
    text_preview: str = ""

    @classmethod
    def compose(
        cls,
        extraction: ExtractionResult,
        segmentation: SegmentationResult,
        tagging: TaggingResult,
        index: IndexResult,
        preview_chars: int = 500,
    ) -> "PipelineResult":
        return cls(
            questions_extracted=segmentation.count,
            concepts_identified=tagging.count,
            rag_indexed=index.indexed,
            extraction_method=extraction.method,
            degraded_extraction=extraction.degraded,
            page_count=extraction.page_count,
            concepts=[c.name for c in tagging.concepts],
            tables=list(extraction.tables),
            form_fields=list(extraction.form_fields),
            text_preview=extraction.text[:preview_chars],
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "questionsExtracted": self.questions_extracted,
            "conceptsIdentified": self.concepts_identified,
            "ragIndexed": self.rag_indexed,
            "extractionMethod": self.extraction_method,
            "degradedExtraction": self.degraded_extraction,
            "pageCount": self.page_count,
            "concepts": list(self.concepts),
            "tables": [
                {"rows": t.rows, "columns": t.columns, "content": t.content}
                for t in self.tables
            ],
            "formFields": [{"name": f.name, "value": f.value} for f in self.form_fields],
            "textPreview": self.text_preview,
        }

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["PipelineResult"]:
        if not payload or "questionsExtracted" not in payload:
            return None
        return cls(
            questions_extracted=int(payload.get("questionsExtracted") or 0),
            concepts_identified=int(payload.get("conceptsIdentified") or 0),
            rag_indexed=bool(payload.get("ragIndexed")),
            extraction_method=payload.get("extractionMethod"),
            degraded_extraction=bool(payload.get("degradedExtraction")),
            page_count=payload.get("pageCount"),
            concepts=list(payload.get("concepts") or []),
            tables=[
                ExtractedTable(rows=t.get("rows", 0), columns=t.get("columns", 0), content=t.get("content") or [])
                for t in payload.get("tables") or []
            ],
            form_fields=[
                FormField(name=f.get("name", ""), value=f.get("value", ""))
                for f in payload.get("formFields") or []
            ],
            text_preview=payload.get("textPreview") or "",
        )


# ---------- Job ----------


@dataclass
class AnalysisJob:
    id: str
    resource_id: int
    status: JobStatus
    progress: int
    results: Optional[PipelineResult]
    error_message: Optional[str]
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    file_path: Optional[str] = None
    file_type: Optional[str] = None


@dataclass
class JobView:
    job: AnalysisJob
    resource: Optional[ResourceSummary] = None


@dataclass
class SubmitResult:
    accepted: bool
    message: str
    job_id: Optional[str] = None
    status: Optional[JobStatus] = None
    progress: int = 0
    reused: bool = False
