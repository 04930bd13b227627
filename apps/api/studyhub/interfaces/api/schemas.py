from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from studyhub.core.domain.analysis import AnalysisJob, Concept, ExtractedQuestion, JobStatus, ResourceSummary
from studyhub.infrastructure.llm.models import DetailedSolution, DifficultyAnalysis, SearchInsights


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- analysis jobs ----------


class SubmitJobRequest(CamelModel):
    resource_id: int
    file_path: str = Field(min_length=1)
    file_type: str = Field(min_length=1)
    enable_ai_analysis: bool = Field(default=True, alias="enableAIAnalysis")


class SubmitJobResponse(CamelModel):
    job_id: Optional[str] = None
    status: Optional[JobStatus] = None
    progress: int = 0
    message: str
    reused: bool = False


class ResourceOut(CamelModel):
    id: int
    title: str
    course_title: Optional[str] = None
    uploader: Optional[str] = None
    file_type: Optional[str] = None
    ai_processing_status: Optional[str] = None

    @classmethod
    def from_domain(cls, resource: ResourceSummary) -> "ResourceOut":
        return cls(
            id=resource.id,
            title=resource.title,
            course_title=resource.course_title,
            uploader=resource.uploader,
            file_type=resource.file_type,
            ai_processing_status=resource.ai_processing_status,
        )


class JobStatusResponse(CamelModel):
    id: str
    resource_id: int
    status: JobStatus
    progress: int = Field(ge=0, le=100)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    resource: Optional[ResourceOut] = None

    @classmethod
    def from_domain(cls, job: AnalysisJob, resource: Optional[ResourceSummary] = None) -> "JobStatusResponse":
        return cls(
            id=job.id,
            resource_id=job.resource_id,
            status=job.status,
            progress=job.progress,
            result=job.results.to_payload() if job.results else None,
            error=job.error_message,
            created_at=job.created_at,
            updated_at=job.updated_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            resource=ResourceOut.from_domain(resource) if resource else None,
        )


class JobListResponse(CamelModel):
    jobs: List[JobStatusResponse]


class StatsResponse(CamelModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


# ---------- questions and concepts ----------


class QuestionOut(CamelModel):
    id: Optional[int] = None
    question_text: str
    question_number: Optional[str] = None
    marks: float = 0
    difficulty: str
    ai_analysis: Dict[str, Any] = {}

    @classmethod
    def from_domain(cls, question: ExtractedQuestion) -> "QuestionOut":
        return cls(
            id=question.id,
            question_text=question.question_text,
            question_number=question.question_number,
            marks=question.marks,
            difficulty=question.difficulty.value,
            ai_analysis=question.ai_analysis,
        )


class QuestionListResponse(CamelModel):
    resource_id: int
    questions: List[QuestionOut]


class ConceptOut(CamelModel):
    id: int
    name: str
    description: str = ""
    category: str = ""
    ai_summary: str = ""

    @classmethod
    def from_domain(cls, concept: Concept) -> "ConceptOut":
        return cls(
            id=concept.id,
            name=concept.name,
            description=concept.description,
            category=concept.category,
            ai_summary=concept.ai_summary,
        )


class ConceptCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    category: str = "General"

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Concept name cannot be blank.")
        return value


class ConceptListResponse(CamelModel):
    concepts: List[ConceptOut]


# ---------- AI endpoints ----------


class ConceptRef(CamelModel):
    name: str
    description: Optional[str] = None


class ResourceRef(CamelModel):
    title: str
    file_type: Optional[str] = None


class StudyPlanRequest(CamelModel):
    resources: List[ResourceRef] = []
    goals: List[str] = Field(min_length=1)
    timeframe: str = "1 week"
    study_hours: int = Field(default=10, ge=1, le=168)
    difficulty_level: str = "intermediate"
    study_level: str = "undergraduate"


class InsightsRequest(CamelModel):
    analytics_type: str
    data: Dict[str, Any] = {}
    context: str = ""


class AnswerRequest(CamelModel):
    question: str = Field(min_length=1)
    course_id: Optional[int] = None
    course_context: Optional[str] = None
    limit: int = Field(default=5, ge=1, le=20)


class SourceOut(CamelModel):
    resource_id: int
    title: str
    relevance: float


class AnswerResponse(CamelModel):
    answer: str
    sources: List[SourceOut]


class SearchRequest(CamelModel):
    query: str = Field(min_length=1)
    course_id: Optional[int] = None
    limit: int = Field(default=10, ge=1, le=50)
    user_level: str = "undergraduate"
    user_courses: List[str] = []


class SearchHitOut(SourceOut):
    excerpt: str


class SearchResponse(CamelModel):
    results: List[SearchHitOut]
    insights: SearchInsights


class QuestionAnalysisRequest(CamelModel):
    question: str = Field(min_length=1)
    concepts: List[str] = []
    context: str = ""
    course_context: Optional[str] = None
    include_solution: bool = False


class QuestionAnalysisResponse(CamelModel):
    difficulty: DifficultyAnalysis
    learning_objectives: List[str]
    solution: Optional[DetailedSolution] = None


class ConceptRelationshipsRequest(CamelModel):
    source: ConceptRef
    related: List[ConceptRef] = Field(min_length=1)
    user_level: int = 100


class LearningPathRequest(CamelModel):
    concepts: List[ConceptRef] = Field(min_length=1)
    user_level: int = 100
    mastered: List[int] = []
    time_constraints: str = "flexible"


class ConceptSummaryRequest(CamelModel):
    name: str = Field(min_length=1)
    context: str = ""


class ConceptSummaryResponse(CamelModel):
    name: str
    summary: str
