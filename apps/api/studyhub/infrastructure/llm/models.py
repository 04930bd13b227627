"""Response shapes for the AI content client. Every field has a default so
partially-filled model output still validates."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )


class AIQuestion(AIModel):
    question_number: Optional[str] = None
    question_text: str = ""
    marks: Optional[float] = None
    difficulty: str = "MEDIUM"
    concepts: List[str] = Field(default_factory=list)


class QuestionList(AIModel):
    questions: List[AIQuestion] = Field(default_factory=list)


class ConceptAnalysis(AIModel):
    name: str
    confidence: float = 0.5
    is_main_concept: bool = False
    description: str = ""
    category: str = "General"


class ConceptList(AIModel):
    concepts: List[ConceptAnalysis] = Field(default_factory=list)


class StudyActivity(AIModel):
    type: str = "reading"
    resource: str = ""
    duration: str = ""
    description: str = ""


class StudyPlan(AIModel):
    overview: str = ""
    activities: List[StudyActivity] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)


class Recommendation(AIModel):
    priority: str = "medium"
    action: str = ""
    rationale: str = ""


class Insights(AIModel):
    key_patterns: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


class SearchInsights(AIModel):
    search_analysis: str = ""
    concept_connections: List[str] = Field(default_factory=list)
    study_tips: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class ConceptRelationship(AIModel):
    target_concept: str
    type: str = "related"
    strength: float = 0.5
    explanation: str = ""


class ConceptRelationships(AIModel):
    relationships: List[ConceptRelationship] = Field(default_factory=list)
    overall_strength: float = 0.5
    suggested_order: List[str] = Field(default_factory=list)


class LearningStep(AIModel):
    concept: str
    order: int
    reasoning: str = ""
    estimated_hours: float = 3


class LearningPath(AIModel):
    sequence: List[LearningStep] = Field(default_factory=list)
    time_estimate: str = ""
    milestones: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)


class DifficultyProgression(AIModel):
    distribution: Dict[str, int] = Field(default_factory=dict)
    progression: str = "gradual"
    recommendations: List[str] = Field(default_factory=list)
    average_difficulty: str = "MEDIUM"
    difficulty_range: str = Field(default="MEDIUM", alias="range")


class DifficultyAnalysis(AIModel):
    level: str = "MEDIUM"
    factors: List[str] = Field(default_factory=list)
    cognitive_level: str = "understand"
    time_estimate: str = "10"
    confidence: float = 0.5


class DetailedSolution(AIModel):
    solution: str = ""
    explanation: str = ""
    hints: List[str] = Field(default_factory=list)
    key_formulas: List[str] = Field(default_factory=list)
    common_mistakes: List[str] = Field(default_factory=list)
