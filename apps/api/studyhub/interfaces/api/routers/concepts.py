from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from studyhub.core.domain.analysis import ConceptCandidate
from studyhub.infrastructure.db.content_repository import ContentRepository
from studyhub.infrastructure.llm.ai_client import AIContentClient
from studyhub.infrastructure.llm.models import DifficultyProgression
from studyhub.interfaces.api.deps import get_ai_client, get_content_repository
from studyhub.interfaces.api.schemas import (
    ConceptCreateRequest,
    ConceptListResponse,
    ConceptOut,
    QuestionListResponse,
    QuestionOut,
)

router = APIRouter(tags=["content"])


@router.get("/resources/{resource_id}/questions", response_model=QuestionListResponse)
def resource_questions(
    resource_id: int,
    repo: ContentRepository = Depends(get_content_repository),
) -> QuestionListResponse:
    questions = repo.list_questions(resource_id)
    return QuestionListResponse(
        resource_id=resource_id,
        questions=[QuestionOut.from_domain(q) for q in questions],
    )


@router.get("/resources/{resource_id}/difficulty", response_model=DifficultyProgression)
def resource_difficulty(
    resource_id: int,
    course_level: int = Query(default=100, ge=100, le=900),
    repo: ContentRepository = Depends(get_content_repository),
    ai: AIContentClient = Depends(get_ai_client),
) -> DifficultyProgression:
    questions = repo.list_questions(resource_id)
    if not questions:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No extracted questions for resource")
    payload = [
        {"questionNumber": q.question_number, "questionText": q.question_text, "difficulty": q.difficulty.value}
        for q in questions
    ]
    return ai.analyze_difficulty_progression(payload, course_level=course_level)


@router.get("/concepts", response_model=ConceptListResponse)
def list_concepts(
    name: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    repo: ContentRepository = Depends(get_content_repository),
) -> ConceptListResponse:
    if name:
        concept = repo.find_concept(name.strip())
        concepts = [concept] if concept else []
    else:
        concepts = repo.list_concepts(limit=limit)
    return ConceptListResponse(concepts=[ConceptOut.from_domain(c) for c in concepts])


@router.post("/concepts", response_model=ConceptOut)
def create_concept(
    req: ConceptCreateRequest,
    repo: ContentRepository = Depends(get_content_repository),
) -> ConceptOut:
    concept = repo.get_or_create_concept(
        ConceptCandidate(name=req.name, description=req.description, category=req.category)
    )
    return ConceptOut.from_domain(concept)
