from typing import List

from fastapi import APIRouter, Depends

from studyhub.application.rag_index import RagIndex
from studyhub.infrastructure.llm.ai_client import AIContentClient
from studyhub.infrastructure.llm.models import ConceptRelationships, Insights, LearningPath, StudyPlan
from studyhub.interfaces.api.deps import get_ai_client, get_rag_index
from studyhub.interfaces.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    ConceptRelationshipsRequest,
    ConceptSummaryRequest,
    ConceptSummaryResponse,
    InsightsRequest,
    LearningPathRequest,
    QuestionAnalysisRequest,
    QuestionAnalysisResponse,
    SearchHitOut,
    SearchRequest,
    SearchResponse,
    SourceOut,
    StudyPlanRequest,
)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/study-plan", response_model=StudyPlan)
def study_plan(req: StudyPlanRequest, ai: AIContentClient = Depends(get_ai_client)) -> StudyPlan:
    return ai.generate_study_plan(
        resources=[{"title": r.title, "file_type": r.file_type} for r in req.resources],
        goals=req.goals,
        timeframe=req.timeframe,
        study_hours=req.study_hours,
        difficulty_level=req.difficulty_level,
        study_level=req.study_level,
    )


@router.post("/insights", response_model=Insights)
def insights(req: InsightsRequest, ai: AIContentClient = Depends(get_ai_client)) -> Insights:
    return ai.generate_insights(req.analytics_type, req.data, req.context)


@router.post("/answer", response_model=AnswerResponse)
def answer(
    req: AnswerRequest,
    rag: RagIndex = Depends(get_rag_index),
    ai: AIContentClient = Depends(get_ai_client),
) -> AnswerResponse:
    hits = rag.search(req.question, limit=req.limit, course_id=req.course_id)
    context: List[str] = [f"[{hit.title}] {hit.excerpt}" for hit in hits]
    text = ai.answer_question_with_rag(req.question, context, req.course_context)
    return AnswerResponse(
        answer=text,
        sources=[SourceOut(resource_id=h.resource_id, title=h.title, relevance=round(h.relevance, 3)) for h in hits],
    )


@router.post("/search", response_model=SearchResponse)
def search(
    req: SearchRequest,
    rag: RagIndex = Depends(get_rag_index),
    ai: AIContentClient = Depends(get_ai_client),
) -> SearchResponse:
    hits = rag.search(req.query, limit=req.limit, course_id=req.course_id)
    insights = ai.generate_search_insights(
        req.query,
        len(hits),
        top_concepts=[h.title for h in hits[:5]],
        user_courses=req.user_courses,
        user_level=req.user_level,
    )
    return SearchResponse(
        results=[
            SearchHitOut(
                resource_id=h.resource_id,
                title=h.title,
                relevance=round(h.relevance, 3),
                excerpt=h.excerpt[:300],
            )
            for h in hits
        ],
        insights=insights,
    )


@router.post("/question-analysis", response_model=QuestionAnalysisResponse)
def question_analysis(
    req: QuestionAnalysisRequest,
    ai: AIContentClient = Depends(get_ai_client),
) -> QuestionAnalysisResponse:
    difficulty = ai.analyze_question_difficulty(req.question, req.concepts, req.context)
    objectives = ai.generate_learning_objectives(req.question, req.concepts)
    solution = None
    if req.include_solution:
        solution = ai.generate_detailed_solution(
            req.question,
            req.concepts,
            difficulty=difficulty.level,
            course_context=req.course_context,
        )
    return QuestionAnalysisResponse(difficulty=difficulty, learning_objectives=objectives, solution=solution)


@router.post("/concept-relationships", response_model=ConceptRelationships)
def concept_relationships(
    req: ConceptRelationshipsRequest,
    ai: AIContentClient = Depends(get_ai_client),
) -> ConceptRelationships:
    return ai.analyze_concept_relationships(
        req.source.model_dump(),
        [c.model_dump() for c in req.related],
        user_level=req.user_level,
    )


@router.post("/learning-path", response_model=LearningPath)
def learning_path(req: LearningPathRequest, ai: AIContentClient = Depends(get_ai_client)) -> LearningPath:
    return ai.generate_learning_path(
        [c.model_dump() for c in req.concepts],
        user_level=req.user_level,
        mastered=req.mastered,
        time_constraints=req.time_constraints,
    )


@router.post("/concept-summary", response_model=ConceptSummaryResponse)
def concept_summary(req: ConceptSummaryRequest, ai: AIContentClient = Depends(get_ai_client)) -> ConceptSummaryResponse:
    return ConceptSummaryResponse(name=req.name, summary=ai.generate_concept_summary(req.name, req.context))
