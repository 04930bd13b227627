from fastapi import Request

from studyhub.application.analysis_service import AnalysisService
from studyhub.application.rag_index import RagIndex
from studyhub.infrastructure.db.content_repository import ContentRepository
from studyhub.infrastructure.llm.ai_client import AIContentClient


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


def get_content_repository(request: Request) -> ContentRepository:
    return request.app.state.analysis_service.content


def get_rag_index(request: Request) -> RagIndex:
    return request.app.state.analysis_service.rag


def get_ai_client(request: Request) -> AIContentClient:
    return request.app.state.ai_client
