import importlib

import pytest

fastapi = pytest.importorskip("fastapi")
TestClient = pytest.importorskip("fastapi.testclient").TestClient

from studyhub.application.analysis_service import AnalysisService  # noqa: E402
from studyhub.application.concept_tagger import ConceptTagger  # noqa: E402
from studyhub.application.rag_index import RagIndex  # noqa: E402
from studyhub.infrastructure.extraction.segmenter import PatternSegmenter  # noqa: E402
from studyhub.infrastructure.llm.ai_client import AIContentClient  # noqa: E402


class UnusedExtractor:
    async def extract(self, file_path, file_type):
        raise AssertionError("Pipelines are not run in API tests")


class ScriptedCompletion:
    """Returns queued replies in order; falls back to an unusable reply."""

    def __init__(self):
        self.replies = []
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.replies.pop(0) if self.replies else "no json here"


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def service(job_repo, content_repo):
    svc = AnalysisService(
        jobs=job_repo,
        content=content_repo,
        extractor=UnusedExtractor(),
        segmenter=PatternSegmenter(),
        tagger=ConceptTagger(content_repo),
        rag=RagIndex(content_repo),
    )
    svc.scheduled = []
    svc._schedule = lambda job_id, request: svc.scheduled.append((job_id, request))
    return svc


@pytest.fixture
def app(monkeypatch, service, completion):
    """
    Load the app without running its lifespan; state is wired the way the
    lifespan would wire it, but over in-memory repositories.
    """
    main_module = importlib.import_module("studyhub.main")
    monkeypatch.setattr(main_module.app.state, "analysis_service", service, raising=False)
    monkeypatch.setattr(main_module.app.state, "ai_client", AIContentClient(complete=completion), raising=False)
    return main_module.app


@pytest.fixture
def client(app):
    return TestClient(app)
