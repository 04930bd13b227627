from studyhub.application.concept_tagger import AIConceptClassifier, StaticConceptClassifier
from studyhub.bootstrap import build_ai_client, build_analysis_service
from studyhub.core.config import Settings
from studyhub.infrastructure.extraction.segmenter import AISegmenter, PatternSegmenter


class NoPool:
    def connection(self):
        raise AssertionError("building the service must not touch the database")


def test_default_wiring_uses_heuristics():
    settings = Settings.from_env({})
    service = build_analysis_service(settings, NoPool(), build_ai_client(settings))

    assert isinstance(service.segmenter, PatternSegmenter)
    assert isinstance(service.tagger.classifier, StaticConceptClassifier)
    assert service.rag.excerpt_chars == 2000
    assert service.extractor.document_ai.is_configured() is False


def test_ai_modes_are_selected_from_settings():
    settings = Settings.from_env({"QUESTION_SEGMENTER": "ai", "CONCEPT_CLASSIFIER": "ai", "RAG_EXCERPT_CHARS": "500"})
    service = build_analysis_service(settings, NoPool(), build_ai_client(settings))

    assert isinstance(service.segmenter, AISegmenter)
    assert isinstance(service.segmenter.fallback, PatternSegmenter)
    assert isinstance(service.tagger.classifier, AIConceptClassifier)
    assert service.rag.excerpt_chars == 500
