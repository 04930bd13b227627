import logging
from typing import Dict, List, Optional, Protocol, Sequence

from studyhub.core.domain.analysis import ConceptCandidate, TaggingResult
from studyhub.infrastructure.db.content_repository import ContentRepository
from studyhub.infrastructure.llm.ai_client import AIContentClient

logger = logging.getLogger(__name__)

STATIC_CONCEPTS = (
    ConceptCandidate(
        name="Linear Algebra",
        description="Mathematical concepts involving vectors and matrices",
        category="Mathematics",
    ),
    ConceptCandidate(
        name="Data Structures",
        description="Ways of organizing and storing data",
        category="Computer Science",
    ),
)


class ConceptClassifier(Protocol):
    def classify(self, question_texts: Sequence[str]) -> List[ConceptCandidate]: ...


class StaticConceptClassifier:
    """Tags every analysed document with the same fixed concept set."""

    def __init__(self, concepts: Sequence[ConceptCandidate] = STATIC_CONCEPTS):
        self.concepts = list(concepts)

    def classify(self, question_texts: Sequence[str]) -> List[ConceptCandidate]:
        return list(self.concepts)


class AIConceptClassifier:
    def __init__(self, ai_client: AIContentClient, course_context: Optional[str] = None, max_questions: int = 20):
        self.ai_client = ai_client
        self.course_context = course_context
        self.max_questions = max_questions

    def classify(self, question_texts: Sequence[str]) -> List[ConceptCandidate]:
        found: Dict[str, ConceptCandidate] = {}
        for text in list(question_texts)[: self.max_questions]:
            for concept in self.ai_client.identify_question_concepts(text, self.course_context):
                name = concept.name.strip()
                if name and name.lower() not in found:
                    found[name.lower()] = ConceptCandidate(
                        name=name,
                        description=concept.description,
                        category=concept.category or "General",
                    )
        return list(found.values())


class ConceptTagger:
    """Classifies question texts and resolves each concept to one stored row."""

    def __init__(self, repo: ContentRepository, classifier: Optional[ConceptClassifier] = None):
        self.repo = repo
        self.classifier = classifier or StaticConceptClassifier()

    def tag(self, question_texts: Sequence[str]) -> TaggingResult:
        if not question_texts:
            return TaggingResult()

        candidates: Dict[str, ConceptCandidate] = {}
        for candidate in self.classifier.classify(question_texts):
            candidates.setdefault(candidate.name, candidate)

        concepts = [self.repo.get_or_create_concept(candidate) for candidate in candidates.values()]
        logger.info("Tagged %s questions with %s concepts", len(question_texts), len(concepts))
        return TaggingResult(concepts=concepts)
