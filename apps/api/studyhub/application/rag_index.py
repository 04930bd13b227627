import logging
from dataclasses import dataclass
from typing import List, Optional

from studyhub.core.domain.analysis import IndexResult
from studyhub.infrastructure.db.content_repository import ContentRepository

logger = logging.getLogger(__name__)

RELEVANCE_THRESHOLD = 0.3
PHRASE_BONUS = 0.3
SEARCH_SCAN_LIMIT = 50


@dataclass
class RagHit:
    resource_id: int
    title: str
    excerpt: str
    relevance: float


def keyword_relevance(query: str, content: str) -> float:
    """
    Share of distinct query terms (longer than two characters) present in the
    content, plus a bonus when the whole query appears verbatim. Clamped to [0, 1].
    """
    haystack = (content or "").lower()
    needle = (query or "").lower().strip()
    terms = {t for t in needle.split() if len(t) > 2}
    if not terms or not haystack:
        return 0.0

    score = sum(1 for t in terms if t in haystack) / len(terms)
    if needle in haystack:
        score += PHRASE_BONUS
    return max(0.0, min(score, 1.0))


class RagIndex:
    """Keeps a bounded plain-text excerpt per resource for keyword retrieval."""

    def __init__(self, repo: ContentRepository, excerpt_chars: int = 2000):
        self.repo = repo
        self.excerpt_chars = excerpt_chars

    def update(self, resource_id: int, text: str) -> IndexResult:
        text = text or ""
        excerpt = text[: self.excerpt_chars]
        self.repo.set_rag_content(resource_id, excerpt)
        logger.info("Indexed resource %s (%s of %s chars)", resource_id, len(excerpt), len(text))
        return IndexResult(indexed=True, content_length=len(text), excerpt_length=len(excerpt))

    def search(self, query: str, limit: int = 5, course_id: Optional[int] = None) -> List[RagHit]:
        hits: List[RagHit] = []
        for row in self.repo.list_rag_documents(limit=SEARCH_SCAN_LIMIT, course_id=course_id):
            body = " ".join(filter(None, [row.get("title"), row.get("description"), row.get("rag_content")]))
            relevance = keyword_relevance(query, body)
            if relevance >= RELEVANCE_THRESHOLD:
                hits.append(
                    RagHit(
                        resource_id=row["id"],
                        title=row.get("title") or "",
                        excerpt=row.get("rag_content") or "",
                        relevance=relevance,
                    )
                )
        hits.sort(key=lambda h: h.relevance, reverse=True)
        return hits[:limit]
