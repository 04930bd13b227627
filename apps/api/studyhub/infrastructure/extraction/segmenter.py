import logging
import re
from typing import List, Optional

from studyhub.core.domain.analysis import Difficulty, ExtractedQuestion, SegmentationResult

logger = logging.getLogger(__name__)

# "1) ...", "Q2. ...", "Question 3: ...", "4 - ..."
QUESTION_MARKER = re.compile(
    r"^\s*(?:Q\.?|Question)?\s*(?P<number>\d{1,2})\s*[).\-:]?\s+(?P<body>\S.*)$",
    re.IGNORECASE,
)
# "1." or "Q2" alone on its line; the body starts on the next line. A bare
# number without prefix or punctuation (page numbers) is not a marker.
NUMBER_ONLY_MARKER = re.compile(
    r"^\s*(?P<prefix>Q\.?|Question)?\s*(?P<number>\d{1,2})\s*(?P<punct>[).\-:])?\s*$",
    re.IGNORECASE,
)
MIN_FALLBACK_LINE_CHARS = 20


def _question(text: str, number: Optional[str]) -> ExtractedQuestion:
    return ExtractedQuestion(
        question_text=text,
        question_number=number,
        marks=0,
        difficulty=Difficulty.MEDIUM,
        ai_analysis={},
    )


class PatternSegmenter:
    """
    Splits exam text on numbered question markers.

    A question runs from its marker line to the next marker line (or the end
    of the text). Without any marker every line longer than
    MIN_FALLBACK_LINE_CHARS becomes its own question.
    """

    def __init__(self, min_line_chars: int = MIN_FALLBACK_LINE_CHARS):
        self.min_line_chars = min_line_chars

    def segment(self, text: str) -> SegmentationResult:
        if not text or not text.strip():
            return SegmentationResult()

        lines = text.splitlines()
        questions = self._by_markers(lines)
        if not questions:
            logger.info("No numbered questions found; using line-by-line fallback")
            questions = self._by_lines(lines)
        return SegmentationResult(questions=questions)

    def _by_markers(self, lines: List[str]) -> List[ExtractedQuestion]:
        found: List[tuple] = []
        for line in lines:
            match = QUESTION_MARKER.match(line)
            if match:
                found.append((match.group("number"), [match.group("body").strip()]))
                continue
            bare = NUMBER_ONLY_MARKER.match(line)
            if bare and (bare.group("prefix") or bare.group("punct")):
                found.append((bare.group("number"), []))
            elif found and line.strip():
                found[-1][1].append(line.strip())

        return [
            _question("\n".join(body), number or str(position))
            for position, (number, body) in enumerate(found, start=1)
            if body
        ]

    def _by_lines(self, lines: List[str]) -> List[ExtractedQuestion]:
        return [
            _question(line.strip(), str(idx))
            for idx, line in enumerate(lines, start=1)
            if len(line.strip()) > self.min_line_chars
        ]


class AISegmenter:
    """Asks the model for questions and falls back to the pattern segmenter."""

    def __init__(self, ai_client, fallback: Optional[PatternSegmenter] = None):
        self.ai_client = ai_client
        self.fallback = fallback or PatternSegmenter()

    def segment(self, text: str) -> SegmentationResult:
        if not text or not text.strip():
            return SegmentationResult()

        extracted = self.ai_client.extract_questions_from_text(text)
        questions = [
            ExtractedQuestion(
                question_text=item.question_text.strip(),
                question_number=item.question_number,
                marks=item.marks or 0,
                difficulty=Difficulty.parse(item.difficulty),
                ai_analysis={"concepts": list(item.concepts)} if item.concepts else {},
            )
            for item in extracted
            if item.question_text and item.question_text.strip()
        ]
        if not questions:
            logger.info("Model returned no questions; using pattern segmentation")
            return self.fallback.segment(text)
        return SegmentationResult(questions=questions)
