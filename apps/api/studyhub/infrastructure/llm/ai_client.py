import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import TypeAdapter

try:
    import openai
except ImportError:  # pragma: no cover - optional dependency
    openai = None  # type: ignore[assignment]

from studyhub.infrastructure.llm.models import (
    AIQuestion,
    ConceptAnalysis,
    ConceptList,
    ConceptRelationships,
    DetailedSolution,
    DifficultyAnalysis,
    DifficultyProgression,
    Insights,
    LearningPath,
    LearningStep,
    QuestionList,
    SearchInsights,
    StudyPlan,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CompletionFn = Callable[[str], str]

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_BLOCK = re.compile(r"(\{.*\}|\[.*\])", re.DOTALL)

DEFAULT_OBJECTIVES = ["Understand the key concepts", "Apply problem-solving skills"]


def parse_json_payload(raw: str) -> Any:
    """Strip markdown fences and decode the first JSON value in a model reply."""
    cleaned = _FENCE.sub("", raw or "").strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        match = _JSON_BLOCK.search(cleaned)
        if not match:
            raise
        return json.loads(match.group(1))


def _course(context: Optional[str]) -> str:
    return context or "General Academic"


class AIContentClient:
    """
    Prompted content generation over an OpenAI chat model.

    Every public method returns a usable value: model failures, malformed JSON
    and offline mode (no key, no ``openai`` package) all resolve to the
    method's fallback and a logged warning.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        complete: Optional[CompletionFn] = None,
        max_tokens: int = 1200,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self._complete = complete
        self._client = None
        if complete is None and openai is not None and api_key:
            self._client = openai.OpenAI(api_key=api_key)

    @property
    def available(self) -> bool:
        return self._complete is not None or self._client is not None

    def _chat(self, prompt: str) -> str:
        if self._complete is not None:
            return self._complete(prompt)

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are an expert academic assistant for university students."},
                {"role": "user", "content": prompt},
            ],
        }
        if "gpt-5" in self.model or "nano" in self.model:
            # Nano models: keep default temperature; use max_completion_tokens.
            kwargs["max_completion_tokens"] = self.max_tokens
        else:
            kwargs["temperature"] = 0.2
            kwargs["max_tokens"] = self.max_tokens

        resp = self._client.chat.completions.create(**kwargs)
        return resp.choices[0].message.content or ""

    def _text_call(self, prompt: str, fallback: str, label: str) -> str:
        if not self.available:
            return fallback
        try:
            text = self._chat(prompt).strip()
        except Exception as exc:
            logger.warning("AI %s failed: %s", label, exc)
            return fallback
        return text or fallback

    def _json_call(self, prompt: str, schema: Any, fallback: Callable[[], T], label: str) -> T:
        if not self.available:
            return fallback()
        try:
            payload = parse_json_payload(self._chat(prompt))
            return TypeAdapter(schema).validate_python(payload)
        except ValueError as exc:
            # ValidationError is a ValueError too.
            logger.warning("AI %s returned unusable JSON: %s", label, exc)
        except Exception as exc:
            logger.warning("AI %s failed: %s", label, exc)
        return fallback()

    # ---------- question analysis ----------

    def extract_questions_from_text(self, raw_text: str, course_context: Optional[str] = None) -> List[AIQuestion]:
        prompt = f"""
You are an expert academic question extractor. Extract individual questions from the following text which appears to be from a past question paper or exam.

Course Context: {_course(course_context)}

Text to analyze:
{raw_text}

Return JSON:
{{"questions": [{{"questionNumber": "1a", "questionText": "Complete question text", "marks": 5, "difficulty": "EASY|MEDIUM|HARD|EXPERT", "concepts": ["concept1", "concept2"]}}]}}

Rules:
1. Each question should be complete and self-contained
2. Include sub-questions as separate entries (e.g., 1a, 1b)
3. Identify 2-5 key concepts per question
4. If no clear question structure is found, return an empty array
5. Ignore instructions and headers

Return only valid JSON without any explanation.
"""
        result = self._json_call(prompt, QuestionList, QuestionList, "question extraction")
        return result.questions

    def identify_question_concepts(self, question_text: str, course_context: Optional[str] = None) -> List[ConceptAnalysis]:
        prompt = f"""
You are an expert academic concept analyzer. Identify the key academic concepts covered by this question.

Course Context: {_course(course_context)}

Question: {question_text}

Return JSON:
{{"concepts": [{{"name": "Concept Name", "confidence": 0.95, "isMainConcept": true, "description": "Brief explanation", "category": "Subject Area"}}]}}

Mark 1-2 concepts as main concepts and include 3-7 concepts in total, using standard academic terminology.
Return only valid JSON without explanation.
"""
        result = self._json_call(prompt, ConceptList, ConceptList, "concept identification")
        return result.concepts

    def generate_concept_summary(self, concept_name: str, context: str = "") -> str:
        prompt = f"""
You are an expert educator. Provide a clear, concise explanation of the following academic concept.

Concept: {concept_name}
Context: {context}

Include a short definition, the key principles, common applications and why it matters.
Target undergraduate level understanding.
"""
        return self._text_call(prompt, f"{concept_name}: summary unavailable.", "concept summary")

    def analyze_question_difficulty(self, question: str, concepts: Sequence[str] = (), context: str = "") -> DifficultyAnalysis:
        prompt = f"""
Analyze the difficulty of this question:

Question: {question}
Concepts: {", ".join(concepts)}
Context: {context}

Return JSON:
{{"level": "EASY|MEDIUM|HARD|EXPERT", "factors": ["factor 1"], "cognitiveLevel": "remember|understand|apply|analyze|evaluate|create", "timeEstimate": "minutes", "confidence": 0.85}}
"""
        return self._json_call(
            prompt,
            DifficultyAnalysis,
            lambda: DifficultyAnalysis(factors=["Standard academic question"]),
            "difficulty analysis",
        )

    def analyze_difficulty_progression(
        self, questions: Sequence[Dict[str, Any]], course_level: int = 100, resource_type: str = "past_question"
    ) -> DifficultyProgression:
        prompt = f"""
Analyze the difficulty progression of these questions:

Questions: {json.dumps(list(questions)[:10], indent=2, default=str)}
Course Level: {course_level}
Resource Type: {resource_type}

Return JSON:
{{"distribution": {{"EASY": 0, "MEDIUM": 0, "HARD": 0, "EXPERT": 0}}, "progression": "gradual|steep|mixed|inconsistent", "recommendations": ["..."], "averageDifficulty": "MEDIUM", "range": "EASY to HARD"}}
"""
        return self._json_call(
            prompt,
            DifficultyProgression,
            lambda: DifficultyProgression(
                distribution={"EASY": 0, "MEDIUM": len(questions), "HARD": 0, "EXPERT": 0},
                recommendations=["Practice more varied difficulties"],
            ),
            "difficulty progression",
        )

    def generate_detailed_solution(
        self,
        question: str,
        concepts: Sequence[str] = (),
        difficulty: str = "MEDIUM",
        include_explanations: bool = True,
        generate_hints: bool = True,
        course_context: Optional[str] = None,
    ) -> DetailedSolution:
        prompt = f"""
Provide a detailed solution for this {difficulty} level question:

Question: {question}
Related Concepts: {", ".join(concepts)}
Course Context: {_course(course_context)}

Include explanations: {include_explanations}
Include hints: {generate_hints}

Return JSON:
{{"solution": "step by step solution", "explanation": "...", "hints": ["..."], "keyFormulas": ["..."], "commonMistakes": ["..."]}}
"""
        return self._json_call(
            prompt,
            DetailedSolution,
            lambda: DetailedSolution(
                solution="Solution generation unavailable",
                explanation="Unable to generate explanation",
            ),
            "detailed solution",
        )

    def generate_learning_objectives(self, question: str, concepts: Sequence[str] = ()) -> List[str]:
        prompt = f"""
Generate 2-3 learning objectives for this question:

Question: {question}
Concepts: {", ".join(concepts)}

Return a JSON array of strings. Each objective should start with an action verb.
"""
        return self._json_call(prompt, List[str], lambda: list(DEFAULT_OBJECTIVES), "learning objectives")

    # ---------- study support ----------

    def generate_study_plan(
        self,
        resources: Sequence[Dict[str, Any]],
        goals: Sequence[str],
        timeframe: str = "1 week",
        study_hours: int = 10,
        difficulty_level: str = "intermediate",
        study_level: str = "undergraduate",
    ) -> StudyPlan:
        listing = "\n".join(f"- {r.get('title')} ({r.get('file_type') or r.get('fileType')})" for r in list(resources)[:10])
        prompt = f"""
You are an expert study planner. Create a personalized study plan.

Study Level: {study_level}
Timeframe: {timeframe}
Goals: {", ".join(goals)}
Available Study Hours: {study_hours}
Difficulty Level: {difficulty_level}

Available Resources:
{listing}

Return JSON:
{{"overview": "Plan description", "activities": [{{"type": "reading|practice|review", "resource": "resource title", "duration": "minutes", "description": "..."}}], "tips": ["tip1"]}}
"""
        return self._json_call(
            prompt,
            StudyPlan,
            lambda: StudyPlan(
                overview="Unable to generate detailed study plan",
                tips=["Create a consistent study schedule", "Focus on understanding concepts", "Practice regularly"],
            ),
            "study plan",
        )

    def generate_insights(self, analytics_type: str, data: Dict[str, Any], context: str = "") -> Insights:
        prompt = f"""
You are an expert learning analytics advisor. Analyze the following data and provide actionable insights.

Analytics Type: {analytics_type}
Context: {context}

Data Summary:
{json.dumps(data, indent=2, default=str)}

Return JSON:
{{"keyPatterns": ["..."], "strengths": ["..."], "improvements": ["..."], "recommendations": [{{"priority": "high|medium|low", "action": "...", "rationale": "..."}}]}}
"""
        return self._json_call(
            prompt,
            Insights,
            lambda: Insights(key_patterns=["Unable to analyze patterns"]),
            "insights",
        )

    def generate_search_insights(
        self,
        query: str,
        results_count: int,
        top_concepts: Sequence[str] = (),
        user_courses: Sequence[str] = (),
        user_level: str = "undergraduate",
    ) -> SearchInsights:
        prompt = f"""
Analyze this search query and results to provide helpful insights to the student.

Search Query: "{query}"
Results Found: {results_count}
User Level: {user_level}
User's Courses: {", ".join(user_courses)}
Top Concepts in Results: {", ".join(top_concepts)}

Return JSON:
{{"searchAnalysis": "...", "conceptConnections": ["..."], "studyTips": ["..."], "nextSteps": ["..."]}}
"""
        return self._json_call(
            prompt,
            SearchInsights,
            lambda: SearchInsights(search_analysis="Analysis unavailable"),
            "search insights",
        )

    def analyze_concept_relationships(
        self, source: Dict[str, Any], related: Sequence[Dict[str, Any]], user_level: int = 100
    ) -> ConceptRelationships:
        listing = "\n".join(f"- {c.get('name')}: {c.get('description') or 'No description'}" for c in related)
        prompt = f"""
Analyze the relationships between these academic concepts for a level {user_level} student.

Source Concept: {source.get("name")}
Description: {source.get("description") or "No description"}

Related Concepts:
{listing}

Return JSON:
{{"relationships": [{{"targetConcept": "concept name", "type": "prerequisite|related|builds_upon|leads_to", "strength": 0.8, "explanation": "..."}}], "overallStrength": 0.75, "suggestedOrder": ["concept1"]}}
"""
        return self._json_call(
            prompt,
            ConceptRelationships,
            lambda: ConceptRelationships(suggested_order=[str(source.get("name") or "")]),
            "concept relationships",
        )

    def generate_learning_path(
        self,
        concepts: Sequence[Dict[str, Any]],
        user_level: int = 100,
        mastered: Sequence[int] = (),
        time_constraints: str = "flexible",
    ) -> LearningPath:
        listing = "\n".join(f"- {c.get('name')}: {c.get('description') or 'No description'}" for c in concepts)
        prompt = f"""
Create an optimal learning sequence for these concepts:

{listing}

User Level: {user_level}
Already Mastered Concept IDs: {", ".join(str(m) for m in mastered)}
Time Constraints: {time_constraints}

Return JSON:
{{"sequence": [{{"concept": "concept name", "order": 1, "reasoning": "why this order", "estimatedHours": 4}}], "timeEstimate": "total hours", "milestones": ["..."], "prerequisites": ["..."]}}
"""

        def sequential() -> LearningPath:
            return LearningPath(
                sequence=[
                    LearningStep(concept=str(c.get("name")), order=i, reasoning="Sequential learning", estimated_hours=3)
                    for i, c in enumerate(concepts, start=1)
                ],
                time_estimate=str(len(concepts) * 3),
                milestones=["Complete first half", "Complete all concepts"],
            )

        return self._json_call(prompt, LearningPath, sequential, "learning path")

    def answer_question_with_rag(
        self, question: str, context_resources: Sequence[str], course_context: Optional[str] = None
    ) -> str:
        context = "\n\n---\n\n".join(context_resources)
        prompt = f"""
You are an expert tutor. Answer the following question using the provided context from educational resources.

Course Context: {_course(course_context)}

Question: {question}

Available Resources:
{context}

Be comprehensive but concise, mention which resources support the answer and say so when the context is not enough.
"""
        if not context_resources:
            fallback = "No relevant resources were found to answer this question."
        else:
            bullets = "\n".join(f"- {c[:200]}" for c in context_resources if c)
            fallback = f"Unable to generate an answer right now. Relevant material:\n{bullets}"
        return self._text_call(prompt, fallback, "RAG answer")
