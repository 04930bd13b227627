from typing import Any, Dict, List, Optional, Sequence

from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from studyhub.core.domain.analysis import (
    Concept,
    ConceptCandidate,
    Difficulty,
    ExtractedQuestion,
    ResourceSummary,
)


# The resources table belongs to the main application schema; the statement
# below only provides the columns this service reads and writes for local runs.
TABLE_DDL = """
CREATE TABLE IF NOT EXISTS resources (
    id SERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    course_id INTEGER,
    course_title TEXT,
    uploader TEXT,
    file_url TEXT,
    file_type TEXT,
    rag_content TEXT,
    ai_processing_status TEXT,
    is_past_question BOOLEAN NOT NULL DEFAULT false,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS extracted_questions (
    id SERIAL PRIMARY KEY,
    resource_id INTEGER NOT NULL,
    question_text TEXT NOT NULL CHECK (length(question_text) > 0),
    question_number TEXT,
    marks DOUBLE PRECISION NOT NULL DEFAULT 0,
    difficulty TEXT NOT NULL DEFAULT 'MEDIUM',
    ai_analysis JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_extracted_questions_resource ON extracted_questions(resource_id);
CREATE TABLE IF NOT EXISTS concepts (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL DEFAULT '',
    ai_summary TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

RESOURCE_COLUMNS = "id, title, course_title, uploader, file_type, ai_processing_status, rag_content"
CONCEPT_COLUMNS = "id, name, description, category, ai_summary"


def _row_to_resource(row) -> ResourceSummary:
    return ResourceSummary(
        id=int(row["id"]),
        title=row["title"],
        course_title=row.get("course_title"),
        uploader=row.get("uploader"),
        file_type=row.get("file_type"),
        ai_processing_status=row.get("ai_processing_status"),
        rag_content=row.get("rag_content"),
    )


def _row_to_concept(row) -> Concept:
    return Concept(
        id=int(row["id"]),
        name=row["name"],
        description=row.get("description") or "",
        category=row.get("category") or "",
        ai_summary=row.get("ai_summary") or "",
    )


def _row_to_question(row) -> ExtractedQuestion:
    return ExtractedQuestion(
        id=int(row["id"]),
        resource_id=int(row["resource_id"]),
        question_text=row["question_text"],
        question_number=row.get("question_number"),
        marks=float(row.get("marks") or 0),
        difficulty=Difficulty.parse(row.get("difficulty")),
        ai_analysis=row.get("ai_analysis") or {},
    )


class ContentRepository:
    """Resources, extracted questions and concepts."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def ensure_tables(self) -> None:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(TABLE_DDL)
            conn.commit()

    # ---------- resources ----------

    def get_resource(self, resource_id: int) -> Optional[ResourceSummary]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {RESOURCE_COLUMNS} FROM resources WHERE id = %(id)s",
                {"id": resource_id},
            )
            row = cur.fetchone()
        return _row_to_resource(row) if row else None

    def set_rag_content(self, resource_id: int, excerpt: str) -> None:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                "UPDATE resources SET rag_content = %(excerpt)s WHERE id = %(id)s",
                {"id": resource_id, "excerpt": excerpt},
            )
            conn.commit()

    def set_processing_status(self, resource_id: int, status: str) -> None:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                UPDATE resources
                SET ai_processing_status = %(status)s, is_past_question = true
                WHERE id = %(id)s
                """,
                {"id": resource_id, "status": status},
            )
            conn.commit()

    def list_rag_documents(self, limit: int = 50, course_id: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        where = ["rag_content IS NOT NULL"]
        if course_id is not None:
            where.append("course_id = %(course_id)s")
            params["course_id"] = course_id
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT id, title, description, rag_content
                FROM resources
                WHERE {" AND ".join(where)}
                ORDER BY created_at DESC
                LIMIT %(limit)s
                """,
                params,
            )
            return list(cur.fetchall())

    # ---------- questions ----------

    def replace_questions(self, resource_id: int, questions: Sequence[ExtractedQuestion]) -> int:
        """Swap the resource's stored questions for this run's set."""
        params = [
            {
                "resource_id": resource_id,
                "question_text": q.question_text,
                "question_number": q.question_number,
                "marks": q.marks,
                "difficulty": q.difficulty.value,
                "ai_analysis": Json(q.ai_analysis or {}),
            }
            for q in questions
        ]
        # One transaction: readers see either the previous set or the new one.
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                "DELETE FROM extracted_questions WHERE resource_id = %(resource_id)s",
                {"resource_id": resource_id},
            )
            if params:
                cur.executemany(
                    """
                    INSERT INTO extracted_questions
                        (resource_id, question_text, question_number, marks, difficulty, ai_analysis)
                    VALUES
                        (%(resource_id)s, %(question_text)s, %(question_number)s, %(marks)s, %(difficulty)s, %(ai_analysis)s)
                    """,
                    params,
                )
            conn.commit()
        return len(params)

    def list_questions(self, resource_id: int) -> List[ExtractedQuestion]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, resource_id, question_text, question_number, marks, difficulty, ai_analysis
                FROM extracted_questions
                WHERE resource_id = %(resource_id)s
                ORDER BY id
                """,
                {"resource_id": resource_id},
            )
            rows = cur.fetchall()
        return [_row_to_question(row) for row in rows]

    # ---------- concepts ----------

    def find_concept(self, name: str) -> Optional[Concept]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {CONCEPT_COLUMNS} FROM concepts WHERE name = %(name)s",
                {"name": name},
            )
            row = cur.fetchone()
        return _row_to_concept(row) if row else None

    def get_or_create_concept(self, candidate: ConceptCandidate) -> Concept:
        existing = self.find_concept(candidate.name)
        if existing is not None:
            return existing
        with self.pool.connection() as conn, conn.cursor() as cur:
            # ON CONFLICT keeps a concurrent insert of the same name to one row.
            cur.execute(
                """
                INSERT INTO concepts (name, description, category, ai_summary)
                VALUES (%(name)s, %(description)s, %(category)s, '')
                ON CONFLICT (name) DO NOTHING
                """,
                {
                    "name": candidate.name,
                    "description": candidate.description or "",
                    "category": candidate.category or "",
                },
            )
            cur.execute(
                f"SELECT {CONCEPT_COLUMNS} FROM concepts WHERE name = %(name)s",
                {"name": candidate.name},
            )
            row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError(f"Concept {candidate.name!r} could not be stored")
        return _row_to_concept(row)

    def list_concepts(self, limit: int = 100) -> List[Concept]:
        with self.pool.connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {CONCEPT_COLUMNS} FROM concepts ORDER BY name LIMIT %(limit)s",
                {"limit": limit},
            )
            rows = cur.fetchall()
        return [_row_to_concept(row) for row in rows]
