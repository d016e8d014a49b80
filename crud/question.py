"""
QuestionRepository for database operations on Question model
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from database_models import Question


class QuestionRepository:
    """
    Repository class for AI planning questions.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_project(self, project_id: str, limit: Optional[int] = None) -> List[Question]:
        """Questions of a project ordered by sequence number."""
        query = (
            select(Question)
            .where(Question.project_id == project_id)
            .order_by(Question.sequence_number.asc())
        )
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def max_sequence_number(self, project_id: str) -> int:
        """Highest sequence number used by the project, 0 when it has no questions."""
        value = await self.db.scalar(
            select(func.max(Question.sequence_number)).where(Question.project_id == project_id)
        )
        return value or 0

    async def create_questions(self, project_id: str, questions: List[dict]) -> List[Question]:
        """
        Insert a batch of unanswered questions.

        Args:
            project_id: Owning project
            questions: Dicts with "question" and "sequence_number"

        Returns:
            The inserted Question objects in sequence order
        """
        rows = [
            Question(
                project_id=project_id,
                question=item["question"],
                sequence_number=item["sequence_number"],
                answer=None,
            )
            for item in questions
        ]
        self.db.add_all(rows)
        await self.db.flush()
        for row in rows:
            await self.db.refresh(row)
        return sorted(rows, key=lambda row: row.sequence_number)

    async def update_answer(self, project_id: str, question_id: str, answer: str) -> bool:
        """
        Set the answer of one question of a project (last write wins).

        Returns:
            True if a question matched, False otherwise
        """
        result = await self.db.execute(
            update(Question)
            .where(Question.id == question_id, Question.project_id == project_id)
            .values(answer=answer)
        )
        return result.rowcount > 0
