"""
Planning Service - question batches and answers for a project
"""
import asyncio
import logging
import weakref
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.errors import NotFoundError
from crud.project import ProjectRepository
from crud.question import QuestionRepository
from database_models import Question
from models.project import ProjectDetails, ProjectStatus
from models.question import AnswerItem, QuestionAnswer
from services.question_service import generate_questions

logger = logging.getLogger(__name__)

# project_id -> lock serializing sequence allocation within this process
_sequence_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _sequence_lock(project_id: str) -> asyncio.Lock:
    lock = _sequence_locks.get(project_id)
    if lock is None:
        lock = asyncio.Lock()
        _sequence_locks[project_id] = lock
    return lock


async def generate_planning_questions(
    db: AsyncSession,
    project_id: str,
    count: int,
    client,
    api_key: Optional[str] = None,
) -> List[Question]:
    """
    Generate the next batch of questions for a project and store it.

    Numbering continues after the highest existing sequence number. A project
    still in `new` status moves to `in_progress`.

    The LLM call runs unlocked. Allocating sequence numbers, inserting and
    committing happen under a per-project lock plus a row lock on the
    project, so concurrent batches for one project never share numbers.
    """
    project_repo = ProjectRepository(db)
    question_repo = QuestionRepository(db)

    project = await project_repo.get_project(project_id)
    if project is None:
        raise NotFoundError("Project not found")

    existing = await question_repo.list_for_project(project_id)
    provisional_start = max((q.sequence_number for q in existing), default=0) + 1

    generated = await generate_questions(
        ProjectDetails.model_validate(project),
        client,
        api_key,
        count=count,
        start_sequence_number=provisional_start,
        previous_qa=[QuestionAnswer.model_validate(q) for q in existing],
    )

    async with _sequence_lock(project_id):
        project = await project_repo.get_project(project_id, for_update=True)
        if project is None:
            raise NotFoundError("Project not found")

        start_sequence_number = await question_repo.max_sequence_number(project_id) + 1
        if start_sequence_number != provisional_start:
            logger.info(
                f"Project {project_id} gained questions during generation; "
                f"numbering from #{start_sequence_number} instead of #{provisional_start}"
            )

        if project.status == ProjectStatus.NEW.value:
            await project_repo.update_project(project, {"status": ProjectStatus.IN_PROGRESS.value})

        inserted = await question_repo.create_questions(
            project_id,
            [
                {"question": q.question, "sequence_number": start_sequence_number + index}
                for index, q in enumerate(generated)
            ],
        )
        await db.commit()

    logger.info(
        f"Stored {len(inserted)} questions for project {project_id} "
        f"(#{start_sequence_number}-#{start_sequence_number + len(inserted) - 1})"
    )
    return inserted


async def list_planning_questions(db: AsyncSession, project_id: str, count: Optional[int] = None) -> List[Question]:
    """Questions ordered by sequence number, optionally only the first `count`."""
    return await QuestionRepository(db).list_for_project(project_id, limit=count)


async def submit_answers(db: AsyncSession, project_id: str, answers: List[AnswerItem]) -> int:
    """
    Store answers by question id. Resubmitting overwrites (last write wins);
    ids that do not belong to the project are skipped.

    Returns:
        Number of questions updated
    """
    question_repo = QuestionRepository(db)
    updated = 0
    for item in answers:
        if await question_repo.update_answer(project_id, item.question_id, item.answer):
            updated += 1
        else:
            logger.warning(f"Answer for unknown question {item.question_id} in project {project_id} ignored")
    return updated
