"""
PRD Service - generates the planning summary document for a project

Unlike question generation there is no fallback here: a provider or parsing
failure is returned to the caller and the project is left untouched.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from backend.utils.errors import MalformedResponseError, NotFoundError
from crud.project import ProjectRepository
from crud.question import QuestionRepository
from models.project import ProjectStatus
from services.openrouter_service import ChatMessage, CompletionRequest, json_schema_format
from services.prompts import generate_prd_prompt

logger = logging.getLogger(__name__)

MAX_TOKENS = 2000
DOCUMENT_SCHEMA = {"type": "string"}


def parse_document(content: Optional[str]) -> str:
    """
    Decode the document from a response constrained to DOCUMENT_SCHEMA.

    The content must be a JSON string literal; its decoded value is the
    markdown document.
    """
    if not content:
        raise MalformedResponseError("No content in AI response")
    try:
        document = json.loads(content)
    except ValueError as e:
        raise MalformedResponseError("PRD response is not valid JSON", {"reason": str(e)}) from e
    if not isinstance(document, str):
        raise MalformedResponseError(
            "PRD response does not match the document schema",
            {"expected": "string", "received": type(document).__name__},
        )
    if not document.strip():
        raise MalformedResponseError("PRD response is empty")
    return document


async def generate_prd_document(project, questions: Sequence, client, api_key: Optional[str] = None) -> str:
    """
    Ask the model for the PRD planning summary.

    Args:
        project: Object with the descriptive project fields
        questions: Objects with question, answer and sequence_number
        client: Completion client exposing ``complete(request, api_key)``
        api_key: OpenRouter credential (the client's default when None)

    Returns:
        The markdown document
    """
    request = CompletionRequest(
        model=settings.openrouter_model,
        messages=[ChatMessage(role="user", content=generate_prd_prompt(project, questions))],
        max_tokens=MAX_TOKENS,
        response_format=json_schema_format("document", DOCUMENT_SCHEMA),
    )
    result = await client.complete(request, api_key)
    return parse_document(result.content)


async def generate_prd(
    db: AsyncSession,
    project_id: str,
    client,
    api_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Generate and store the PRD of a project.

    The document and the `finished` status are written in one update, only
    after generation succeeded. Persistence errors propagate unchanged.

    Returns:
        {"project": Project, "status": "success", "generated_at": ISO timestamp}
    """
    project_repo = ProjectRepository(db)
    project = await project_repo.get_project(project_id)
    if project is None:
        raise NotFoundError(f"Project with ID {project_id} not found")

    questions = await QuestionRepository(db).list_for_project(project_id)
    answered = sum(1 for q in questions if q.answer is not None)
    logger.info(f"Generating PRD for project {project_id} from {answered}/{len(questions)} answered questions")

    document = await generate_prd_document(project, questions, client, api_key)

    project = await project_repo.update_project(
        project, {"prd": document, "status": ProjectStatus.FINISHED.value}
    )
    logger.info(f"✅ PRD stored for project {project_id} ({len(document)} chars)")

    return {
        "project": project,
        "status": "success",
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
