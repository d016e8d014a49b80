"""
Question Service - AI planning-question generation with template fallback
"""
import json
import logging
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from config.settings import settings
from backend.utils.errors import GenerationError
from models.project import ProjectDetails
from models.question import GeneratedQuestion, QuestionAnswer
from services.openrouter_service import (
    ChatMessage,
    CompletionRequest,
    json_schema_format,
)
from services.prompts import build_questions_user_message, generate_questions_prompt
from services.question_templates import category_of, fallback_questions

logger = logging.getLogger(__name__)

MAX_TOKENS = 2000

_questions_adapter = TypeAdapter(List[str])


def questions_schema(count: int) -> dict:
    """JSON schema of an array of exactly `count` question strings."""
    return {
        "type": "array",
        "minItems": count,
        "maxItems": count,
        "items": {"type": "string"},
    }


def parse_questions(content: Optional[str], count: int) -> List[str]:
    """
    Validate model output against the questions schema.

    Raises:
        GenerationError: empty content, invalid JSON, wrong shape or wrong length
    """
    if not content:
        raise GenerationError("No content in AI response")
    try:
        questions = _questions_adapter.validate_python(json.loads(content))
    except (ValueError, PydanticValidationError) as e:
        raise GenerationError("AI returned an invalid response format", {"reason": str(e)}) from e
    if len(questions) != count:
        raise GenerationError(
            f"AI returned {len(questions)} questions, expected {count}",
            {"expected": count, "received": len(questions)},
        )
    return questions


async def _generate_with_ai(
    project_details: ProjectDetails,
    client,
    api_key: Optional[str],
    count: int,
    start_sequence_number: int,
    previous_qa: Sequence[QuestionAnswer],
) -> List[GeneratedQuestion]:
    request = CompletionRequest(
        model=settings.openrouter_model,
        messages=[
            ChatMessage(role="system", content=generate_questions_prompt(count)),
            ChatMessage(role="user", content=build_questions_user_message(project_details, count, previous_qa)),
        ],
        max_tokens=MAX_TOKENS,
        response_format=json_schema_format("questions", questions_schema(count)),
    )
    result = await client.complete(request, api_key)
    questions = parse_questions(result.content, count)
    return [
        GeneratedQuestion(question=text, sequence_number=start_sequence_number + index)
        for index, text in enumerate(questions)
    ]


async def generate_questions(
    project_details: ProjectDetails,
    client,
    api_key: Optional[str] = None,
    count: int = 5,
    start_sequence_number: int = 1,
    previous_qa: Optional[Sequence[QuestionAnswer]] = None,
) -> List[GeneratedQuestion]:
    """
    Generate `count` planning questions for a project.

    Args:
        project_details: Descriptive project fields used as context
        client: Completion client exposing ``complete(request, api_key)``
        api_key: OpenRouter credential (the client's default when None)
        count: Number of questions to return
        start_sequence_number: Sequence number of the first question
        previous_qa: Earlier questions; answered ones steer the new batch

    Returns:
        Exactly `count` questions numbered start_sequence_number onwards.
        Any AI failure (provider error, timeout, invalid output) is logged
        and answered with template questions instead of being raised.
    """
    try:
        return await _generate_with_ai(
            project_details, client, api_key, count, start_sequence_number, previous_qa or []
        )
    except Exception as e:
        logger.warning(f"AI question generation failed: {type(e).__name__}: {e} - using fallback")

    questions = fallback_questions(count, start_sequence_number)
    logger.info(f"Fallback questions from categories: {[category_of(q.question) for q in questions]}")
    return questions
