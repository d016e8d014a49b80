"""
Projects API - project CRUD, planning questions and PRD generation

Ownership of /api/projects/{project_id}/... is enforced by AuthGuardMiddleware
before any handler here runs; handlers only read request.state.user_id.
"""
import logging
import math
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.errors import AppError, AuthenticationError, NotFoundError, ValidationError
from backend.utils.responses import success_response
from crud.project import ProjectRepository
from database import get_db
from models.project import (
    CreateProjectRequest,
    Pagination,
    ProjectListItem,
    ProjectListQuery,
    ProjectOut,
    UpdateProjectRequest,
)
from models.question import QuestionOut, SubmitAnswersRequest
from services import planning_service
from services.prd_service import generate_prd
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

projects_router = APIRouter(prefix="/api/projects", tags=["projects"])

MAX_QUESTION_COUNT = 20


def get_current_user_id(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthenticationError("Authentication required")
    return user_id


def get_llm_client(request: Request):
    """Completion client configured on the application."""
    return request.app.state.llm_client


def _project_out(project) -> dict:
    return ProjectOut.model_validate(project).model_dump(mode="json")


async def _load_project(db: AsyncSession, project_id: str):
    project = await ProjectRepository(db).get_project(project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


# ============================================================================
# PROJECT CRUD
# ============================================================================

@projects_router.get("")
@projects_router.get("/index", include_in_schema=False)
async def list_projects(
    query: Annotated[ProjectListQuery, Query()],
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's projects with search, status filter, sorting and pagination"""
    projects, total = await ProjectRepository(db).list_projects(
        user_id,
        page=query.page,
        limit=query.limit,
        search=query.search,
        status=query.status.value if query.status else None,
        sort=query.sort,
        order=query.order,
    )
    pagination = Pagination(
        total_count=total,
        page_count=math.ceil(total / query.limit),
        current_page=query.page,
        per_page=query.limit,
    )
    return success_response(
        [ProjectListItem.model_validate(p).model_dump(mode="json") for p in projects],
        pagination=pagination.model_dump(),
    )


@projects_router.post("")
async def create_project(
    request: CreateProjectRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a project owned by the caller"""
    project = await ProjectRepository(db).create_project(user_id, request.model_dump())
    log_endpoint_event("/projects", project.id, "success", {"action": "create"})
    return success_response(_project_out(project), status=201)


@projects_router.get("/{project_id}")
async def get_project(project_id: str, db: AsyncSession = Depends(get_db)):
    project = await _load_project(db, project_id)
    return success_response(_project_out(project))


@projects_router.put("/{project_id}")
async def update_project(
    project_id: str,
    request: UpdateProjectRequest,
    db: AsyncSession = Depends(get_db),
):
    """Update the descriptive fields or status of a project"""
    updates = request.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise ValidationError("No fields to update")

    repo = ProjectRepository(db)
    project = await repo.update_project(await _load_project(db, project_id), updates)
    log_endpoint_event("/projects/{id}", project_id, "success", {"action": "update", "fields": sorted(updates)})
    return success_response(_project_out(project))


@projects_router.delete("/{project_id}")
async def delete_project(project_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a project and its planning questions"""
    repo = ProjectRepository(db)
    await repo.delete_project(await _load_project(db, project_id))
    log_endpoint_event("/projects/{id}", project_id, "success", {"action": "delete"})
    return success_response({"id": project_id}, message="Project deleted")


# ============================================================================
# PLANNING QUESTIONS
# ============================================================================

@projects_router.post("/{project_id}/generate-questions")
async def generate_questions(
    project_id: str,
    count: int = Query(default=5, ge=1, le=MAX_QUESTION_COUNT),
    db: AsyncSession = Depends(get_db),
    client=Depends(get_llm_client),
):
    """Generate the next batch of planning questions (AI with template fallback)"""
    try:
        questions = await planning_service.generate_planning_questions(db, project_id, count, client)
    except AppError as e:
        log_endpoint_event("/projects/{id}/generate-questions", project_id, "error", {"error": e.message})
        raise

    log_endpoint_event("/projects/{id}/generate-questions", project_id, "success", {"count": len(questions)})
    return success_response(
        [QuestionOut.model_validate(q).model_dump(mode="json") for q in questions],
        project_id=project_id,
    )


@projects_router.get("/{project_id}/planning-questions")
async def list_planning_questions(
    project_id: str,
    count: Optional[int] = Query(default=None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    questions = await planning_service.list_planning_questions(db, project_id, count)
    return success_response(
        [QuestionOut.model_validate(q).model_dump(mode="json") for q in questions],
        project_id=project_id,
    )


@projects_router.post("/{project_id}/planning-questions")
async def submit_answers(
    project_id: str,
    request: SubmitAnswersRequest,
    db: AsyncSession = Depends(get_db),
):
    """Save answers to planning questions; resubmitting overwrites earlier answers"""
    if not request.answers:
        raise ValidationError("No answers provided")

    updated = await planning_service.submit_answers(db, project_id, request.answers)
    log_endpoint_event(
        "/projects/{id}/planning-questions", project_id, "success",
        {"submitted": len(request.answers), "updated": updated},
    )
    return {
        "success": True,
        "message": "Answers saved successfully",
        "project_id": project_id,
        "updated": updated,
    }


# ============================================================================
# PRD
# ============================================================================

@projects_router.post("/{project_id}/generate-prd")
async def generate_project_prd(
    project_id: str,
    db: AsyncSession = Depends(get_db),
    client=Depends(get_llm_client),
):
    """Generate the PRD planning summary and mark the project finished"""
    try:
        result = await generate_prd(db, project_id, client)
    except AppError as e:
        log_endpoint_event("/projects/{id}/generate-prd", project_id, "error", {"error": e.message, "status": e.status_code})
        raise

    log_endpoint_event("/projects/{id}/generate-prd", project_id, "success")
    return {
        "project": _project_out(result["project"]),
        "status": result["status"],
        "generated_at": result["generated_at"],
    }
