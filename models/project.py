from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class ProjectDetails(BaseModel):
    """Descriptive fields used to build the LLM project context."""
    model_config = ConfigDict(from_attributes=True)

    name: str = ""
    description: Optional[str] = None
    main_problem: Optional[str] = None
    min_feature_set: Optional[str] = None
    out_of_scope: Optional[str] = None
    success_criteria: Optional[str] = None


class CreateProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    main_problem: Optional[str] = None
    min_feature_set: Optional[str] = None
    out_of_scope: Optional[str] = None
    success_criteria: Optional[str] = None


class UpdateProjectRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    main_problem: Optional[str] = None
    min_feature_set: Optional[str] = None
    out_of_scope: Optional[str] = None
    success_criteria: Optional[str] = None


class ProjectListQuery(BaseModel):
    page: int = Field(default=1, gt=0)
    limit: int = Field(default=10, gt=0, le=100)
    search: Optional[str] = None
    status: Optional[ProjectStatus] = None
    sort: Literal["name", "created_at", "updated_at", "status"] = "created_at"
    order: Literal["asc", "desc"] = "desc"


class ProjectListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    created_at: datetime
    updated_at: datetime


class ProjectOut(ProjectListItem):
    user_id: str
    main_problem: Optional[str] = None
    min_feature_set: Optional[str] = None
    out_of_scope: Optional[str] = None
    success_criteria: Optional[str] = None
    prd: Optional[str] = None


class Pagination(BaseModel):
    total_count: int
    page_count: int
    current_page: int
    per_page: int
