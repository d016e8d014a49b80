"""
ProjectRepository for database operations on Project model
"""

from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from database_models import Project, Question

SORTABLE_COLUMNS = {
    "name": Project.name,
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
    "status": Project.status,
}


class ProjectRepository:
    """
    Repository class for Project database operations.
    Callers are responsible for ownership checks; the auth guard performs
    them before any project-scoped handler runs.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_project(self, project_id: str, for_update: bool = False) -> Optional[Project]:
        """
        Retrieve a project by ID, or None.

        With for_update the row stays locked (SELECT ... FOR UPDATE) until the
        transaction ends; SQLite ignores the lock clause.
        """
        query = select(Project).where(Project.id == project_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_owner_id(self, project_id: str) -> Optional[str]:
        """
        Return the owning user's ID for a project without loading the row.

        Returns:
            The user_id, or None when no project has this ID
        """
        result = await self.db.execute(
            select(Project.user_id).where(Project.id == project_id)
        )
        return result.scalar_one_or_none()

    async def list_projects(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        sort: str = "created_at",
        order: str = "desc",
    ) -> Tuple[List[Project], int]:
        """
        List a user's projects with filtering, sorting and pagination.

        Args:
            user_id: Owner whose projects are listed
            page: 1-based page number
            limit: Page size
            search: Case-insensitive substring match on the project name
            status: Exact status filter
            sort: One of SORTABLE_COLUMNS
            order: "asc" or "desc"

        Returns:
            (projects on the requested page, total matching count)
        """
        query = select(Project).where(Project.user_id == user_id)
        if search:
            query = query.where(Project.name.ilike(f"%{search}%"))
        if status:
            query = query.where(Project.status == status)

        total = await self.db.scalar(
            select(func.count()).select_from(query.subquery())
        )

        column = SORTABLE_COLUMNS.get(sort, Project.created_at)
        query = query.order_by(column.asc() if order == "asc" else column.desc())
        query = query.offset((page - 1) * limit).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def create_project(self, user_id: str, project_data: dict) -> Project:
        """Create a project owned by user_id. New projects start in 'new' status."""
        project = Project(user_id=user_id, status="new", **project_data)
        self.db.add(project)
        await self.db.flush()
        await self.db.refresh(project)
        return project

    async def update_project(self, project: Project, updates: dict) -> Project:
        """
        Update project fields as a single write.

        Args:
            project: Project object to update
            updates: Dictionary of fields to update (e.g., {"status": "finished"})

        Returns:
            Updated Project object
        """
        for key, value in updates.items():
            if hasattr(project, key):
                setattr(project, key, value)

        await self.db.flush()
        await self.db.refresh(project)
        return project

    async def delete_project(self, project: Project) -> None:
        """Delete a project together with its questions."""
        await self.db.execute(
            delete(Question).where(Question.project_id == project.id)
        )
        await self.db.delete(project)
        await self.db.flush()
