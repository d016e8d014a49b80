"""
UserRepository for database operations on User model
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, exists
from database_models import User


class UserRepository:
    """
    Repository class for User accounts.
    Emails are stored and compared lowercased.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Retrieve a user by email address (case-insensitive), or None."""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return bool(await self.db.scalar(
            select(exists().where(User.email == email.lower()))
        ))

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_active_user(self, user_id: str) -> Optional[User]:
        """
        User a session token may resolve to.

        Returns:
            The user when it exists and is active, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new account.

        Args:
            user_data: "email" and "hashed_password" (argon2 hash), optionally
                "name" and "is_active" (defaults to True)

        Returns:
            Created User object with its generated UUID
        """
        user = User(
            email=user_data["email"].lower(),
            hashed_password=user_data["hashed_password"],
            name=user_data.get("name"),
            is_active=user_data.get("is_active", True),
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user
