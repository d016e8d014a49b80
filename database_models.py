import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    Registered account. Sessions are JWTs whose ``sub`` is ``User.id``.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Project(Base):
    """
    Planning project owned by a single user.
    status: new -> in_progress (first question batch) -> finished (PRD generated)
    """
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    main_problem = Column(Text, nullable=True)
    min_feature_set = Column(Text, nullable=True)
    out_of_scope = Column(Text, nullable=True)
    success_criteria = Column(Text, nullable=True)
    status = Column(String(20), default="new", nullable=False, index=True)
    prd = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Question(Base):
    """
    AI planning question. Answers are written by the planning-questions endpoint.
    """
    __tablename__ = "ai_questions"
    __table_args__ = (
        UniqueConstraint("project_id", "sequence_number", name="uq_question_project_sequence"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    sequence_number = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
