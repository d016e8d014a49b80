from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GeneratedQuestion(BaseModel):
    """Question produced by the generation engine, not yet persisted."""
    question: str
    sequence_number: int


class QuestionAnswer(BaseModel):
    """Previously asked question, used as context for the next batch."""
    model_config = ConfigDict(from_attributes=True)

    question: str
    answer: Optional[str] = None


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    question: str
    answer: Optional[str] = None
    sequence_number: int
    created_at: datetime


class AnswerItem(BaseModel):
    question_id: str
    question: str
    answer: str


class SubmitAnswersRequest(BaseModel):
    answers: List[AnswerItem] = Field(..., description="Answers keyed by question_id")
