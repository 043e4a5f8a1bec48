from pydantic import BaseModel, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

class SessionMode(str, Enum):
    REVIEW = "review"
    CRAM = "cram"

class ReviewScope(str, Enum):
    ALL = "all"
    STARRED = "starred"
    LIST = "list"

class ReviewHistoryEntry(BaseModel):
    id: Optional[int] = None
    question: str
    is_correct: bool
    review_date: datetime
    interval_at_review: int
    efactor_at_review: float

    class Config:
        from_attributes = True

class SessionStart(BaseModel):
    mode: SessionMode = SessionMode.REVIEW
    scope: ReviewScope = ReviewScope.ALL
    questions: List[str] = []
    text: Optional[str] = None  # card list whose questions define the 'list' scope
    shuffle: Optional[bool] = None

    @field_validator('questions')
    @classmethod
    def strip_questions(cls, v):
        return [q.strip() for q in v if q.strip()]
