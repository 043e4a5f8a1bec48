import json
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a stored ISO timestamp; naive values are taken as UTC, missing ones as now."""
    if not value:
        return utc_now()
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CardStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    STARRED = "starred"


class CardBase(BaseModel):
    question: str
    answers: List[str]

    @field_validator("question")
    @classmethod
    def validate_question(cls, v):
        if not v.strip():
            raise ValueError("Question must not be empty")
        return v.strip()


class CardCreate(CardBase):
    pass


class Card(CardBase):
    repetitions: int = Field(default=0, ge=0)
    efactor: float = Field(default=2.5, ge=1.3)
    interval: int = 0  # minutes
    next_review_date: datetime = Field(default_factory=utc_now)
    is_suspended: bool = False
    is_starred: bool = False
    total_mistakes: int = Field(default=0, ge=0)

    class Config:
        from_attributes = True

    @classmethod
    def from_row(cls, row) -> "Card":
        """Build a card from a `cards` table row."""
        return cls(
            question=row["question"],
            answers=json.loads(row["answers"]),
            repetitions=int(row["repetitions"] or 0),
            efactor=float(row["efactor"] if row["efactor"] is not None else 2.5),
            interval=int(row["interval_minutes"] or 0),
            next_review_date=parse_timestamp(row["next_review_date"]),
            is_suspended=bool(row["is_suspended"]),
            is_starred=bool(row["is_starred"]),
            total_mistakes=int(row["total_mistakes"] or 0),
        )

    def to_row(self) -> tuple:
        """Column values in the order used by repository.save_card."""
        return (
            self.question,
            json.dumps(self.answers, ensure_ascii=False),
            self.repetitions,
            self.efactor,
            self.interval,
            self.next_review_date.astimezone(timezone.utc).isoformat(),
            int(self.is_suspended),
            int(self.is_starred),
            self.total_mistakes,
        )

    @property
    def alternates(self) -> List[str]:
        return self.answers[1:]


class CardRename(BaseModel):
    old_question: str
    new_question: str
    answers: List[str]


class CardFlag(BaseModel):
    question: str
    suspended: Optional[bool] = None


class CardRef(BaseModel):
    question: str
