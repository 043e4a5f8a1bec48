from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from models.card import Card

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"


def parse_card_line(line: str) -> List[str]:
    """Split one `question | answer | ...` line into its non-empty fields."""
    return [part.strip() for part in line.split(FIELD_SEPARATOR) if part.strip()]


def parse_card_lines(text: str) -> List[Tuple[str, List[str]]]:
    """Parse a card list into (question, answers) pairs.

    Comment lines (`#`), blank lines and lines with fewer than two non-empty
    fields are skipped. The answers keep the question in slot 0.
    """
    cards: List[Tuple[str, List[str]]] = []
    if not text:
        return cards
    for number, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        parts = parse_card_line(line)
        if len(parts) < 2:
            logger.warning(f"Skipping card line {number}: expected 'question | answer', got {stripped!r}")
            continue
        cards.append((parts[0], parts))
    return cards


def list_questions(text: str) -> List[str]:
    """Questions named by a card list, in order, for list-scoped sessions."""
    questions: List[str] = []
    for line in (text or "").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        question = line.split(FIELD_SEPARATOR)[0].strip()
        if question:
            questions.append(question)
    return questions


def format_card_line(card: Card) -> str:
    return f" {FIELD_SEPARATOR} ".join([card.question, *card.alternates])


def format_card_lines(cards: Iterable[Card]) -> str:
    return "\n".join(format_card_line(card) for card in cards)
