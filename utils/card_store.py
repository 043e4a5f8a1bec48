"""In-memory card map mirroring the `cards` table.

The map is authoritative for reads; every mutation commits to SQLite first and
only then touches the map, so a failed write leaves both sides unchanged.
Mutations on a question that is not stored are no-ops returning None.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, ContextManager, Dict, List, Optional, Sequence

from db import database, repository
from models.card import Card, CardStatus
from models.review import ReviewHistoryEntry
from models.settings import SrsSettings
from utils import srs
from utils.cardlist import format_card_lines, parse_card_lines

logger = logging.getLogger(__name__)


class CardConflictError(ValueError):
    """Raised when a rename would overwrite another stored card."""


class CardStore:
    def __init__(self, conn_factory: Optional[Callable[[], ContextManager]] = None):
        self._conn_factory = conn_factory or database.get_conn
        self._cards: Dict[str, Card] = {}

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, question: str) -> bool:
        return question in self._cards

    def load(self) -> None:
        with self._conn_factory() as conn:
            cards = repository.load_cards(conn)
        self._cards = {card.question: card for card in cards}
        logger.info(f"Loaded {len(self._cards)} cards")

    def get(self, question: str) -> Optional[Card]:
        return self._cards.get(question)

    def all(self) -> List[Card]:
        return list(self._cards.values())

    def _save(self, card: Card) -> Card:
        with self._conn_factory() as conn:
            repository.save_card(conn, card)
            conn.commit()
        self._cards[card.question] = card
        return card

    def upsert(self, question: str, answers: Sequence[str]) -> Card:
        existing = self._cards.get(question)
        if existing:
            card = existing.model_copy(update={"answers": list(answers)})
        else:
            card = Card(question=question, answers=list(answers))
        return self._save(card)

    def delete(self, question: str) -> Optional[Card]:
        card = self._cards.get(question)
        if not card:
            return None
        with self._conn_factory() as conn:
            repository.delete_card(conn, question)
            conn.commit()
        del self._cards[question]
        return card

    def rename(self, old_question: str, new_question: str, answers: Sequence[str]) -> Optional[Card]:
        """Move a card to a new question, carrying its schedule; the old history goes with the old key."""
        card = self._cards.get(old_question)
        if not card:
            return None
        if new_question == old_question:
            return self.upsert(old_question, answers)
        if new_question in self._cards:
            raise CardConflictError(f"A card for {new_question!r} already exists")
        renamed = card.model_copy(update={"question": new_question, "answers": list(answers)})
        with self._conn_factory() as conn:
            repository.delete_card(conn, old_question)
            repository.save_card(conn, renamed)
            conn.commit()
        del self._cards[old_question]
        self._cards[new_question] = renamed
        return renamed

    def set_suspended(self, question: str, suspended: bool) -> Optional[Card]:
        card = self._cards.get(question)
        if not card:
            return None
        update = {"is_suspended": suspended}
        if not suspended:
            # A restored card goes straight back into the due pile
            update["next_review_date"] = datetime.now(timezone.utc)
        return self._save(card.model_copy(update=update))

    def toggle_starred(self, question: str) -> Optional[Card]:
        card = self._cards.get(question)
        if not card:
            return None
        return self._save(card.model_copy(update={"is_starred": not card.is_starred}))

    def record_outcome(self, question: str, is_correct: bool, settings: SrsSettings) -> Optional[Card]:
        card = self._cards.get(question)
        if not card:
            return None
        updated = srs.record_outcome(card, is_correct, settings)
        logger.debug(
            f"Rescheduled {question!r}: correct={is_correct} reps={updated.repetitions} "
            f"interval={updated.interval}m ef={updated.efactor:.2f}"
        )
        return self._save(updated)

    def log_review(self, question: str, is_correct: bool) -> Optional[ReviewHistoryEntry]:
        card = self._cards.get(question)
        if not card:
            return None
        entry = repository.history_entry(card, is_correct)
        with self._conn_factory() as conn:
            entry.id = repository.append_history(conn, entry)
            conn.commit()
        return entry

    def history(self, question: Optional[str] = None, limit: int = 100) -> List[ReviewHistoryEntry]:
        with self._conn_factory() as conn:
            return repository.query_history(conn, question, limit)

    def scoped(self, scope: str = "all", questions: Optional[Sequence[str]] = None) -> List[Card]:
        return srs.filter_scope(self._cards.values(), scope, questions)

    def due_cards(self, scope: str = "all", questions: Optional[Sequence[str]] = None) -> List[Card]:
        return srs.select_due(self.scoped(scope, questions))

    def active_cards(self, scope: str = "all", questions: Optional[Sequence[str]] = None) -> List[Card]:
        return srs.select_active(self.scoped(scope, questions))

    def counts(self, scope: str = "all", questions: Optional[Sequence[str]] = None) -> Dict[str, int]:
        return {
            "due": len(self.due_cards(scope, questions)),
            "active": len(self.active_cards(scope, questions)),
            "total": len(self._cards),
        }

    def by_status(self, status: str = "active") -> List[Card]:
        status = CardStatus(status)
        if status == CardStatus.SUSPENDED:
            return [card for card in self._cards.values() if card.is_suspended]
        if status == CardStatus.STARRED:
            return [card for card in self._cards.values() if card.is_starred]
        return srs.select_active(self._cards.values())

    def import_text(self, text: str, context: str = "active") -> int:
        """Import a card list; returns how many new cards were created.

        Existing cards get the listed answers, and the import context's flag
        (suspended or starred) is added but never cleared.
        """
        context = CardStatus(context)
        parsed = parse_card_lines(text)
        staged: Dict[str, Card] = {}
        added = 0
        for question, answers in parsed:
            existing = staged.get(question) or self._cards.get(question)
            if existing:
                card = existing.model_copy(update={
                    "answers": answers,
                    "is_suspended": existing.is_suspended or context == CardStatus.SUSPENDED,
                    "is_starred": existing.is_starred or context == CardStatus.STARRED,
                })
            else:
                added += 1
                card = Card(
                    question=question,
                    answers=answers,
                    is_suspended=context == CardStatus.SUSPENDED,
                    is_starred=context == CardStatus.STARRED,
                )
            staged[question] = card
        if staged:
            with self._conn_factory() as conn:
                for card in staged.values():
                    repository.save_card(conn, card)
                conn.commit()
            self._cards.update(staged)
        logger.info(f"Imported {len(staged)} cards ({added} new) as {context.value}")
        return added

    def export_text(self, status: str = "active") -> str:
        return format_card_lines(self.by_status(status))

    def load_settings(self, defaults: Dict) -> SrsSettings:
        """Saved scheduling settings overlaid on the configured defaults."""
        with self._conn_factory() as conn:
            saved = repository.load_settings(conn)
        return SrsSettings.merged(defaults, saved)

    def save_settings(self, settings: SrsSettings) -> None:
        with self._conn_factory() as conn:
            repository.save_settings(conn, settings.model_dump(mode="json"))
            conn.commit()
