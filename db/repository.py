"""Row-level persistence for cards, review history and the settings record.

Every function takes an open connection and leaves committing to the caller,
so a store operation can group its statements into one transaction.
"""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from models.card import Card, parse_timestamp
from models.review import ReviewHistoryEntry

from .schema import SETTINGS_KEY


def load_cards(conn: sqlite3.Connection) -> List[Card]:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM cards")
    return [Card.from_row(row) for row in cursor.fetchall()]


def save_card(conn: sqlite3.Connection, card: Card) -> None:
    conn.execute(
        """
        INSERT INTO cards (question, answers, repetitions, efactor, interval_minutes,
                           next_review_date, is_suspended, is_starred, total_mistakes)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(question) DO UPDATE SET
            answers = excluded.answers,
            repetitions = excluded.repetitions,
            efactor = excluded.efactor,
            interval_minutes = excluded.interval_minutes,
            next_review_date = excluded.next_review_date,
            is_suspended = excluded.is_suspended,
            is_starred = excluded.is_starred,
            total_mistakes = excluded.total_mistakes
        """,
        card.to_row(),
    )


def delete_card(conn: sqlite3.Connection, question: str) -> None:
    """Delete a card together with its review history."""
    conn.execute("DELETE FROM review_history WHERE question = ?", (question,))
    conn.execute("DELETE FROM cards WHERE question = ?", (question,))


def append_history(conn: sqlite3.Connection, entry: ReviewHistoryEntry) -> int:
    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT INTO review_history (question, is_correct, review_date, interval_at_review, efactor_at_review)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            entry.question,
            int(entry.is_correct),
            entry.review_date.astimezone(timezone.utc).isoformat(),
            entry.interval_at_review,
            entry.efactor_at_review,
        ),
    )
    return cursor.lastrowid


def query_history(conn: sqlite3.Connection, question: Optional[str] = None, limit: int = 100) -> List[ReviewHistoryEntry]:
    cursor = conn.cursor()
    if question:
        cursor.execute(
            "SELECT * FROM review_history WHERE question = ? ORDER BY review_date DESC, id DESC LIMIT ?",
            (question, limit),
        )
    else:
        cursor.execute(
            "SELECT * FROM review_history ORDER BY review_date DESC, id DESC LIMIT ?",
            (limit,),
        )
    return [
        ReviewHistoryEntry(
            id=row["id"],
            question=row["question"],
            is_correct=bool(row["is_correct"]),
            review_date=parse_timestamp(row["review_date"]),
            interval_at_review=int(row["interval_at_review"] or 0),
            efactor_at_review=float(row["efactor_at_review"] or 2.5),
        )
        for row in cursor.fetchall()
    ]


def load_settings(conn: sqlite3.Connection) -> Optional[dict]:
    cursor = conn.cursor()
    cursor.execute("SELECT value FROM settings WHERE key = ?", (SETTINGS_KEY,))
    row = cursor.fetchone()
    if not row or not row["value"]:
        return None
    return json.loads(row["value"])


def save_settings(conn: sqlite3.Connection, settings: dict) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
        (SETTINGS_KEY, json.dumps(settings)),
    )


def history_entry(card: Card, is_correct: bool, when: Optional[datetime] = None) -> ReviewHistoryEntry:
    """Snapshot the card's schedule at review time."""
    return ReviewHistoryEntry(
        question=card.question,
        is_correct=is_correct,
        review_date=when or datetime.now(timezone.utc),
        interval_at_review=card.interval,
        efactor_at_review=card.efactor,
    )
