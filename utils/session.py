"""ReviewSession: drives one review or cram session independent of HTTP.

The card on display is always the head of the queue. A correct answer moves
the card to the back (or retires it once its streak meets the session
requirement) and then waits for `advance`, either called explicitly or by the
auto-advance timer. A wrong answer leaves the card on display so the user can
try again, skip it, or suspend it.
"""
from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from models.card import Card
from models.review import ReviewScope, SessionMode
from models.settings import SrsSettings
from utils.card_store import CardStore
from utils.matching import HighlightResult, closest_answer, highlight_differences, is_accepted, normalize

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUMMARIZING = "summarizing"


class EmptySessionError(ValueError):
    """No cards matched the requested session; nothing was started."""


class SessionStateError(RuntimeError):
    """The requested action is not valid in the session's current state."""


@dataclass
class SessionCard:
    card: Card
    session_required_streak: int
    correct_streak: int = 0
    has_been_attempted: bool = False

    @property
    def question(self) -> str:
        return self.card.question

    @property
    def answers(self) -> List[str]:
        return self.card.answers

    @property
    def is_complete(self) -> bool:
        return self.correct_streak >= self.session_required_streak

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "is_starred": self.card.is_starred,
            "correct_streak": self.correct_streak,
            "session_required_streak": self.session_required_streak,
            "has_been_attempted": self.has_been_attempted,
        }


@dataclass
class GradeResult:
    question: str
    is_correct: bool
    answers: List[str]
    correct_streak: int
    session_required_streak: int
    retired: bool = False
    replay: bool = False
    closest_answer: Optional[str] = None
    highlight: Optional[HighlightResult] = None

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "is_correct": self.is_correct,
            "answers": self.answers,
            "correct_streak": self.correct_streak,
            "session_required_streak": self.session_required_streak,
            "retired": self.retired,
            "replay": self.replay,
            "closest_answer": self.closest_answer,
            "highlight": self.highlight.to_dict() if self.highlight else None,
        }


@dataclass
class SessionSummary:
    correct_count: int
    incorrect_count: int
    incorrect_cards: List[Card] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "incorrect_cards": [
                {"question": card.question, "answers": card.answers} for card in self.incorrect_cards
            ],
        }


class ReviewSession:
    def __init__(self, store: CardStore, auto_advance_delay: Optional[float] = None,
                 timer_factory: Optional[Callable[..., threading.Timer]] = None):
        self.store = store
        self.auto_advance_delay = auto_advance_delay or None
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self.state = SessionState.IDLE
        self.mode = SessionMode.REVIEW
        self.settings: Optional[SrsSettings] = None
        self.queue: List[SessionCard] = []
        self.correct_count = 0
        self.incorrect_count = 0
        self.incorrect_cards: List[SessionCard] = []
        self.last_correct: Optional[SessionCard] = None
        self.last_incorrect: Optional[tuple] = None  # (question, normalized answer)
        self.practicing_again = False
        self.pending_finish = False
        self.awaiting_advance = False
        self.last_result: Optional[GradeResult] = None
        self.summary: Optional[SessionSummary] = None

    # -- lifecycle -------------------------------------------------------

    @property
    def is_cramming(self) -> bool:
        return self.mode == SessionMode.CRAM

    @property
    def current(self) -> Optional[SessionCard]:
        if self.state != SessionState.RUNNING or not self.queue:
            return None
        return self.queue[0]

    def start(self, cards: Sequence[Card], mode: SessionMode, settings: SrsSettings,
              shuffle: bool = False) -> Optional[SessionCard]:
        with self._lock:
            if self.state != SessionState.IDLE:
                raise SessionStateError(f"Cannot start a session while {self.state.value}")
            if not cards:
                notice = "No cards to cram" if mode == SessionMode.CRAM else "No cards are due for review"
                raise EmptySessionError(notice)
            self._cancel_timer()
            cards = list(cards)
            if shuffle:
                random.shuffle(cards)
            self.mode = SessionMode(mode)
            self.settings = settings
            self.queue = [
                SessionCard(card=card, session_required_streak=settings.required_streak)
                for card in cards
            ]
            self.correct_count = 0
            self.incorrect_count = 0
            self.incorrect_cards = []
            self.last_correct = None
            self.last_incorrect = None
            self.practicing_again = False
            self.pending_finish = False
            self.awaiting_advance = False
            self.last_result = None
            self.summary = None
            self.state = SessionState.RUNNING
            logger.info(f"Started {self.mode.value} session with {len(self.queue)} cards")
            return self.current

    def start_review(self, settings: SrsSettings, scope: ReviewScope = ReviewScope.ALL,
                     questions: Optional[Sequence[str]] = None, shuffle: bool = False) -> Optional[SessionCard]:
        cards = self.store.due_cards(scope, questions)
        return self.start(cards, SessionMode.REVIEW, settings, shuffle)

    def start_cram(self, settings: SrsSettings, scope: ReviewScope = ReviewScope.ALL,
                   questions: Optional[Sequence[str]] = None, shuffle: bool = False) -> Optional[SessionCard]:
        cards = self.store.active_cards(scope, questions)
        return self.start(cards, SessionMode.CRAM, settings, shuffle)

    def _require_running(self) -> None:
        if self.state != SessionState.RUNNING:
            raise SessionStateError(f"No session is running (state: {self.state.value})")

    # -- grading ---------------------------------------------------------

    def submit(self, text: str) -> Optional[GradeResult]:
        """Grade an answer for the card on display; blank input is ignored."""
        with self._lock:
            self._require_running()
            answer = (text or "").strip()
            if not answer or self.awaiting_advance or not self.queue:
                return None
            self._cancel_timer()
            session_card = self.queue[0]
            session_card.has_been_attempted = True
            if is_accepted(answer, session_card.answers):
                result = self._handle_correct(session_card)
            else:
                result = self._handle_incorrect(session_card, answer)
            self.last_result = result
            logger.debug(
                f"Graded {session_card.question!r}: correct={result.is_correct} "
                f"streak={result.correct_streak}/{result.session_required_streak}"
            )
            return result

    def _handle_correct(self, session_card: SessionCard) -> GradeResult:
        replay = self.practicing_again
        self.last_correct = session_card
        self.last_incorrect = None
        if not replay:
            session_card.correct_streak = min(
                session_card.correct_streak + 1, session_card.session_required_streak
            )
            self.correct_count += 1
        self.practicing_again = False

        self.queue.pop(0)
        retired = session_card.is_complete
        if not retired:
            self.queue.append(session_card)

        if not self.is_cramming and not replay:
            self.store.log_review(session_card.question, True)
            if retired:
                self.store.record_outcome(session_card.question, True, self.settings)

        self.awaiting_advance = True
        self._schedule_advance()
        return GradeResult(
            question=session_card.question,
            is_correct=True,
            answers=session_card.answers,
            correct_streak=session_card.correct_streak,
            session_required_streak=session_card.session_required_streak,
            retired=retired,
            replay=replay,
        )

    def _handle_incorrect(self, session_card: SessionCard, answer: str) -> GradeResult:
        replay = self.practicing_again
        normalized = normalize(answer)
        repeated = self.last_incorrect == (session_card.question, normalized)
        if not replay and not repeated:
            session_card.session_required_streak += self.settings.penalty
        self.last_incorrect = (session_card.question, normalized)

        closest = closest_answer(answer, session_card.answers)
        highlight = highlight_differences(answer, closest) if closest else None

        if not replay:
            self.incorrect_count += 1
            if all(c.question != session_card.question for c in self.incorrect_cards):
                self.incorrect_cards.append(session_card)
            if not self.is_cramming:
                self.store.log_review(session_card.question, False)
                self.store.record_outcome(session_card.question, False, self.settings)

        return GradeResult(
            question=session_card.question,
            is_correct=False,
            answers=session_card.answers,
            correct_streak=session_card.correct_streak,
            session_required_streak=session_card.session_required_streak,
            replay=replay,
            closest_answer=closest,
            highlight=highlight,
        )

    # -- navigation ------------------------------------------------------

    def advance(self) -> Optional[SessionCard]:
        """Move on from a graded card; an empty queue ends the session."""
        with self._lock:
            if self.state != SessionState.RUNNING:
                return None
            self._cancel_timer()
            return self._show_next()

    def _show_next(self) -> Optional[SessionCard]:
        self.awaiting_advance = False
        self.last_result = None
        if not self.queue:
            self._summarize()
            return None
        return self.queue[0]

    def _displayed(self) -> Optional[SessionCard]:
        # After a correct answer the graded card stays on screen until advance
        if self.awaiting_advance:
            return self.last_correct
        return self.queue[0] if self.queue else None

    def _drop(self, session_card: SessionCard) -> None:
        self.queue = [c for c in self.queue if c.question != session_card.question]
        if self.last_correct is session_card:
            self.last_correct = None
        self.practicing_again = False

    def skip(self) -> Optional[SessionCard]:
        """Drop the card on display from this session without grading it."""
        with self._lock:
            self._require_running()
            self._cancel_timer()
            target = self._displayed()
            if target:
                self._drop(target)
            return self._show_next()

    def suspend_current(self) -> Optional[SessionCard]:
        """Suspend the card on display and drop it from the session."""
        with self._lock:
            self._require_running()
            self._cancel_timer()
            target = self._displayed()
            if target:
                self.store.set_suspended(target.question, True)
                self._drop(target)
            return self._show_next()

    def redo(self) -> SessionCard:
        """Practice the last correctly answered card again without it counting."""
        with self._lock:
            self._require_running()
            if not self.last_correct:
                raise SessionStateError("There is no correctly answered card to practice again")
            self._cancel_timer()
            card = self.last_correct
            self.queue = [c for c in self.queue if c.question != card.question]
            self.queue.insert(0, card)
            self.last_correct = None
            self.practicing_again = True
            self.awaiting_advance = False
            self.last_result = None
            return card

    def request_finish(self) -> Optional[SessionCard]:
        """Finish gracefully: keep only cards the user has already attempted."""
        with self._lock:
            self._require_running()
            if self.pending_finish:
                return self.current
            self.pending_finish = True
            head = self.queue[0] if self.queue else None
            self.queue = [c for c in self.queue if c.has_been_attempted]
            logger.info(f"Finishing session early with {len(self.queue)} attempted cards left")
            if not self.queue:
                self._cancel_timer()
                self.awaiting_advance = False
                self._summarize()
                return None
            if not self.awaiting_advance and head is not self.queue[0]:
                self.last_result = None
                self.practicing_again = False
            return self.queue[0]

    def rename_card(self, old_question: str, new_question: str, answers: Sequence[str]) -> None:
        with self._lock:
            for session_card in [*self.queue, *self.incorrect_cards]:
                if session_card.question == old_question:
                    session_card.card = session_card.card.model_copy(
                        update={"question": new_question, "answers": list(answers)}
                    )
            if self.last_incorrect and self.last_incorrect[0] == old_question:
                self.last_incorrect = (new_question, self.last_incorrect[1])

    # -- summary ---------------------------------------------------------

    def _summarize(self) -> SessionSummary:
        self.state = SessionState.SUMMARIZING
        self.last_correct = None
        if not self.is_cramming:
            for session_card in self.incorrect_cards:
                if session_card.question in self.store:
                    self.store.record_outcome(session_card.question, False, self.settings)
        self.summary = SessionSummary(
            correct_count=self.correct_count,
            incorrect_count=self.incorrect_count,
            incorrect_cards=[
                self.store.get(c.question) or c.card for c in self.incorrect_cards
            ],
        )
        logger.info(
            f"Session finished: {self.correct_count} correct, {self.incorrect_count} incorrect, "
            f"{len(self.incorrect_cards)} cards missed"
        )
        return self.summary

    def dismiss(self) -> None:
        with self._lock:
            if self.state != SessionState.SUMMARIZING:
                raise SessionStateError(f"No summary to dismiss (state: {self.state.value})")
            self.state = SessionState.IDLE
            self.queue = []
            self.incorrect_cards = []

    # -- auto-advance ----------------------------------------------------

    def _schedule_advance(self) -> None:
        if not self.auto_advance_delay:
            return
        timer = self._timer_factory(self.auto_advance_delay, self._auto_advance)
        timer.args = (timer,)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _auto_advance(self, timer: threading.Timer) -> None:
        with self._lock:
            # A timer cancelled or replaced after it fired must not advance
            if self._timer is not timer or not self.awaiting_advance:
                return
            self._timer = None
            if self.state == SessionState.RUNNING:
                self._show_next()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancel(self) -> None:
        """Abandon pending timers, e.g. on shutdown."""
        with self._lock:
            self._cancel_timer()

    # -- views -----------------------------------------------------------

    def remaining_count(self) -> int:
        return len({c.question for c in self.queue})

    def view(self) -> dict:
        with self._lock:
            current = self.current
            return {
                "state": self.state.value,
                "mode": self.mode.value,
                "current": current.to_dict() if current and not self.awaiting_advance else None,
                "awaiting_advance": self.awaiting_advance,
                "practicing_again": self.practicing_again,
                "pending_finish": self.pending_finish,
                "can_redo": self.last_correct is not None and self.state == SessionState.RUNNING,
                "remaining": self.remaining_count(),
                "correct_count": self.correct_count,
                "incorrect_count": self.incorrect_count,
                "last_result": self.last_result.to_dict() if self.last_result else None,
                "summary": self.summary.to_dict() if self.summary and self.state == SessionState.SUMMARIZING else None,
            }
