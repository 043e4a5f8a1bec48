import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from models.card import Card
from models.settings import IntervalSetting, SrsSettings

MIN_EFACTOR = 1.3
MISTAKE_PENALTY_THRESHOLD = 5
MISTAKE_PENALTY_STEP = 0.02
MISTAKE_PENALTY_CAP = 0.3

UNIT_MINUTES = {
    "minutes": 1,
    "hours": 60,
    "days": 24 * 60,
}

def interval_to_minutes(setting: IntervalSetting) -> int:
    """Convert a {value, unit} interval setting to minutes."""
    unit = getattr(setting.unit, "value", setting.unit)
    return setting.value * UNIT_MINUTES[unit]

def map_outcome_to_quality(is_correct: bool) -> int:
    """Map a typed-answer outcome to SM-2 quality score (0-5)."""
    return 5 if is_correct else 1

def update_efactor(efactor: float, quality: int) -> float:
    return max(MIN_EFACTOR, efactor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)))

def mistake_penalty(total_mistakes: int) -> float:
    """Extra ease reduction for cards that keep lapsing."""
    if total_mistakes <= MISTAKE_PENALTY_THRESHOLD:
        return 0.0
    return min((total_mistakes - MISTAKE_PENALTY_THRESHOLD) * MISTAKE_PENALTY_STEP, MISTAKE_PENALTY_CAP)

def record_outcome(
    card: Card,
    is_correct: bool,
    settings: SrsSettings,
    now: Optional[datetime] = None,
) -> Card:
    """Return a copy of card rescheduled after one review outcome.

    The ease update always runs before the repeated-mistake penalty, so a
    lapse on a card with many mistakes loses both amounts.
    """
    repetitions = card.repetitions
    total_mistakes = card.total_mistakes
    if is_correct:
        repetitions += 1
        if repetitions == 1:
            interval = interval_to_minutes(settings.initial_interval)
        elif repetitions == 2:
            interval = interval_to_minutes(settings.second_interval)
        else:
            interval = math.ceil(card.interval * card.efactor)
    else:
        repetitions = 0
        interval = interval_to_minutes(settings.lapse_interval)
        total_mistakes += 1

    efactor = update_efactor(card.efactor, map_outcome_to_quality(is_correct))
    if not is_correct:
        efactor = max(MIN_EFACTOR, efactor - mistake_penalty(total_mistakes))

    anchor = now or datetime.now(timezone.utc)
    return card.model_copy(update={
        "repetitions": repetitions,
        "interval": interval,
        "efactor": efactor,
        "total_mistakes": total_mistakes,
        "next_review_date": anchor + timedelta(minutes=interval),
    })

def is_due(card: Card, now: Optional[datetime] = None) -> bool:
    if card.is_suspended:
        return False
    now = now or datetime.now(timezone.utc)
    return card.repetitions == 0 or card.next_review_date <= now

def select_due(cards: Iterable[Card], now: Optional[datetime] = None) -> List[Card]:
    """Due, non-suspended cards: most lifetime mistakes first, then hardest (lowest ease)."""
    now = now or datetime.now(timezone.utc)
    due = [card for card in cards if is_due(card, now)]
    return sorted(due, key=lambda card: (-card.total_mistakes, card.efactor))

def select_active(cards: Iterable[Card]) -> List[Card]:
    return [card for card in cards if not card.is_suspended]

def filter_scope(cards: Iterable[Card], scope: str, questions: Optional[Sequence[str]] = None) -> List[Card]:
    """Restrict cards to a review scope: 'all', 'starred' or 'list' (given questions, in their order)."""
    scope = getattr(scope, "value", scope)
    cards = list(cards)
    if scope == "starred":
        return [card for card in cards if card.is_starred]
    if scope == "list":
        order = {}
        for question in questions or []:
            order.setdefault(question, len(order))
        selected = [card for card in cards if card.question in order]
        return sorted(selected, key=lambda card: order[card.question])
    return cards
