from datetime import datetime, timedelta, timezone

import pytest

from config import DEFAULT_SRS
from models.card import Card
from models.settings import IntervalSetting, SrsSettings
from utils import srs

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return SrsSettings.merged(DEFAULT_SRS, None)


def _card(**fields):
    fields.setdefault("question", "犬")
    fields.setdefault("answers", ["犬", "inu"])
    return Card(**fields)


def test_first_correct_answer_uses_initial_interval(settings):
    updated = srs.record_outcome(_card(), True, settings, now=NOW)
    assert updated.repetitions == 1
    assert updated.interval == 1440
    assert updated.efactor == pytest.approx(2.6)
    assert updated.next_review_date == NOW + timedelta(minutes=1440)


def test_second_and_later_intervals(settings):
    second = srs.record_outcome(_card(repetitions=1, interval=1440), True, settings, now=NOW)
    assert second.interval == 6 * 1440
    third = srs.record_outcome(_card(repetitions=2, interval=8640, efactor=2.5), True, settings, now=NOW)
    assert third.repetitions == 3
    assert third.interval == 21600
    rounded = srs.record_outcome(_card(repetitions=3, interval=10, efactor=1.35), True, settings, now=NOW)
    assert rounded.interval == 14


def test_incorrect_answer_lapses_card(settings):
    updated = srs.record_outcome(_card(repetitions=4, interval=9000), False, settings, now=NOW)
    assert updated.repetitions == 0
    assert updated.interval == 10
    assert updated.total_mistakes == 1
    # quality 1 costs 0.54 of ease
    assert updated.efactor == pytest.approx(1.96)
    assert updated.next_review_date == NOW + timedelta(minutes=10)


def test_repeated_mistakes_add_penalty_after_ease_update(settings):
    updated = srs.record_outcome(_card(total_mistakes=7), False, settings, now=NOW)
    assert updated.total_mistakes == 8
    assert updated.efactor == pytest.approx(2.5 - 0.54 - 0.06)


def test_efactor_never_drops_below_floor(settings):
    card = _card(efactor=1.3, total_mistakes=40)
    for _ in range(3):
        card = srs.record_outcome(card, False, settings, now=NOW)
        assert card.efactor >= srs.MIN_EFACTOR
    assert card.efactor == pytest.approx(1.3)


def test_mistake_penalty_is_capped():
    assert srs.mistake_penalty(5) == 0.0
    assert srs.mistake_penalty(6) == pytest.approx(0.02)
    assert srs.mistake_penalty(100) == pytest.approx(0.3)


def test_interval_units_convert_to_minutes():
    assert srs.interval_to_minutes(IntervalSetting(value=2, unit="hours")) == 120
    assert srs.interval_to_minutes(IntervalSetting(value=3, unit="days")) == 4320
    assert srs.interval_to_minutes(IntervalSetting(value=15, unit="minutes")) == 15


def test_select_due_orders_by_mistakes_then_ease():
    past = NOW - timedelta(hours=1)
    future = NOW + timedelta(days=1)
    fresh = _card(question="a")
    hard = _card(question="b", repetitions=1, total_mistakes=3, efactor=2.0, next_review_date=past)
    harder = _card(question="c", repetitions=1, total_mistakes=3, efactor=1.5, next_review_date=past)
    suspended = _card(question="d", is_suspended=True)
    later = _card(question="e", repetitions=1, next_review_date=future)

    due = srs.select_due([fresh, hard, harder, suspended, later], now=NOW)
    assert [card.question for card in due] == ["c", "b", "a"]
    assert [card.question for card in srs.select_active([fresh, suspended, later])] == ["a", "e"]


def test_filter_scope_list_follows_given_order():
    cards = [_card(question="a"), _card(question="b", is_starred=True), _card(question="c")]
    assert [c.question for c in srs.filter_scope(cards, "list", ["c", "x", "a", "c"])] == ["c", "a"]
    assert [c.question for c in srs.filter_scope(cards, "starred")] == ["b"]
    assert len(srs.filter_scope(cards, "all")) == 3
