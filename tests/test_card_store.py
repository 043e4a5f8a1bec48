from datetime import datetime, timedelta, timezone

import pytest

from config import DEFAULT_SRS
from models.settings import SrsSettings
from utils.card_store import CardConflictError, CardStore


@pytest.fixture
def settings():
    return SrsSettings.merged(DEFAULT_SRS, None)


def test_upsert_persists_and_preserves_schedule(store, settings):
    store.upsert("犬", ["犬", "inu"])
    store.record_outcome("犬", True, settings)
    card = store.upsert("犬", ["犬", "inu", "いぬ"])

    assert card.repetitions == 1
    assert card.interval == 1440
    assert card.answers == ["犬", "inu", "いぬ"]

    reloaded = CardStore()
    reloaded.load()
    assert reloaded.get("犬").answers == ["犬", "inu", "いぬ"]
    assert reloaded.get("犬").repetitions == 1
    assert len(reloaded) == 1


def test_load_replaces_previous_contents(store):
    store.upsert("a", ["a", "x"])
    other = CardStore()
    other.load()
    other.delete("a")
    store.load()
    assert "a" not in store


def test_delete_removes_history(store):
    store.upsert("a", ["a", "x"])
    store.log_review("a", False)
    assert len(store.history("a")) == 1

    assert store.delete("a").question == "a"
    assert store.get("a") is None
    assert store.history("a") == []


def test_mutations_on_missing_cards_are_noops(store):
    assert store.delete("missing") is None
    assert store.set_suspended("missing", True) is None
    assert store.toggle_starred("missing") is None
    assert store.record_outcome("missing", True, SrsSettings.merged(DEFAULT_SRS, None)) is None
    assert store.log_review("missing", True) is None
    assert store.rename("missing", "other", ["other", "x"]) is None


def test_rename_carries_schedule_and_rejects_conflicts(store, settings):
    store.upsert("a", ["a", "x"])
    store.upsert("b", ["b", "y"])
    store.record_outcome("a", False, settings)

    renamed = store.rename("a", "c", ["c", "z"])
    assert renamed.total_mistakes == 1
    assert "a" not in store
    assert store.get("c").answers == ["c", "z"]

    with pytest.raises(CardConflictError):
        store.rename("c", "b", ["b", "y"])
    assert store.get("c") is not None


def test_unsuspend_makes_card_due_again(store, settings):
    store.upsert("a", ["a", "x"])
    store.record_outcome("a", True, settings)
    store.set_suspended("a", True)
    assert store.due_cards() == []
    assert store.counts() == {"due": 0, "active": 0, "total": 1}

    card = store.set_suspended("a", False)
    assert card.next_review_date <= datetime.now(timezone.utc)
    assert card.next_review_date > datetime.now(timezone.utc) - timedelta(minutes=1)
    assert [c.question for c in store.due_cards()] == ["a"]


def test_toggle_starred_and_scoped_counts(store):
    store.upsert("a", ["a", "x"])
    store.upsert("b", ["b", "y"])
    assert store.toggle_starred("b").is_starred
    assert store.counts("starred") == {"due": 1, "active": 1, "total": 2}
    assert store.counts("list", ["a", "b"])["due"] == 2
    assert not store.toggle_starred("b").is_starred


def test_history_is_newest_first_and_snapshots_schedule(store, settings):
    store.upsert("a", ["a", "x"])
    store.log_review("a", False)
    store.record_outcome("a", False, settings)
    store.log_review("a", True)

    history = store.history("a")
    assert [entry.is_correct for entry in history] == [True, False]
    assert history[0].interval_at_review == 10
    assert history[1].efactor_at_review == pytest.approx(2.5)


def test_import_counts_new_cards_and_merges_existing(store):
    added = store.import_text("foo | bar | baz\n# comment\n\nbad_line\ngood | ans")
    assert added == 2
    assert store.get("foo").answers == ["foo", "bar", "baz"]

    added = store.import_text("foo | qux\nnew | one", context="starred")
    assert added == 1
    assert store.get("foo").answers == ["foo", "qux"]
    assert store.get("foo").is_starred
    assert store.get("new").is_starred
    assert not store.get("good").is_starred

    store.import_text("good | ans", context="active")
    assert len(store) == 3


def test_import_suspended_context_and_export(store):
    store.import_text("a | x\nb | y | z")
    store.import_text("c | w", context="suspended")

    assert store.export_text("active") == "a | x\nb | y | z"
    assert store.export_text("suspended") == "c | w"
    assert store.export_text("starred") == ""


def test_settings_round_trip(store):
    saved = SrsSettings.merged(DEFAULT_SRS, {"required_streak": 3, "lapse_interval": {"value": 1, "unit": "hours"}})
    store.save_settings(saved)

    loaded = store.load_settings(DEFAULT_SRS)
    assert loaded.required_streak == 3
    assert loaded.penalty == 2
    assert loaded.lapse_interval.value == 1
    assert loaded.lapse_interval.unit.value == "hours"
    assert loaded.initial_interval.unit.value == "days"
