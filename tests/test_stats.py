import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fsrs_core import fsrs_engine as engine
from fsrs_core.card_state import Card, CardPhase, ReviewRating, new_card
from fsrs_core.review_log import ReviewLog
from fsrs_core.review_service import ReviewSession
from fsrs_core.stats import (
    accuracy_distribution,
    cards_frame,
    daily_workload,
    difficulty_distribution,
    learning_stats,
    retention_rates,
    retention_trend,
)

# A Wednesday.
NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


def studied_card(card_id, state=CardPhase.REVIEW, due=NOW, **extra):
    values = dict(
        card_id=card_id,
        due=due,
        stability=9.0,
        difficulty=5.0,
        reps=3,
        state=state,
        last_review=NOW - timedelta(days=2),
    )
    values.update(extra)
    return Card(**values)


def make_log(card_id, rating, when=NOW):
    return ReviewLog(
        card_id=card_id,
        rating=rating,
        state=CardPhase.REVIEW,
        due=when + timedelta(days=1),
        stability=9.0,
        difficulty=5.0,
        elapsed_days=1,
        last_elapsed_days=1,
        scheduled_days=1,
        review=when,
    )


def finished_session(ended_at, seconds, reviewed):
    session = ReviewSession(started_at=ended_at - timedelta(seconds=seconds))
    for index in range(reviewed):
        session.record(make_log(f"card-{index}", ReviewRating.GOOD, ended_at))
    session.close(ended_at)
    return session


def test_cards_frame_columns():
    frame = cards_frame([new_card("n1", NOW), studied_card("r1")])

    assert list(frame["card_id"]) == ["n1", "r1"]
    assert len(frame) == 2
    assert str(frame["due"].dt.tz) == "UTC"
    assert frame["state"].dtype == "int64"
    assert list(frame["state"]) == [CardPhase.NEW, CardPhase.REVIEW]


def test_forgetting_curve_matches_retrievability_elementwise():
    stability = pd.Series([0.5, 3.0, 9.0, 120.0])

    curve = engine.forgetting_curve(30, stability)

    assert list(curve) == pytest.approx(
        [engine.retrievability(30, value) for value in stability]
    )


def test_retention_rates_for_review_cards():
    cards = [studied_card("r1"), studied_card("r2"), new_card("n1", NOW)]

    assert retention_rates(cards) == {
        "one_day": 0.99,
        "one_week": 0.92,
        "one_month": 0.73,
        "three_months": 0.47,
    }


def test_retention_rates_without_review_cards():
    rates = retention_rates([new_card("n1", NOW)])
    assert set(rates.values()) == {0.0}


def test_retention_trend_declines():
    trend = retention_trend([studied_card("r1")], days=10)

    assert [day for day, _ in trend] == list(range(1, 11))
    values = [value for _, value in trend]
    assert values == sorted(values, reverse=True)


def test_accuracy_distribution():
    logs = [
        make_log("a", ReviewRating.AGAIN),
        make_log("b", ReviewRating.GOOD),
        make_log("c", ReviewRating.GOOD),
        make_log("d", ReviewRating.EASY),
    ]

    assert accuracy_distribution(logs) == {"again": 0.25, "hard": 0.0, "good": 0.5, "easy": 0.25}
    assert accuracy_distribution([]) == {"again": 0.0, "hard": 0.0, "good": 0.0, "easy": 0.0}


def test_difficulty_distribution_bands():
    cards = [
        studied_card("a", difficulty=2.0),
        studied_card("b", difficulty=3.0),
        studied_card("c", difficulty=5.0),
        studied_card("d", difficulty=8.0),
        new_card("n1", NOW, difficulty=9.0),
    ]

    assert difficulty_distribution(cards) == {
        "easy": 50,
        "medium": 25,
        "hard": 25,
        "average": 4.5,
    }


def test_difficulty_distribution_without_studied_cards():
    assert difficulty_distribution([new_card("n1", NOW)]) == {
        "easy": 0,
        "medium": 0,
        "hard": 0,
        "average": 0.0,
    }


def test_daily_workload():
    cards = [
        new_card("n1", NOW),
        new_card("n2", NOW),
        studied_card("r1", due=NOW + timedelta(hours=2)),
        studied_card("r2", due=NOW + timedelta(days=2)),
        studied_card("r3", due=NOW + timedelta(days=2, hours=3)),
        studied_card("r4", due=NOW + timedelta(days=30)),
    ]

    workload = daily_workload(cards, NOW, days=3)

    assert [entry["date"].date().isoformat() for entry in workload] == [
        "2024-03-06",
        "2024-03-07",
        "2024-03-08",
    ]
    assert [entry["due_cards"] for entry in workload] == [1, 0, 2]
    assert [entry["new_cards"] for entry in workload] == [2, 0, 0]


def test_learning_stats_summary():
    cards = [
        new_card("n1", NOW),
        studied_card("l1", CardPhase.LEARNING, NOW - timedelta(hours=1), success_rate=0.5),
        studied_card("r1", due=NOW + timedelta(hours=12), stability=6.0, success_rate=1.0),
        studied_card("r2", due=NOW + timedelta(days=3), stability=12.0, success_rate=0.75),
    ]
    sessions = [
        finished_session(NOW - timedelta(hours=1), 600, 3),
        finished_session(datetime(2024, 3, 4, 20, tzinfo=timezone.utc), 120, 2),
        finished_session(datetime(2024, 3, 1, 9, tzinfo=timezone.utc), 60, 1),
        finished_session(datetime(2024, 2, 20, 9, tzinfo=timezone.utc), 900, 7),
    ]

    stats = learning_stats(cards, sessions, NOW)

    assert stats.total_cards == 4
    assert stats.new_cards == 1
    assert stats.learning_cards == 1
    assert stats.review_cards == 2
    assert stats.reviews_today == 3
    assert stats.reviews_this_week == 5
    assert stats.reviews_this_month == 6
    assert stats.time_studied_today == 10
    assert stats.time_studied_this_week == 12
    assert stats.time_studied_this_month == 13
    assert stats.average_stability == pytest.approx(9.0)
    assert stats.average_difficulty == pytest.approx(5.0)
    assert stats.average_success_rate == pytest.approx(0.75)
    assert stats.cards_due_today == 2
    assert stats.cards_due_tomorrow == 1
    assert stats.cards_due_this_week == 2
    assert set(stats.retention_rate) == {"one_day", "one_week", "one_month", "three_months"}


def test_learning_stats_for_empty_collection():
    stats = learning_stats([], [], NOW)

    assert stats.total_cards == 0
    assert stats.reviews_today == 0
    assert stats.average_stability == 0.0
    assert stats.cards_due_today == 0
