"""Learning statistics computed over card sets and review history.

The helpers here are read-only: they summarise cards, sessions and review
logs with pandas and never change scheduling state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from fsrs_core.card_state import Card, CardPhase, ReviewRating, _ensure_utc
from fsrs_core.fsrs_engine import forgetting_curve
from fsrs_core.review_log import ReviewLog
from fsrs_core.review_service import ReviewSession

CARD_COLUMNS = [
    "card_id",
    "state",
    "due",
    "stability",
    "difficulty",
    "reps",
    "lapses",
    "success_rate",
]
RETENTION_HORIZONS = {"one_day": 1, "one_week": 7, "one_month": 30, "three_months": 90}


def cards_frame(cards: Iterable[Card]) -> pd.DataFrame:
    """Tabulate *cards*.

    ``state`` holds the integer phase codes, which compare equal to the
    matching :class:`CardPhase` members.
    """

    records = [
        {
            "card_id": card.card_id,
            "state": int(card.state),
            "due": card.due,
            "stability": card.stability,
            "difficulty": card.difficulty,
            "reps": card.reps,
            "lapses": card.lapses,
            "success_rate": card.success_rate,
        }
        for card in cards
    ]
    frame = pd.DataFrame.from_records(records, columns=CARD_COLUMNS)
    frame["due"] = pd.to_datetime(frame["due"], utc=True)
    return frame


def _sessions_frame(sessions: Iterable[ReviewSession]) -> pd.DataFrame:
    records = [
        {
            "created_at": session.ended_at or session.started_at,
            "cards_reviewed": session.cards_reviewed,
            "total_time": session.total_time,
        }
        for session in sessions
    ]
    frame = pd.DataFrame.from_records(
        records, columns=["created_at", "cards_reviewed", "total_time"]
    )
    frame["created_at"] = pd.to_datetime(frame["created_at"], utc=True)
    return frame


def _mean_recall(stability: pd.Series, days: float) -> float:
    if stability.empty:
        return 0.0
    return float(forgetting_curve(days, stability).mean())


def _review_stability(frame: pd.DataFrame) -> pd.Series:
    mask = (frame["state"] == CardPhase.REVIEW) & (frame["stability"] > 0)
    return frame.loc[mask, "stability"].astype(float)


def retention_rates(cards: Iterable[Card]) -> Dict[str, float]:
    """Expected recall of review cards 1, 7, 30 and 90 days from now."""

    stability = _review_stability(cards_frame(cards))
    return {
        name: round(_mean_recall(stability, days), 2)
        for name, days in RETENTION_HORIZONS.items()
    }


def retention_trend(cards: Iterable[Card], days: int = 30) -> List[Tuple[int, float]]:
    stability = _review_stability(cards_frame(cards))
    return [(day, round(_mean_recall(stability, day), 2)) for day in range(1, days + 1)]


def accuracy_distribution(logs: Sequence[ReviewLog]) -> Dict[str, float]:
    """Share of each rating among *logs*, rounded to two places."""

    counts = pd.Series([int(log.rating) for log in logs], dtype="int64").value_counts()
    total = len(logs)
    return {
        rating.name.lower(): round(int(counts.get(int(rating), 0)) / total, 2) if total else 0.0
        for rating in ReviewRating
    }


def difficulty_distribution(cards: Iterable[Card]) -> Dict[str, float]:
    """Percentage of studied cards per difficulty band, plus the mean."""

    frame = cards_frame(cards)
    difficulty = frame.loc[frame["state"] != CardPhase.NEW, "difficulty"].astype(float)
    if difficulty.empty:
        return {"easy": 0, "medium": 0, "hard": 0, "average": 0.0}
    bands = pd.cut(
        difficulty,
        bins=[float("-inf"), 3, 6, float("inf")],
        labels=["easy", "medium", "hard"],
    )
    shares = bands.value_counts(normalize=True)
    result: Dict[str, float] = {
        name: int(round(float(shares.get(name, 0.0)) * 100)) for name in ("easy", "medium", "hard")
    }
    result["average"] = round(float(difficulty.mean()), 2)
    return result


def daily_workload(cards: Iterable[Card], now: datetime, days: int = 14) -> List[Dict[str, Any]]:
    """Cards falling due on each of the next *days* calendar days (UTC).

    Unseen cards are all counted on the first day.
    """

    frame = cards_frame(cards)
    start = pd.Timestamp(_ensure_utc(now)).normalize()
    studied = frame.loc[frame["state"] != CardPhase.NEW, "due"]
    per_day = studied.dt.normalize().value_counts()
    new_total = int((frame["state"] == CardPhase.NEW).sum())

    workload = []
    for offset in range(days):
        day = start + pd.Timedelta(days=offset)
        workload.append(
            {
                "date": day.to_pydatetime(),
                "due_cards": int(per_day.get(day, 0)),
                "new_cards": new_total if offset == 0 else 0,
            }
        )
    return workload


@dataclass(frozen=True)
class LearningStats:
    total_cards: int
    new_cards: int
    learning_cards: int
    review_cards: int
    reviews_today: int
    reviews_this_week: int
    reviews_this_month: int
    average_stability: float
    average_difficulty: float
    average_success_rate: float
    time_studied_today: int
    time_studied_this_week: int
    time_studied_this_month: int
    cards_due_today: int
    cards_due_tomorrow: int
    cards_due_this_week: int
    retention_rate: Dict[str, float] = field(default_factory=dict)


def learning_stats(
    cards: Sequence[Card],
    sessions: Sequence[ReviewSession],
    now: datetime,
) -> LearningStats:
    """Summarise a card set and its finished sessions as seen at *now*.

    Weeks start on Sunday; studied time is reported in whole minutes.
    """

    now = _ensure_utc(now)
    frame = cards_frame(cards)
    history = _sessions_frame(sessions)

    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    windows = {
        "today": today,
        "this_week": today - timedelta(days=(today.weekday() + 1) % 7),
        "this_month": today.replace(day=1),
    }
    reviews: Dict[str, int] = {}
    minutes: Dict[str, int] = {}
    for name, since in windows.items():
        recent = history.loc[history["created_at"] >= pd.Timestamp(since)]
        reviews[name] = int(recent["cards_reviewed"].sum())
        minutes[name] = int(round(float(recent["total_time"].sum()) / 60))

    studied = frame.loc[frame["state"] != CardPhase.NEW]
    if studied.empty:
        averages = (0.0, 0.0, 0.0)
    else:
        averages = (
            float(studied["stability"].mean()),
            float(studied["difficulty"].mean()),
            float(studied["success_rate"].mean()),
        )

    stamp = pd.Timestamp(now)
    due = frame["due"]
    upcoming = due > stamp
    return LearningStats(
        total_cards=len(frame),
        new_cards=int((frame["state"] == CardPhase.NEW).sum()),
        learning_cards=int(
            frame["state"].isin([CardPhase.LEARNING, CardPhase.RELEARNING]).sum()
        ),
        review_cards=int((frame["state"] == CardPhase.REVIEW).sum()),
        reviews_today=reviews["today"],
        reviews_this_week=reviews["this_week"],
        reviews_this_month=reviews["this_month"],
        average_stability=averages[0],
        average_difficulty=averages[1],
        average_success_rate=averages[2],
        time_studied_today=minutes["today"],
        time_studied_this_week=minutes["this_week"],
        time_studied_this_month=minutes["this_month"],
        cards_due_today=int((due <= stamp).sum()),
        cards_due_tomorrow=int((upcoming & (due <= stamp + pd.Timedelta(days=1))).sum()),
        cards_due_this_week=int((upcoming & (due <= stamp + pd.Timedelta(days=7))).sum()),
        retention_rate=retention_rates(cards),
    )


__all__ = [
    "LearningStats",
    "accuracy_distribution",
    "cards_frame",
    "daily_workload",
    "difficulty_distribution",
    "learning_stats",
    "retention_rates",
    "retention_trend",
]
