"""Immutable audit records of scheduling decisions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from fsrs_core.card_state import (
    Card,
    CardPhase,
    ReviewRating,
    _ensure_utc,
    _format_datetime,
    _parse_datetime,
    _pick,
)
from fsrs_core.fsrs_engine import elapsed_days


@dataclass(frozen=True)
class ReviewLog:
    """One scheduling call.

    ``state``, ``stability``, ``difficulty`` and ``scheduled_days`` describe
    the card *before* the review; ``due`` is the due date assigned by it.
    ``duration`` is the answer time in milliseconds when the caller measured
    it.
    """

    card_id: str
    rating: ReviewRating
    state: CardPhase
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    last_elapsed_days: int
    scheduled_days: int
    review: datetime
    duration: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rating", ReviewRating.coerce(self.rating))
        object.__setattr__(self, "state", CardPhase.coerce(self.state))
        object.__setattr__(self, "due", _ensure_utc(self.due))
        object.__setattr__(self, "review", _ensure_utc(self.review))

    @property
    def success(self) -> bool:
        return self.rating >= ReviewRating.GOOD

    def to_storage_dict(self) -> Dict[str, Any]:
        return {
            "card_id": self.card_id,
            "rating": int(self.rating),
            "state": self.state.name.lower(),
            "due": _format_datetime(self.due),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "last_elapsed_days": self.last_elapsed_days,
            "scheduled_days": self.scheduled_days,
            "review": _format_datetime(self.review),
            "duration": self.duration,
        }

    @classmethod
    def from_storage(cls, payload: Mapping[str, Any]) -> "ReviewLog":
        card_id = _pick(payload, "card_id", "cardId")
        if card_id in (None, ""):
            raise ValueError("Review log records must define a card_id")
        due = _parse_datetime(_pick(payload, "due"))
        review = _parse_datetime(_pick(payload, "review"))
        if due is None or review is None:
            raise ValueError(f"Review log for {card_id!r} is missing its timestamps")
        duration = _pick(payload, "duration")
        elapsed = int(_pick(payload, "elapsed_days", "elapsedDays", default=0))
        return cls(
            card_id=str(card_id),
            rating=ReviewRating.coerce(_pick(payload, "rating", "grade")),
            state=CardPhase.coerce(_pick(payload, "state", default=CardPhase.NEW)),
            due=due,
            stability=float(_pick(payload, "stability", default=0.0)),
            difficulty=float(_pick(payload, "difficulty", default=0.0)),
            elapsed_days=elapsed,
            last_elapsed_days=int(
                _pick(payload, "last_elapsed_days", "lastElapsedDays", default=elapsed)
            ),
            scheduled_days=int(_pick(payload, "scheduled_days", "scheduledDays", default=0)),
            review=review,
            duration=float(duration) if duration is not None else None,
        )


def create_review_log(
    card: Card,
    rating: Any,
    now: datetime,
    *,
    scheduled: Card,
    duration: Optional[float] = None,
) -> ReviewLog:
    """Record the review of *card* that produced *scheduled* at *now*."""

    now = _ensure_utc(now)
    return ReviewLog(
        card_id=card.card_id,
        rating=ReviewRating.coerce(rating),
        state=card.state,
        due=scheduled.due,
        stability=card.stability,
        difficulty=card.difficulty,
        elapsed_days=elapsed_days(card.last_review, now),
        last_elapsed_days=card.elapsed_days,
        scheduled_days=card.scheduled_days,
        review=now,
        duration=duration,
    )


__all__ = ["ReviewLog", "create_review_log"]
