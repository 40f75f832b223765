"""Domain model for scheduled cards.

This module defines :class:`Card`, the immutable snapshot of a single card's
FSRS memory state, together with the :class:`CardPhase` and
:class:`ReviewRating` enumerations.  It also provides helpers for serialising
cards to and from the JSON records that persistence layers store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional

from fsrs_core.errors import InvalidCard, InvalidRating, UnknownCardState

DEFAULT_DIFFICULTY = 5.0
DEFAULT_STABILITY = 2.0
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


def _ensure_utc(value: datetime) -> datetime:
    """Normalise *value* to a UTC timezone aware datetime."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Convert a JSON field into a :class:`datetime` in UTC.

    Empty values map to ``None``; anything else that cannot be read as a
    timestamp raises :class:`ValueError`.
    """

    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return _ensure_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1]
        return _ensure_utc(datetime.fromisoformat(text))
    raise ValueError(f"Cannot interpret {value!r} as a timestamp")


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialise a datetime in ISO-8601 format (UTC) for JSON storage."""

    if value is None:
        return None
    return _ensure_utc(value).isoformat().replace("+00:00", "Z")


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


class ReviewRating(IntEnum):
    """Learner feedback on a recall attempt."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def coerce(cls, value: Any) -> "ReviewRating":
        """Return the rating for a member, an int ``1..4`` or a name."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
        elif isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidRating(f"Unsupported rating: {value!r}")


class CardPhase(IntEnum):
    """Lifecycle state of a card.  Values match the stored state codes."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    @classmethod
    def coerce(cls, value: Any) -> "CardPhase":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
        elif isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise UnknownCardState(f"Unknown card state: {value!r}")

    @property
    def priority(self) -> int:
        """Queue priority; larger values are studied first."""

        return _PHASE_PRIORITY[self]


_PHASE_PRIORITY = {
    CardPhase.LEARNING: 4,
    CardPhase.RELEARNING: 3,
    CardPhase.REVIEW: 2,
    CardPhase.NEW: 1,
}


@dataclass(frozen=True)
class Card:
    """Immutable scheduling snapshot of a single card.

    Parameters
    ----------
    card_id:
        Opaque identifier owned by the caller.
    due:
        Timestamp of the next scheduled review.
    stability / difficulty:
        FSRS memory state.  Stability is measured in days, difficulty lies
        in ``[1, 10]``.
    elapsed_days / scheduled_days:
        Days since the previous review and the interval last assigned.
    reps / lapses:
        Scheduling event and forgetting counters.
    state:
        Current :class:`CardPhase`.
    last_review:
        Timestamp of the previous review, ``None`` for unseen cards.
    total_time / average_time / success_rate:
        Study aggregates kept by the caller from the review history.
    """

    card_id: str
    due: datetime
    stability: float = DEFAULT_STABILITY
    difficulty: float = DEFAULT_DIFFICULTY
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardPhase = CardPhase.NEW
    last_review: Optional[datetime] = None
    total_time: float = 0.0
    average_time: float = 0.0
    success_rate: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "state", CardPhase.coerce(self.state))
        object.__setattr__(self, "due", _ensure_utc(self.due))
        if self.last_review is not None:
            object.__setattr__(self, "last_review", _ensure_utc(self.last_review))
        self._validate()

    def _validate(self) -> None:
        for name in ("stability", "difficulty"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidCard(f"Card {self.card_id!r}: {name} must be a number")
            if not math.isfinite(value):
                raise InvalidCard(f"Card {self.card_id!r}: {name} must be finite")
        if self.stability <= 0:
            raise InvalidCard(f"Card {self.card_id!r}: stability must be positive")
        if not MIN_DIFFICULTY <= self.difficulty <= MAX_DIFFICULTY:
            raise InvalidCard(
                f"Card {self.card_id!r}: difficulty must lie in "
                f"[{MIN_DIFFICULTY:g}, {MAX_DIFFICULTY:g}]"
            )
        for name in ("elapsed_days", "scheduled_days", "reps", "lapses"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidCard(
                    f"Card {self.card_id!r}: {name} must be a non-negative integer"
                )

    def replace(self, **changes: Any) -> "Card":
        """Return a new card with *changes* applied."""

        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------
    def to_storage_dict(self) -> Dict[str, Any]:
        """Serialise the card into a JSON friendly dictionary."""

        return {
            "card_id": self.card_id,
            "due": _format_datetime(self.due),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "scheduled_days": self.scheduled_days,
            "reps": self.reps,
            "lapses": self.lapses,
            "state": self.state.name.lower(),
            "last_review": _format_datetime(self.last_review),
            "total_time": self.total_time,
            "average_time": self.average_time,
            "success_rate": self.success_rate,
        }

    @classmethod
    def from_storage(cls, payload: Mapping[str, Any]) -> "Card":
        """Create a :class:`Card` from a stored record.

        Both the snake_case keys written by :meth:`to_storage_dict` and the
        camelCase keys of older records are understood.  ``state`` may be a
        name or an integer code.
        """

        card_id = _pick(payload, "card_id", "id", "cardId")
        if card_id in (None, ""):
            raise ValueError("Card records must define a card_id")
        due = _parse_datetime(_pick(payload, "due", "due_at"))
        if due is None:
            raise ValueError(f"Card record {card_id!r} has no due timestamp")
        return cls(
            card_id=str(card_id),
            due=due,
            stability=float(_pick(payload, "stability", default=DEFAULT_STABILITY)),
            difficulty=float(_pick(payload, "difficulty", default=DEFAULT_DIFFICULTY)),
            elapsed_days=int(_pick(payload, "elapsed_days", "elapsedDays", default=0)),
            scheduled_days=int(_pick(payload, "scheduled_days", "scheduledDays", default=0)),
            reps=int(_pick(payload, "reps", "repetitions", default=0)),
            lapses=int(_pick(payload, "lapses", default=0)),
            state=CardPhase.coerce(_pick(payload, "state", default=CardPhase.NEW)),
            last_review=_parse_datetime(_pick(payload, "last_review", "lastReview")),
            total_time=float(_pick(payload, "total_time", "totalTime", default=0.0)),
            average_time=float(_pick(payload, "average_time", "averageTime", default=0.0)),
            success_rate=float(_pick(payload, "success_rate", "successRate", default=0.0)),
        )


def new_card(
    card_id: str,
    now: datetime,
    *,
    difficulty: float = DEFAULT_DIFFICULTY,
    stability: float = DEFAULT_STABILITY,
) -> Card:
    """Return an unseen card that is due at *now*."""

    return Card(
        card_id=card_id,
        due=now,
        stability=stability,
        difficulty=difficulty,
        scheduled_days=1,
    )


__all__ = [
    "Card",
    "CardPhase",
    "DEFAULT_DIFFICULTY",
    "DEFAULT_STABILITY",
    "ReviewRating",
    "new_card",
]
