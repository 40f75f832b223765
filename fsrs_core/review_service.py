"""Study queues and review sessions built on top of the scheduler."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fsrs_core.card_state import Card, CardPhase, ReviewRating, _ensure_utc
from fsrs_core.errors import InvalidParameters, NoActiveCard, NoActiveSession
from fsrs_core.fsrs_scheduler import FSRSScheduler
from fsrs_core.parameters import FSRSParameters
from fsrs_core.review_log import ReviewLog

logger = logging.getLogger(__name__)

DEFAULT_DAILY_NEW_CAP = 20
DEFAULT_DAILY_REVIEW_CAP = 200


@dataclass(frozen=True)
class SchedulerConfig:
    """Daily quotas applied when building a study queue."""

    daily_new_cards: int = DEFAULT_DAILY_NEW_CAP
    daily_review_cards: int = DEFAULT_DAILY_REVIEW_CAP

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidParameters(f"{item.name} must be a non-negative integer")

    def replace(self, **changes: Any) -> "SchedulerConfig":
        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise InvalidParameters(f"Unknown config option(s): {', '.join(unknown)}")
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Due-queue selection
# ---------------------------------------------------------------------------

def is_due(card: Card, now: datetime) -> bool:
    return card.due <= _ensure_utc(now)


def get_due_cards(cards: Iterable[Card], now: datetime) -> List[Card]:
    now = _ensure_utc(now)
    return [card for card in cards if card.due <= now]


def sort_cards(cards: Iterable[Card]) -> List[Card]:
    """Order cards by phase priority, then by due date (earliest first)."""

    return sorted(cards, key=lambda card: (-card.state.priority, card.due))


def build_study_queue(
    cards: Iterable[Card],
    now: datetime,
    config: Optional[SchedulerConfig] = None,
) -> List[Card]:
    """Return the ordered cards to study at *now*.

    New cards beyond ``daily_new_cards`` are left out of this queue only;
    nothing about them is recorded, so they come back in the next queue.
    The result is then capped at ``daily_review_cards``.
    """

    config = config or SchedulerConfig()
    ordered = sort_cards(get_due_cards(cards, now))

    queue: List[Card] = []
    new_taken = 0
    for card in ordered:
        if card.state == CardPhase.NEW:
            if new_taken >= config.daily_new_cards:
                continue
            new_taken += 1
        queue.append(card)

    dropped = len(ordered) - len(queue)
    if dropped:
        logger.debug("Held back %d new card(s) over the daily limit", dropped)
    return queue[: config.daily_review_cards]


@dataclass(frozen=True)
class QueueSnapshot:
    learning_due: int
    review_due: int
    new_available: int
    total_active: int

    @classmethod
    def from_queue(cls, queue: Sequence[Card]) -> "QueueSnapshot":
        learning = sum(
            1 for card in queue if card.state in (CardPhase.LEARNING, CardPhase.RELEARNING)
        )
        reviews = sum(1 for card in queue if card.state == CardPhase.REVIEW)
        new = sum(1 for card in queue if card.state == CardPhase.NEW)
        return cls(
            learning_due=learning,
            review_due=reviews,
            new_available=new,
            total_active=len(queue),
        )


# ---------------------------------------------------------------------------
# Session tracking
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionStats:
    session_id: str
    mode: str
    started_at: datetime
    cards_reviewed: int
    total_time: float
    accuracy: float
    again_count: int
    hard_count: int
    good_count: int
    easy_count: int


@dataclass
class ReviewSession:
    """Running totals for one study session.

    The session only accumulates what :meth:`record` is given; ``total_time``
    is measured in seconds from ``started_at``.
    """

    started_at: datetime
    mode: str = "flashcard"
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    ended_at: Optional[datetime] = None
    again_count: int = 0
    hard_count: int = 0
    good_count: int = 0
    easy_count: int = 0
    reviews: List[ReviewLog] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.started_at = _ensure_utc(self.started_at)

    @property
    def cards_reviewed(self) -> int:
        return len(self.reviews)

    @property
    def accuracy(self) -> float:
        if not self.reviews:
            return 0.0
        return (self.good_count + self.easy_count) / len(self.reviews)

    @property
    def total_time(self) -> float:
        """Length of a finished session in seconds; ``0.0`` while open."""

        if self.ended_at is None:
            return 0.0
        return self.elapsed_seconds(self.ended_at)

    def elapsed_seconds(self, now: datetime) -> float:
        return max((_ensure_utc(now) - self.started_at).total_seconds(), 0.0)

    def record(self, log: ReviewLog) -> None:
        if log.rating == ReviewRating.AGAIN:
            self.again_count += 1
        elif log.rating == ReviewRating.HARD:
            self.hard_count += 1
        elif log.rating == ReviewRating.GOOD:
            self.good_count += 1
        else:
            self.easy_count += 1
        self.reviews.append(log)

    def close(self, now: datetime) -> None:
        self.ended_at = _ensure_utc(now)

    def stats(self, now: datetime) -> SessionStats:
        end = self.ended_at or now
        return SessionStats(
            session_id=self.session_id,
            mode=self.mode,
            started_at=self.started_at,
            cards_reviewed=self.cards_reviewed,
            total_time=self.elapsed_seconds(end),
            accuracy=self.accuracy,
            again_count=self.again_count,
            hard_count=self.hard_count,
            good_count=self.good_count,
            easy_count=self.easy_count,
        )


# ---------------------------------------------------------------------------
# Study session controller
# ---------------------------------------------------------------------------

class StudySession:
    """Drive a learner through the due queue of a card set.

    The queue is frozen when a session starts; cards rescheduled during the
    session are stored but do not re-enter it.  One caller at a time.
    """

    def __init__(
        self,
        cards: Iterable[Card] = (),
        *,
        scheduler: Optional[FSRSScheduler] = None,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.scheduler = scheduler or FSRSScheduler()
        self.config = config or SchedulerConfig()
        self._cards: Dict[str, Card] = {card.card_id: card for card in cards}
        self._queue: List[str] = []
        self._index = 0
        self._session: Optional[ReviewSession] = None
        self._logs: List[ReviewLog] = []
        self.history: List[ReviewSession] = []

    # ------------------------------------------------------------------
    # Card set
    # ------------------------------------------------------------------
    @property
    def cards(self) -> List[Card]:
        return list(self._cards.values())

    def get_card(self, card_id: str) -> Card:
        return self._cards[card_id]

    def add_cards(self, cards: Iterable[Card]) -> None:
        """Add or replace cards.  The running session's queue is unchanged."""

        added = 0
        for card in cards:
            self._cards[card.card_id] = card
            added += 1
        logger.debug("Added %d card(s)", added)

    def remove_card(self, card_id: str) -> None:
        self._cards.pop(card_id, None)
        if card_id in self._queue:
            position = self._queue.index(card_id)
            del self._queue[position]
            if position < self._index:
                self._index -= 1

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------
    def study_queue(self, now: datetime) -> List[Card]:
        """Queue that a session started at *now* would use."""

        return build_study_queue(self._cards.values(), now, self.config)

    def queue_counts(self, now: datetime) -> QueueSnapshot:
        return QueueSnapshot.from_queue(self.study_queue(now))

    @property
    def current_card(self) -> Optional[Card]:
        if self._session is None or self._index >= len(self._queue):
            return None
        return self._cards[self._queue[self._index]]

    @property
    def remaining_cards(self) -> int:
        if self._session is None:
            return 0
        return max(len(self._queue) - self._index, 0)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    @property
    def session(self) -> Optional[ReviewSession]:
        return self._session

    @property
    def review_logs(self) -> List[ReviewLog]:
        return list(self._logs)

    def start_session(
        self,
        now: datetime,
        mode: str = "flashcard",
        session_id: Optional[str] = None,
    ) -> ReviewSession:
        session = ReviewSession(started_at=now, mode=mode)
        if session_id is not None:
            session.session_id = session_id
        self._session = session
        self._queue = [card.card_id for card in self.study_queue(now)]
        self._index = 0
        self._logs = []
        logger.info(
            "Started %s session %s with %d card(s)", mode, session.session_id, len(self._queue)
        )
        return session

    def submit_review(
        self,
        rating: Any,
        duration: Optional[float] = None,
        *,
        now: datetime,
    ) -> Tuple[Card, ReviewLog]:
        """Grade the current card and move on to the next one.

        *duration* is the answer time in milliseconds.  Returns the
        rescheduled card and its review log.
        """

        grade = ReviewRating.coerce(rating)
        if self._session is None:
            raise NoActiveSession("No study session is active")
        card = self.current_card
        if card is None:
            raise NoActiveCard("There is no card left to review")

        scheduled, log = self.scheduler.review(card, grade, now, duration)

        total_time = card.total_time + (duration or 0) / 1000
        previous = [entry for entry in self._logs if entry.card_id == card.card_id]
        successes = sum(1 for entry in previous if entry.success) + (1 if log.success else 0)
        scheduled = scheduled.replace(
            total_time=total_time,
            average_time=total_time / scheduled.reps if scheduled.reps > 0 else 0.0,
            success_rate=successes / (len(previous) + 1),
        )

        self._cards[card.card_id] = scheduled
        self._logs.append(log)
        self._session.record(log)
        self._index += 1
        logger.debug(
            "Reviewed %s as %s: next due %s, stability %.2f, difficulty %.2f",
            card.card_id,
            grade.name,
            scheduled.due.isoformat(),
            scheduled.stability,
            scheduled.difficulty,
        )
        return scheduled, log

    def skip_card(self) -> Optional[Card]:
        card = self.current_card
        if card is not None:
            self._index += 1
            logger.debug("Skipped %s", card.card_id)
        return card

    def session_stats(self, now: datetime) -> Optional[SessionStats]:
        if self._session is None:
            return None
        return self._session.stats(now)

    def end_session(self, now: datetime) -> ReviewSession:
        if self._session is None:
            raise NoActiveSession("No study session to end")
        session = self._session
        session.close(now)
        self.history.append(session)
        self.reset_session()
        logger.info(
            "Ended session %s: %d card(s), accuracy %.0f%%",
            session.session_id,
            session.cards_reviewed,
            session.accuracy * 100,
        )
        return session

    def reset_session(self) -> None:
        self._session = None
        self._queue = []
        self._index = 0
        self._logs = []

    # ------------------------------------------------------------------
    # Configuration and helpers
    # ------------------------------------------------------------------
    @property
    def parameters(self) -> FSRSParameters:
        return self.scheduler.parameters

    def update_parameters(self, **changes: Any) -> FSRSParameters:
        parameters = self.scheduler.update_parameters(**changes)
        logger.info("Updated FSRS parameters: %s", ", ".join(sorted(changes)))
        return parameters

    def update_config(self, **changes: Any) -> SchedulerConfig:
        self.config = self.config.replace(**changes)
        return self.config

    def preview(self, card: Card, now: datetime) -> Dict[ReviewRating, Card]:
        return self.scheduler.preview(card, now)

    def retrievability(self, card: Card, now: datetime) -> float:
        return self.scheduler.retrievability(card, now)


__all__ = [
    "DEFAULT_DAILY_NEW_CAP",
    "DEFAULT_DAILY_REVIEW_CAP",
    "QueueSnapshot",
    "ReviewSession",
    "SchedulerConfig",
    "SessionStats",
    "StudySession",
    "build_study_queue",
    "get_due_cards",
    "is_due",
    "sort_cards",
]
