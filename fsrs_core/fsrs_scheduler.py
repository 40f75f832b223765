"""FSRS-5 card lifecycle scheduling.

This module turns a card snapshot and a review rating into the next card
snapshot.  Cards move between four phases::

    NEW -> LEARNING | REVIEW
    LEARNING -> LEARNING | REVIEW
    REVIEW -> REVIEW | RELEARNING
    RELEARNING -> RELEARNING | REVIEW

Learning and relearning advance through short steps measured in minutes;
review intervals are derived from the card's stability.  Nothing here reads
the system clock: every entry point takes the current time explicitly, so
identical inputs always give identical outputs.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence, Tuple

from fsrs_core import fsrs_engine as engine
from fsrs_core.card_state import Card, CardPhase, ReviewRating, _ensure_utc
from fsrs_core.errors import UnknownCardState
from fsrs_core.parameters import DEFAULT_PARAMETERS, FSRSParameters
from fsrs_core.review_log import ReviewLog, create_review_log

__all__ = [
    "FSRSScheduler",
    "preview",
    "review",
    "schedule",
]


def _reviewed(card: Card, now: datetime, **changes: Any) -> Card:
    return card.replace(last_review=now, elapsed_days=0, **changes)


def _step_index(card: Card, steps: Sequence[float]) -> int:
    return min(card.reps, len(steps) - 1)


def _at_step(card: Card, now: datetime, minutes: float, phase: CardPhase, **changes: Any) -> Card:
    return _reviewed(
        card,
        now,
        due=now + timedelta(minutes=minutes),
        scheduled_days=engine.step_days(minutes),
        state=phase,
        **changes,
    )


def _graduate(card: Card, grade: ReviewRating, now: datetime, params: FSRSParameters) -> Card:
    stability = engine.init_stability(grade, params)
    interval = engine.next_interval(stability, params)
    return _reviewed(
        card,
        now,
        difficulty=engine.init_difficulty(grade, params),
        stability=stability,
        due=now + timedelta(days=interval),
        scheduled_days=interval,
        reps=card.reps + 1,
        state=CardPhase.REVIEW,
    )


# ---------------------------------------------------------------------------
# Per-phase handlers
# ---------------------------------------------------------------------------

def _schedule_new(card: Card, grade: ReviewRating, now: datetime, params: FSRSParameters) -> Card:
    difficulty = engine.init_difficulty(grade, params)
    stability = engine.init_stability(grade, params)
    if grade == ReviewRating.AGAIN:
        return _at_step(
            card,
            now,
            params.learning_steps[0],
            CardPhase.LEARNING,
            difficulty=difficulty,
            stability=stability,
            reps=card.reps + 1,
            lapses=card.lapses + 1,
        )

    interval = params.easy_interval if grade == ReviewRating.EASY else params.graduating_interval
    scheduled_days = engine.round_half_up(interval)
    return _reviewed(
        card,
        now,
        difficulty=difficulty,
        stability=stability,
        due=now + timedelta(days=scheduled_days),
        scheduled_days=scheduled_days,
        reps=card.reps + 1,
        state=CardPhase.REVIEW,
    )


def _schedule_steps(
    card: Card,
    grade: ReviewRating,
    now: datetime,
    params: FSRSParameters,
    steps: Sequence[float],
    phase: CardPhase,
) -> Card:
    """Shared handler for the LEARNING and RELEARNING phases."""

    if grade == ReviewRating.AGAIN:
        return _at_step(card, now, steps[0], phase, reps=1, lapses=card.lapses + 1)

    step = _step_index(card, steps)
    if step >= len(steps) - 1 and grade >= ReviewRating.GOOD:
        return _graduate(card, grade, now, params)

    next_step = steps[min(step + 1, len(steps) - 1)]
    return _at_step(card, now, next_step, phase, reps=card.reps + 1)


def _schedule_review(card: Card, grade: ReviewRating, now: datetime, params: FSRSParameters) -> Card:
    # Same-day reviews count as one elapsed day.
    elapsed = card.elapsed_days if card.elapsed_days > 0 else 1
    recall = engine.retrievability(elapsed, card.stability)
    difficulty = engine.next_difficulty(card.difficulty, grade, params)
    stability = engine.next_stability(card.difficulty, card.stability, recall, grade, params)

    if grade == ReviewRating.AGAIN:
        return _at_step(
            card,
            now,
            params.relearning_steps[0],
            CardPhase.RELEARNING,
            difficulty=difficulty,
            stability=stability,
            reps=card.reps + 1,
            lapses=card.lapses + 1,
        )

    interval = engine.next_interval(stability, params)
    return _reviewed(
        card,
        now,
        difficulty=difficulty,
        stability=stability,
        due=now + timedelta(days=interval),
        scheduled_days=interval,
        reps=card.reps + 1,
        state=CardPhase.REVIEW,
    )


# ---------------------------------------------------------------------------
# Public functions
# ---------------------------------------------------------------------------

def schedule(
    card: Card,
    rating: Any,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS,
) -> Card:
    """Return the card that results from reviewing *card* with *rating* at *now*.

    *card* itself is never modified.  Raises :class:`InvalidRating` before
    doing any work when *rating* is not one of the four grades.
    """

    grade = ReviewRating.coerce(rating)
    now = _ensure_utc(now)
    if card.last_review is not None:
        card = card.replace(elapsed_days=engine.elapsed_days(card.last_review, now))

    if card.state == CardPhase.NEW:
        return _schedule_new(card, grade, now, params)
    if card.state == CardPhase.LEARNING:
        return _schedule_steps(card, grade, now, params, params.learning_steps, CardPhase.LEARNING)
    if card.state == CardPhase.REVIEW:
        return _schedule_review(card, grade, now, params)
    if card.state == CardPhase.RELEARNING:
        return _schedule_steps(
            card, grade, now, params, params.relearning_steps, CardPhase.RELEARNING
        )
    raise UnknownCardState(f"Unknown card state: {card.state!r}")


def review(
    card: Card,
    rating: Any,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS,
    *,
    duration: Optional[float] = None,
) -> Tuple[Card, ReviewLog]:
    """Schedule *card* and return the new card alongside its review log."""

    scheduled = schedule(card, rating, now, params)
    log = create_review_log(card, rating, now, scheduled=scheduled, duration=duration)
    return scheduled, log


def preview(
    card: Card,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS,
) -> Dict[ReviewRating, Card]:
    """Return the card each of the four ratings would produce."""

    return {grade: schedule(card, grade, now, params) for grade in ReviewRating}


class FSRSScheduler:
    """Scheduler bound to one :class:`FSRSParameters` value.

    Swapping the parameters only changes how cards are scheduled from then
    on; cards that were already scheduled keep their due dates.
    """

    def __init__(self, parameters: Optional[FSRSParameters] = None) -> None:
        self._parameters = parameters or DEFAULT_PARAMETERS

    # ------------------------------------------------------------------
    # Parameter accessors
    # ------------------------------------------------------------------
    @property
    def parameters(self) -> FSRSParameters:
        return self._parameters

    def set_parameters(self, parameters: FSRSParameters) -> None:
        if not isinstance(parameters, FSRSParameters):
            raise TypeError("parameters must be an FSRSParameters instance")
        self._parameters = parameters

    def update_parameters(self, **changes: Any) -> FSRSParameters:
        """Replace the parameters with a validated copy carrying *changes*.

        The current parameters stay in place when validation fails.
        """

        self._parameters = self._parameters.replace(**changes)
        return self._parameters

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def schedule(self, card: Card, rating: Any, now: datetime) -> Card:
        return schedule(card, rating, now, self._parameters)

    def review(
        self,
        card: Card,
        rating: Any,
        now: datetime,
        duration: Optional[float] = None,
    ) -> Tuple[Card, ReviewLog]:
        return review(card, rating, now, self._parameters, duration=duration)

    def preview(self, card: Card, now: datetime) -> Dict[ReviewRating, Card]:
        return preview(card, now, self._parameters)

    def retrievability(self, card: Card, now: datetime) -> float:
        """Current recall probability of *card*; ``0.0`` for unseen cards."""

        if card.state == CardPhase.NEW:
            return 0.0
        elapsed = engine.elapsed_days(card.last_review, _ensure_utc(now))
        return engine.retrievability(elapsed, card.stability)

    def next_interval(self, stability: float) -> int:
        return engine.next_interval(stability, self._parameters)
