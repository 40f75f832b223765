"""FSRS-5 spaced repetition scheduling engine."""

from .card_state import Card, CardPhase, ReviewRating, new_card
from .errors import (
    InvalidCard,
    InvalidParameters,
    InvalidRating,
    NoActiveCard,
    NoActiveSession,
    SchedulerError,
    UnknownCardState,
)
from .fsrs_engine import next_interval, retrievability
from .fsrs_scheduler import FSRSScheduler, preview, review, schedule
from .parameters import DEFAULT_PARAMETERS, FSRSParameters, load_parameters
from .review_log import ReviewLog, create_review_log
from .review_service import (
    QueueSnapshot,
    ReviewSession,
    SchedulerConfig,
    SessionStats,
    StudySession,
    build_study_queue,
    get_due_cards,
    is_due,
    sort_cards,
)

__all__ = [
    "Card",
    "CardPhase",
    "DEFAULT_PARAMETERS",
    "FSRSParameters",
    "FSRSScheduler",
    "InvalidCard",
    "InvalidParameters",
    "InvalidRating",
    "NoActiveCard",
    "NoActiveSession",
    "QueueSnapshot",
    "ReviewLog",
    "ReviewRating",
    "ReviewSession",
    "SchedulerConfig",
    "SchedulerError",
    "SessionStats",
    "StudySession",
    "UnknownCardState",
    "build_study_queue",
    "create_review_log",
    "get_due_cards",
    "is_due",
    "load_parameters",
    "new_card",
    "next_interval",
    "preview",
    "retrievability",
    "review",
    "schedule",
    "sort_cards",
]
