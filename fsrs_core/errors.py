"""Exceptions raised by the scheduling engine."""

from __future__ import annotations

__all__ = [
    "InvalidCard",
    "InvalidParameters",
    "InvalidRating",
    "NoActiveCard",
    "NoActiveSession",
    "SchedulerError",
    "UnknownCardState",
]


class SchedulerError(Exception):
    """Base class for every error raised by :mod:`fsrs_core`."""


class InvalidRating(SchedulerError, ValueError):
    """A review rating outside ``Again/Hard/Good/Easy``."""


class InvalidCard(SchedulerError, ValueError):
    """A card whose memory state or counters are out of range."""


class InvalidParameters(SchedulerError, ValueError):
    """Parameter or queue configuration that fails validation."""


class UnknownCardState(SchedulerError, AssertionError):
    """A card carries a lifecycle state the scheduler does not know.

    This indicates corrupted data or a programming error and is not meant to
    be recovered from.
    """


class NoActiveCard(SchedulerError, LookupError):
    """A review was submitted while no card is being studied."""


class NoActiveSession(NoActiveCard):
    """An operation needs an open study session and there is none."""
