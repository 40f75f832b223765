import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fsrs_core.card_state import Card, CardPhase, ReviewRating, new_card
from fsrs_core.errors import InvalidParameters, InvalidRating, NoActiveCard, NoActiveSession
from fsrs_core.review_service import (
    QueueSnapshot,
    SchedulerConfig,
    StudySession,
    build_study_queue,
    get_due_cards,
    is_due,
    sort_cards,
)

NOW = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)


def make_card(card_id, state, due_offset_minutes=-5, **extra):
    values = dict(
        card_id=card_id,
        due=NOW + timedelta(minutes=due_offset_minutes),
        state=state,
    )
    if state != CardPhase.NEW:
        values.update(
            stability=5.0,
            difficulty=5.0,
            reps=2,
            last_review=NOW - timedelta(days=5),
        )
    values.update(extra)
    return Card(**values)


def test_is_due_and_get_due_cards():
    due = make_card("due", CardPhase.REVIEW)
    later = make_card("later", CardPhase.REVIEW, due_offset_minutes=30)

    assert is_due(due, NOW)
    assert not is_due(later, NOW)
    assert get_due_cards([due, later], NOW) == [due]


def test_sort_cards_by_phase_then_due():
    cards = [
        make_card("new", CardPhase.NEW, -60),
        make_card("review-late", CardPhase.REVIEW, -1),
        make_card("review-early", CardPhase.REVIEW, -30),
        make_card("relearning", CardPhase.RELEARNING, -2),
        make_card("learning", CardPhase.LEARNING, -1),
    ]

    ordered = sort_cards(cards)

    assert [card.card_id for card in ordered] == [
        "learning",
        "relearning",
        "review-early",
        "review-late",
        "new",
    ]
    assert cards[0].card_id == "new"


def test_new_cards_are_capped_before_the_total():
    cards = [make_card(f"new-{index}", CardPhase.NEW, -index - 1) for index in range(25)]
    cards += [make_card(f"review-{index}", CardPhase.REVIEW) for index in range(3)]

    queue = build_study_queue(cards, NOW, SchedulerConfig(daily_new_cards=20))
    assert len(queue) == 23
    assert sum(1 for card in queue if card.state == CardPhase.NEW) == 20

    capped = build_study_queue(
        cards, NOW, SchedulerConfig(daily_new_cards=20, daily_review_cards=10)
    )
    assert len(capped) == 10
    assert [card.state for card in capped[:3]] == [CardPhase.REVIEW] * 3


def test_held_back_new_cards_are_logged(caplog):
    cards = [make_card(f"new-{index}", CardPhase.NEW) for index in range(3)]

    with caplog.at_level(logging.DEBUG, logger="fsrs_core.review_service"):
        build_study_queue(cards, NOW, SchedulerConfig(daily_new_cards=1))

    assert "Held back 2 new card(s)" in caplog.text


def test_queue_snapshot_counts():
    queue = [
        make_card("a", CardPhase.LEARNING),
        make_card("b", CardPhase.RELEARNING),
        make_card("c", CardPhase.REVIEW),
        make_card("d", CardPhase.NEW),
    ]

    snapshot = QueueSnapshot.from_queue(queue)

    assert snapshot == QueueSnapshot(learning_due=2, review_due=1, new_available=1, total_active=4)


@pytest.mark.parametrize("changes", [{"daily_new_cards": -1}, {"daily_review_cards": 1.5}])
def test_config_validation(changes):
    with pytest.raises(InvalidParameters):
        SchedulerConfig().replace(**changes)


def test_study_session_flow():
    study = StudySession(
        [
            make_card("learning", CardPhase.LEARNING, reps=0),
            make_card("review", CardPhase.REVIEW, -60),
            new_card("new", NOW - timedelta(hours=1)),
            make_card("future", CardPhase.REVIEW, 600),
        ]
    )

    session = study.start_session(NOW, session_id="s-1")

    assert session.session_id == "s-1"
    assert study.remaining_cards == 3
    assert study.current_card.card_id == "learning"

    first, log = study.submit_review(ReviewRating.GOOD, 3000, now=NOW)
    assert log.card_id == "learning"
    assert first.state == CardPhase.LEARNING
    assert first.total_time == pytest.approx(3.0)
    assert first.success_rate == 1.0
    assert study.get_card("learning") == first
    assert study.current_card.card_id == "review"

    second, _ = study.submit_review("again", now=NOW)
    assert second.state == CardPhase.RELEARNING
    assert second.success_rate == 0.0

    third, _ = study.submit_review(4, 1000, now=NOW)
    assert third.state == CardPhase.REVIEW
    assert third.average_time == pytest.approx(1.0)
    assert study.current_card is None
    assert study.remaining_cards == 0

    stats = study.session_stats(NOW + timedelta(minutes=5))
    assert stats.cards_reviewed == 3
    assert stats.again_count == 1
    assert stats.good_count == 1
    assert stats.easy_count == 1
    assert stats.accuracy == pytest.approx(2 / 3)
    assert stats.total_time == pytest.approx(300.0)

    with pytest.raises(NoActiveCard):
        study.submit_review(ReviewRating.GOOD, now=NOW)

    ended = study.end_session(NOW + timedelta(minutes=6))
    assert ended.total_time == pytest.approx(360.0)
    assert study.history == [ended]
    assert study.session is None
    assert study.session_stats(NOW) is None


def test_rescheduled_cards_do_not_reenter_running_session():
    study = StudySession([make_card("learning", CardPhase.LEARNING, reps=0)])
    study.start_session(NOW)

    study.submit_review(ReviewRating.AGAIN, now=NOW)

    assert study.current_card is None
    assert study.get_card("learning").due == NOW + timedelta(minutes=1)


def test_submit_without_session_is_rejected():
    study = StudySession([make_card("review", CardPhase.REVIEW)])

    with pytest.raises(NoActiveSession):
        study.submit_review(ReviewRating.GOOD, now=NOW)
    with pytest.raises(NoActiveSession):
        study.end_session(NOW)


def test_invalid_rating_leaves_session_untouched():
    study = StudySession([make_card("review", CardPhase.REVIEW)])
    study.start_session(NOW)
    before = study.get_card("review")

    with pytest.raises(InvalidRating):
        study.submit_review(9, now=NOW)

    assert study.get_card("review") is before
    assert study.current_card is before
    assert study.session.cards_reviewed == 0


def test_skip_and_remove_card_keep_position():
    study = StudySession(
        [
            make_card("a", CardPhase.REVIEW, -30),
            make_card("b", CardPhase.REVIEW, -20),
            make_card("c", CardPhase.REVIEW, -10),
        ]
    )
    study.start_session(NOW)

    assert study.skip_card().card_id == "a"
    assert study.current_card.card_id == "b"

    study.remove_card("a")
    assert study.current_card.card_id == "b"
    assert study.remaining_cards == 2

    study.remove_card("b")
    assert study.current_card.card_id == "c"
    assert [card.card_id for card in study.cards] == ["c"]


def test_update_parameters_and_config():
    study = StudySession([new_card(f"n{index}", NOW) for index in range(5)])

    with pytest.raises(InvalidParameters):
        study.update_parameters(request_retention=1.5)
    assert study.parameters.request_retention == 0.9

    study.update_parameters(request_retention=0.85)
    assert study.parameters.request_retention == 0.85

    study.update_config(daily_new_cards=2)
    assert study.queue_counts(NOW).new_available == 2


def test_preview_and_retrievability_delegate_to_scheduler():
    study = StudySession()
    card = make_card("review", CardPhase.REVIEW)

    outcomes = study.preview(card, NOW)

    assert set(outcomes) == set(ReviewRating)
    assert 0 < study.retrievability(card, NOW) < 1
