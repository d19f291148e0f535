"""Scheduler (simplified SM-2) behaviour."""

from datetime import UTC, datetime, timedelta
import math

import pytest

from flashdeck.srs import (
    MAX_EASE,
    MAX_INTERVAL_DAYS,
    MIN_EASE,
    InvalidScoreError,
    ReviewScore,
    SrsState,
    advance,
    initial_state,
)

NOW = datetime(2024, 5, 1, 9, 30, tzinfo=UTC)


def _state(ease: float = 2.5, interval: int = 0) -> SrsState:
    return SrsState(ease=ease, interval=interval, next_review=NOW - timedelta(days=3))


def test_initial_state_is_due_immediately():
    state = initial_state(NOW)
    assert state == SrsState(ease=2.5, interval=0, next_review=NOW)


@pytest.mark.parametrize("score", [ReviewScore.AGAIN, ReviewScore.HARD])
@pytest.mark.parametrize("interval", [0, 1, 6, 40])
def test_failure_resets_interval_and_redrills_in_one_minute(score, interval):
    out = advance(_state(ease=2.5, interval=interval), score, now=NOW)
    assert out.interval == 0
    assert out.ease == pytest.approx(2.3)
    assert out.next_review == NOW + timedelta(minutes=1)


def test_hard_is_routed_to_failure_branch():
    out = advance(_state(ease=2.0, interval=6), ReviewScore.HARD, now=NOW)
    assert out.interval == 0
    assert out.ease == pytest.approx(1.8)


def test_good_progression_1_then_6_then_multiplied_by_ease():
    s1 = advance(_state(ease=2.3, interval=0), ReviewScore.GOOD, now=NOW)
    assert s1.interval == 1
    assert s1.next_review == NOW + timedelta(days=1)

    s2 = advance(s1, ReviewScore.GOOD, now=NOW)
    assert s2.interval == 6
    assert s2.next_review == NOW + timedelta(days=6)

    s3 = advance(s2, ReviewScore.GOOD, now=NOW)
    assert s3.interval == math.floor(6 * 2.3) == 13
    assert s3.next_review == NOW + timedelta(days=13)
    assert s3.ease == pytest.approx(2.3)


def test_growth_uses_ease_before_easy_bonus():
    out = advance(_state(ease=2.0, interval=10), ReviewScore.EASY, now=NOW)
    assert out.interval == 20
    assert out.ease == pytest.approx(2.15)


def test_easy_respects_ceiling_and_raises_floor_ease():
    assert advance(_state(ease=2.5), ReviewScore.EASY, now=NOW).ease == pytest.approx(2.5)
    assert advance(_state(ease=1.3), ReviewScore.EASY, now=NOW).ease == pytest.approx(1.45)
    assert advance(_state(ease=2.4), ReviewScore.EASY, now=NOW).ease == pytest.approx(2.5)


def test_repeated_again_never_goes_below_floor():
    state = _state(ease=2.5, interval=15)
    for _ in range(50):
        state = advance(state, ReviewScore.AGAIN, now=NOW)
        assert state.ease >= MIN_EASE
    assert state.ease == pytest.approx(1.3)
    assert state.interval == 0


@pytest.mark.parametrize("score", list(ReviewScore))
@pytest.mark.parametrize("ease", [1.3, 1.45, 1.9, 2.35, 2.5])
@pytest.mark.parametrize("interval", [0, 1, 2, 6, 13, 100])
def test_ease_stays_within_bounds(score, ease, interval):
    out = advance(_state(ease=ease, interval=interval), score, now=NOW)
    assert MIN_EASE <= out.ease <= MAX_EASE
    assert out.interval >= 0


def test_advance_is_deterministic_and_does_not_mutate_input():
    state = _state(ease=2.1, interval=6)
    first = advance(state, ReviewScore.GOOD, now=NOW)
    second = advance(state, ReviewScore.GOOD, now=NOW)
    assert first == second
    assert state == _state(ease=2.1, interval=6)


def test_plain_integer_scores_are_accepted():
    assert advance(_state(), 3, now=NOW).interval == 1


@pytest.mark.parametrize("raw", [0, 5, -1, 3.0, "3", None, True])
def test_invalid_scores_are_rejected_not_clamped(raw):
    with pytest.raises(InvalidScoreError):
        advance(_state(), raw, now=NOW)


def test_scenario_good_good_again():
    state = initial_state(NOW)
    state = advance(state, ReviewScore.GOOD, now=NOW)
    assert (state.interval, state.next_review) == (1, NOW + timedelta(days=1))

    later = NOW + timedelta(days=1)
    state = advance(state, ReviewScore.GOOD, now=later)
    assert (state.interval, state.next_review) == (6, later + timedelta(days=6))

    much_later = later + timedelta(days=6)
    state = advance(state, ReviewScore.AGAIN, now=much_later)
    assert state.interval == 0
    assert state.ease == pytest.approx(2.3)
    assert state.next_review == much_later + timedelta(minutes=1)


def test_repeated_good_reviews_cap_interval_at_maximum():
    state = initial_state(NOW)
    for _ in range(40):
        state = advance(state, ReviewScore.GOOD, now=NOW)
        assert 0 < state.interval <= MAX_INTERVAL_DAYS
    assert state.interval == MAX_INTERVAL_DAYS
    assert state.next_review == NOW + timedelta(days=MAX_INTERVAL_DAYS)
    assert state.next_review.year < 10000


def test_easy_on_capped_interval_keeps_it_at_maximum():
    state = _state(ease=2.5, interval=MAX_INTERVAL_DAYS)
    out = advance(state, ReviewScore.EASY, now=NOW)
    assert out.interval == MAX_INTERVAL_DAYS
    assert out.ease == pytest.approx(MAX_EASE)
