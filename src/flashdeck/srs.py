"""Spaced-repetition scheduling (simplified SM-2).

復習結果（スコア）と現在の SRS 状態から、次回の状態を決定する純粋関数群。
I/O を一切持たないため、どのスレッド/リクエストから同時に呼び出しても安全。

- score: 1=Again, 2=Hard, 3=Good, 4=Easy
- Again/Hard は失敗扱い: interval=0、ease-0.2（下限 1.3）、1分後に再出題
- Good/Easy は成功扱い: interval 0→1→6→floor(interval*ease)（上限 MAX_INTERVAL_DAYS）、Easy のみ ease+0.15（上限 2.5）
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum


MIN_EASE = 1.3
MAX_EASE = 2.5
INITIAL_EASE = MAX_EASE
FAILURE_EASE_PENALTY = 0.2
EASY_EASE_BONUS = 0.15
RELEARN_DELAY = timedelta(minutes=1)
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
# next_review が 4 桁の年に収まり、ISO 文字列の辞書順比較が崩れない上限（約 100 年）
MAX_INTERVAL_DAYS = 36500


class InvalidScoreError(ValueError):
    """Raised when a review score is outside of {1, 2, 3, 4}."""


class ReviewScore(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @property
    def is_success(self) -> bool:
        # Hard は教科書的な SM-2 と異なり失敗側に倒す
        return self >= ReviewScore.GOOD

    @classmethod
    def parse(cls, raw: object) -> "ReviewScore":
        """Convert a caller-supplied value into a score without clamping."""

        if isinstance(raw, cls):
            return raw
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise InvalidScoreError(f"score must be an integer between 1 and 4, got {raw!r}")
        try:
            return cls(raw)
        except ValueError as exc:
            raise InvalidScoreError(f"score must be between 1 and 4, got {raw}") from exc


@dataclass(frozen=True)
class SrsState:
    """Scheduler-owned part of a card."""

    ease: float
    interval: int
    next_review: datetime


def initial_state(now: datetime) -> SrsState:
    """State of a freshly created card: due immediately."""
    return SrsState(ease=INITIAL_EASE, interval=0, next_review=now)


def _normalize_ease(ease: float) -> float:
    # ±0.2/0.15 の繰り返しで浮動小数の誤差が蓄積しないよう 2 桁に丸める
    return round(max(MIN_EASE, min(MAX_EASE, ease)), 2)


def _next_interval(interval: int, ease: float) -> int:
    if interval <= 0:
        return FIRST_INTERVAL_DAYS
    if interval == FIRST_INTERVAL_DAYS:
        return SECOND_INTERVAL_DAYS
    # 6 * 2.3 = 13.799999... のような表現誤差で 1 日ずれないよう、丸めてから切り捨てる
    return min(math.floor(round(interval * ease, 6)), MAX_INTERVAL_DAYS)


def advance(state: SrsState, score: ReviewScore | int, *, now: datetime) -> SrsState:
    """Return the state that follows ``state`` after a review graded ``score``.

    ``now`` is only used to derive ``next_review``; the result does not depend
    on anything else, so the same inputs always produce the same state.
    """

    grade = ReviewScore.parse(score)

    if not grade.is_success:
        return SrsState(
            ease=_normalize_ease(state.ease - FAILURE_EASE_PENALTY),
            interval=0,
            next_review=now + RELEARN_DELAY,
        )

    # interval の伸長は更新前の ease を用いる
    interval = _next_interval(state.interval, state.ease)
    ease = state.ease
    if grade is ReviewScore.EASY:
        ease = min(ease + EASY_EASE_BONUS, MAX_EASE)
    return SrsState(
        ease=_normalize_ease(ease),
        interval=interval,
        next_review=now + timedelta(days=interval),
    )
