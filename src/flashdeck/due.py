"""Due-card selection.

Given a snapshot of cards and a reference time, pick the ones whose review is
due, most overdue first.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, TypeVar


DEFAULT_DUE_LIMIT = 20


class InvalidLimitError(ValueError):
    """Raised when the requested batch size is not a positive integer."""


class DueCandidate(Protocol):
    @property
    def deck_name(self) -> str: ...

    @property
    def next_review(self) -> datetime: ...


C = TypeVar("C", bound=DueCandidate)


def validate_limit(limit: object) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidLimitError(f"limit must be a positive integer, got {limit!r}")
    if limit <= 0:
        raise InvalidLimitError(f"limit must be greater than zero, got {limit}")
    return limit


def select_due(
    cards: Iterable[C],
    *,
    now: datetime,
    deck_name: str | None = None,
    limit: int = DEFAULT_DUE_LIMIT,
) -> list[C]:
    """Return at most ``limit`` cards with ``next_review <= now``.

    - ``deck_name`` が指定された場合は完全一致するデッキのみに絞る
    - next_review の昇順（期限切れの古い順）。同時刻は入力順を保つ
    - 対象が無い場合は空リスト（エラーではない）
    - 入力カードは変更しない
    """

    size = validate_limit(limit)
    due = [
        card
        for card in cards
        if card.next_review <= now and (deck_name is None or card.deck_name == deck_name)
    ]
    due.sort(key=lambda card: card.next_review)
    return due[:size]
