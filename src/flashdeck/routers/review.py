from datetime import UTC, datetime
from functools import partial
from typing import Optional

import anyio  # オフロード用
from fastapi import APIRouter, HTTPException, Query

from ..config import settings
from ..due import InvalidLimitError, select_due
from ..metrics import registry
from ..models.card import CardResponse
from ..models.review import ReviewDueResponse, ReviewSubmitRequest
from ..srs import ReviewScore
from ..store import store
from .cards import to_card_response

router = APIRouter(tags=["review"])


@router.get("", response_model=ReviewDueResponse, summary="復習対象（due）のカードを取得")
async def review_due(
    deck: Optional[str] = Query(default=None, description="Deck name filter"),
    limit: Optional[int] = Query(default=None, description="Max cards to return (default 20)"),
) -> ReviewDueResponse:
    """Return due cards, most overdue first.

    - limit 未指定なら設定値（既定 20）
    - limit <= 0 は 400（既定値への置き換えはしない）
    - 上限（REVIEW_MAX_LIMIT）超過も 400
    - 対象が無い場合は空配列
    """
    size = settings.review_default_limit if limit is None else limit
    if size > settings.review_max_limit:
        raise HTTPException(
            status_code=400,
            detail=f"limit must not exceed {settings.review_max_limit}",
        )
    deck_name = (deck or "").strip() or None
    # 1 リクエスト内では now を 1 回だけ取得して使い回す
    now = datetime.now(UTC)
    try:
        cards = select_due(
            store.list_cards(deck_name=deck_name, due_before=now),
            now=now,
            deck_name=deck_name,
            limit=size,
        )
    except InvalidLimitError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ReviewDueResponse(items=[to_card_response(c) for c in cards])


@router.post("", response_model=CardResponse, summary="復習結果を送信して次回出題時刻を更新")
async def review_submit(req: ReviewSubmitRequest) -> CardResponse:
    """Grade a card (1=Again, 2=Hard, 3=Good, 4=Easy) and return its new schedule."""
    # 1..4 の範囲は ReviewSubmitRequest 側で検証済み（範囲外は 422）
    score = ReviewScore(req.score)

    # BEGIN IMMEDIATE のロック待ちでイベントループを塞がないようスレッドへ逃がす
    updated = await anyio.to_thread.run_sync(partial(store.review_card, req.card_id, score))
    if updated is None:
        raise HTTPException(status_code=404, detail="Card not found")
    registry.record_review(int(score))
    return to_card_response(updated)
