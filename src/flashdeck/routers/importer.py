from functools import partial

import anyio  # オフロード用
from fastapi import APIRouter, HTTPException

from ..config import settings
from ..logging import logger
from ..models.card import CardImportRequest, CardImportResponse
from ..store import NewCard, store
from .cards import resolve_deck_name, to_card_response

router = APIRouter(tags=["import"])


@router.post(
    "",
    response_model=CardImportResponse,
    status_code=201,
    summary="カードを一括インポート",
)
async def import_cards(req: CardImportRequest) -> CardImportResponse:
    """Create many cards at once in a single transaction.

    front/back が空の行の扱い:
    - strict_mode: 1 行でもあれば 400 で全体を拒否（何も保存しない）
    - 非 strict: その行だけ読み飛ばし、`skipped` に行番号（0 始まり）を返す
    """
    fallback_deck = resolve_deck_name(req.deck_name)
    rows: list[NewCard] = []
    skipped: list[int] = []
    for index, row in enumerate(req.cards):
        front = row.front.strip()
        back = row.back.strip()
        if not front or not back:
            skipped.append(index)
            continue
        deck_name = (row.deck_name or "").strip() or fallback_deck
        rows.append(NewCard(deck_name=deck_name, front=front, back=back))

    if skipped and settings.strict_mode:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Front and back are required for every card",
                "rows": skipped,
            },
        )

    cards = await anyio.to_thread.run_sync(partial(store.create_cards, rows))
    logger.info("cards_imported", imported=len(cards), skipped=len(skipped))
    return CardImportResponse(
        imported=len(cards),
        skipped=skipped,
        items=[to_card_response(c) for c in cards],
    )
