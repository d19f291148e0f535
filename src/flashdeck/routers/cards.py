from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ..config import settings
from ..logging import logger
from ..models.card import (
    CardCreateRequest,
    CardListResponse,
    CardResponse,
    CardUpdateRequest,
)
from ..store import Card, store

router = APIRouter(tags=["cards"])


def to_card_response(card: Card) -> CardResponse:
    return CardResponse.model_validate(card)


def resolve_deck_name(raw: Optional[str]) -> str:
    """空/未指定のデッキ名を既定デッキへ寄せる。"""
    name = (raw or "").strip()
    return name or settings.default_deck_name


@router.get("", response_model=CardListResponse, summary="カード一覧（デッキ絞り込み可）")
async def list_cards(
    deck: Optional[str] = Query(default=None, description="Deck name filter"),
) -> CardListResponse:
    """Return all cards, newest first. ``deck`` narrows to one deck."""
    deck_name = (deck or "").strip() or None
    cards = store.list_cards(deck_name=deck_name)
    return CardListResponse(items=[to_card_response(c) for c in cards])


@router.post(
    "",
    response_model=CardResponse,
    status_code=201,
    summary="カードを作成",
    response_description="作成されたカード（即時 due）",
)
async def create_card(req: CardCreateRequest) -> CardResponse:
    """Create a card seeded with ease=2.5, interval=0 and due now."""
    front = req.front.strip()
    back = req.back.strip()
    if not front or not back:
        raise HTTPException(status_code=400, detail="Front and back are required")
    card = store.create_card(deck_name=resolve_deck_name(req.deck_name), front=front, back=back)
    logger.info("card_created", card_id=card.id, deck_name=card.deck_name)
    return to_card_response(card)


@router.get("/{card_id}", response_model=CardResponse, summary="カードを取得")
async def get_card(card_id: str) -> CardResponse:
    card = store.get_card(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return to_card_response(card)


@router.put("/{card_id}", response_model=CardResponse, summary="カード内容を更新")
async def update_card(card_id: str, req: CardUpdateRequest) -> CardResponse:
    """Update deck/front/back. The review schedule is never changed here.

    - 指定されなかった項目は現状維持
    - 空文字の front/back は 400（必須項目を消すことはできない）
    - 空文字のデッキ名は既定デッキへ
    """
    front = req.front.strip() if req.front is not None else None
    back = req.back.strip() if req.back is not None else None
    if front == "" or back == "":
        raise HTTPException(status_code=400, detail="Front and back must not be empty")
    deck_name = resolve_deck_name(req.deck_name) if req.deck_name is not None else None

    card = store.update_card(card_id, deck_name=deck_name, front=front, back=back)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    logger.info("card_updated", card_id=card.id, deck_name=card.deck_name)
    return to_card_response(card)


@router.delete("/{card_id}", summary="カードを削除")
async def delete_card(card_id: str) -> dict[str, str]:
    if not store.delete_card(card_id):
        raise HTTPException(status_code=404, detail="Card not found")
    logger.info("card_deleted", card_id=card_id)
    return {"message": "Card deleted"}
