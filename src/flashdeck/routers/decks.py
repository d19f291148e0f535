from datetime import UTC, datetime

from fastapi import APIRouter

from ..models.card import DeckSummary, DeckSummaryResponse
from ..store import store

router = APIRouter(tags=["decks"])


@router.get("", summary="デッキ名一覧")
async def list_decks() -> list[str]:
    """Return distinct deck names in alphabetical order."""
    return store.list_decks()


@router.get("/summary", response_model=DeckSummaryResponse, summary="デッキ別のカード数と due 数")
async def deck_summary() -> DeckSummaryResponse:
    now = datetime.now(UTC)
    rows = store.summarize_decks(now=now)
    return DeckSummaryResponse(
        items=[DeckSummary(deck_name=name, total=total, due_now=due) for name, total, due in rows]
    )
