from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CardResponse(BaseModel):
    """A card as returned to API clients, including its schedule."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    deck_name: str
    front: str
    back: str
    ease: float
    interval: int
    next_review: datetime
    created_at: datetime
    updated_at: datetime


class CardCreateRequest(BaseModel):
    """カード作成リクエスト。

    - front/back: 必須（空白のみは 400）
    - deck_name: 未指定・空なら既定デッキ（Default）
    """

    model_config = ConfigDict(extra="ignore")

    deck_name: Optional[str] = None
    front: str = ""
    back: str = ""


class CardUpdateRequest(BaseModel):
    """カード内容の更新リクエスト。

    ease/interval/next_review は受け付けない（送られても無視する）。
    スケジュールを変えられるのはレビューだけ。
    """

    model_config = ConfigDict(extra="ignore")

    deck_name: Optional[str] = None
    front: Optional[str] = None
    back: Optional[str] = None


class CardListResponse(BaseModel):
    items: list[CardResponse]


class DeckSummary(BaseModel):
    deck_name: str
    total: int
    due_now: int


class DeckSummaryResponse(BaseModel):
    items: list[DeckSummary]


class CardImportRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deck_name: Optional[str] = None
    front: str = ""
    back: str = ""


class CardImportRequest(BaseModel):
    """一括インポートのリクエスト。

    - deck_name: 行にデッキ指定が無い場合に使うデッキ（未指定なら既定デッキ）
    - cards: 取り込むカード（最大 1000 件）
    """

    deck_name: Optional[str] = None
    cards: list[CardImportRow] = Field(min_length=1, max_length=1000)


class CardImportResponse(BaseModel):
    imported: int
    skipped: list[int] = []
    items: list[CardResponse]
