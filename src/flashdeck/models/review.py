from pydantic import BaseModel
from pydantic import Field

from .card import CardResponse


class ReviewDueResponse(BaseModel):
    """Response model for the due-card batch.

    next_review が現在時刻以前のカードを、期限切れの古い順に返す。
    """

    items: list[CardResponse]


class ReviewSubmitRequest(BaseModel):
    """復習結果の送信リクエスト。

    - card_id: 対象カード
    - score: 1=Again, 2=Hard, 3=Good, 4=Easy
    """

    card_id: str = Field(min_length=1)
    score: int = Field(ge=1, le=4, strict=True)
