"""ID 生成ユーティリティ。

カード ID は URL パスにそのまま載せられる文字だけで構成し、prefix "card:" と
UUID の組み合わせとする。ID は一度採番したら変更しない。
"""

from __future__ import annotations

import uuid


def generate_card_id() -> str:
    return f"card:{uuid.uuid4().hex}"
