"""Run the API with uvicorn: ``python -m flashdeck``.

待ち受けアドレス/ポートと DB パスは環境変数（HOST/PORT/FLASHDECK_DB_PATH）で指定する。
"""

import uvicorn

from .config import settings


def main() -> None:
    uvicorn.run("flashdeck.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
