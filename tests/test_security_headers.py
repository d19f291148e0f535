from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import reload_flashdeck_app


@pytest.fixture()
def configured_client(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """HSTS/CORS 設定を環境変数で差し替えたアプリを返す。

    なぜ: ヘッダ値はミドルウェア初期化時に確定するため、設定変更は
    モジュールを読み直したうえでアプリを再生成しないと反映されない。
    """

    monkeypatch.setenv("SECURITY_HSTS_MAX_AGE_SECONDS", "300")
    monkeypatch.setenv("ALLOWED_CORS_ORIGINS", "https://app.example.com")
    db_path = tmp_path_factory.mktemp("headers") / "store.sqlite3"
    flashdeck_main = reload_flashdeck_app(monkeypatch, strict=False, db_path=db_path)
    return TestClient(flashdeck_main.app)


def test_security_headers_are_added_to_api_and_error_responses(configured_client) -> None:
    for resp in (
        configured_client.get("/api/cards"),
        configured_client.get("/api/cards/card:missing"),
    ):
        assert resp.headers["Strict-Transport-Security"] == "max-age=300; includeSubDomains"
        assert resp.headers["Content-Security-Policy"].startswith("default-src 'none'")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


def test_cors_allows_only_configured_origin(configured_client) -> None:
    allowed = configured_client.get(
        "/api/decks", headers={"Origin": "https://app.example.com"}
    )
    assert allowed.headers["access-control-allow-origin"] == "https://app.example.com"
    assert allowed.headers["access-control-allow-credentials"] == "true"

    denied = configured_client.get("/api/decks", headers={"Origin": "https://evil.example.com"})
    assert "access-control-allow-origin" not in denied.headers
