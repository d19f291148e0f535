"""設定の読み込みと正規化を検証するテスト群。"""

import pytest
from pydantic import ValidationError

from flashdeck.config import DEFAULT_DB_PATH, Settings


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """conftest が注入した DB パス等を外し、既定値を検証できるようにする。"""

    for key in (
        "FLASHDECK_DB_PATH",
        "STRICT_MODE",
        "REVIEW_DEFAULT_LIMIT",
        "REVIEW_MAX_LIMIT",
        "DEFAULT_DECK_NAME",
        "ALLOWED_CORS_ORIGINS",
        "CORS_ALLOWED_ORIGINS",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    config = Settings(_env_file=None)
    assert config.flashdeck_db_path == DEFAULT_DB_PATH
    assert config.default_deck_name == "Default"
    assert config.review_default_limit == 20
    assert config.strict_mode is True
    assert config.allowed_cors_origins == ()


def test_reads_values_from_env(monkeypatch):
    monkeypatch.setenv("FLASHDECK_DB_PATH", "/tmp/cards.sqlite3")
    monkeypatch.setenv("REVIEW_DEFAULT_LIMIT", "50")
    monkeypatch.setenv("default_deck_name", "  Inbox ")

    config = Settings(_env_file=None)

    assert config.flashdeck_db_path == "/tmp/cards.sqlite3"
    assert config.review_default_limit == 50
    assert config.default_deck_name == "Inbox"


def test_settings_reads_cors_origins_from_env(monkeypatch):
    """`CORS_ALLOWED_ORIGINS` から値を読み込み、トリムと重複排除を行う。"""

    monkeypatch.setenv(
        "CORS_ALLOWED_ORIGINS",
        " https://app.example.com ,https://admin.example.com,https://app.example.com ",
    )

    config = Settings(_env_file=None)

    assert config.allowed_cors_origins == (
        "https://app.example.com",
        "https://admin.example.com",
    )


@pytest.mark.parametrize("value", ["0", "-5"])
def test_non_positive_default_limit_is_rejected(monkeypatch, value):
    monkeypatch.setenv("REVIEW_DEFAULT_LIMIT", value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_max_limit_below_default_is_rejected(monkeypatch):
    monkeypatch.setenv("REVIEW_DEFAULT_LIMIT", "30")
    monkeypatch.setenv("REVIEW_MAX_LIMIT", "10")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_blank_default_deck_is_rejected(monkeypatch):
    monkeypatch.setenv("DEFAULT_DECK_NAME", "   ")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_strict_mode_is_documented_as_import_policy():
    description = Settings.model_fields["strict_mode"].description
    assert "import" in description
    assert "configuration" not in description
