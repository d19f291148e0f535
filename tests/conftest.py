"""Pytest configuration shared by API and unit tests.

flashdeck.store はモジュール読み込み時に SQLite ファイルを開くため、
どのテストが最初に import しても作業ディレクトリを汚さないよう、
一時ディレクトリの DB パスを既定値として注入しておく。
"""

import importlib
import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

_SESSION_DB_DIR = tempfile.mkdtemp(prefix="flashdeck-tests-")
os.environ.setdefault("FLASHDECK_DB_PATH", str(Path(_SESSION_DB_DIR) / "session.sqlite3"))
os.environ.setdefault("STRICT_MODE", "false")


def reload_flashdeck_app(
    monkeypatch: pytest.MonkeyPatch, *, strict: bool | None, db_path: Path | None = None
):
    """テスト用に flashdeck.* モジュールを再読み込みしてクリーンな状態を準備する補助関数。"""

    if strict is None:
        # 既定値（Settings.strict_mode）のまま起動する
        monkeypatch.delenv("STRICT_MODE", raising=False)
    else:
        monkeypatch.setenv("STRICT_MODE", "true" if strict else "false")
    if db_path is not None:
        monkeypatch.setenv("FLASHDECK_DB_PATH", str(db_path))

    # flashdeck.* を一度破棄して設定・ストア・メトリクスのシングルトンをリセット
    for name in list(sys.modules.keys()):
        if name == "flashdeck" or name.startswith("flashdeck."):
            sys.modules.pop(name)

    importlib.import_module("flashdeck.config")
    importlib.import_module("flashdeck.store")
    return importlib.import_module("flashdeck.main")


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    db_path = tmp_path_factory.mktemp("flashdeck") / "store.sqlite3"
    flashdeck_main = reload_flashdeck_app(monkeypatch, strict=False, db_path=db_path)
    return TestClient(flashdeck_main.app)


@pytest.fixture()
def strict_client(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    db_path = tmp_path_factory.mktemp("flashdeck-strict") / "store.sqlite3"
    flashdeck_main = reload_flashdeck_app(monkeypatch, strict=True, db_path=db_path)
    return TestClient(flashdeck_main.app)
