from __future__ import annotations

from pathlib import Path

import pytest

from config import DEFAULT_ASR_MODEL, DEFAULT_CHAT_MODEL, JsonConfigStore, is_backend_configured


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_inventory_csv() == ""

    store.set_api_key("abc")
    store.set_inventory_csv("/data/inventory.csv")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_inventory_csv() == "/data/inventory.csv"


def test_model_defaults_and_overrides(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_asr_model() == DEFAULT_ASR_MODEL
    assert store.get_chat_model() == DEFAULT_CHAT_MODEL

    path.write_text('{"chat_model": "qwen-max"}', encoding="utf-8")
    assert store.get_chat_model() == "qwen-max"


def test_env_key_is_fallback(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    monkeypatch.setenv("DASHSCOPE_API_KEY", "from-env")

    assert store.get_api_key() == "from-env"
    store.set_api_key("from-file")
    assert store.get_api_key() == "from-file"


@pytest.mark.parametrize("content", ["{invalid", "[1, 2]"])
def test_config_invalid_json_fallback(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_asr_model() == DEFAULT_ASR_MODEL


def test_creates_parent_directory(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "config.json"

    JsonConfigStore(path=path).set_api_key("k")

    assert path.exists()


@pytest.mark.parametrize(
    "key, expected",
    [
        ("sk-real-key", True),
        ("", False),
        ("   ", False),
        ("your_api_key_here", False),
        ("CHANGEME", False),
    ],
)
def test_is_backend_configured(key: str, expected: bool) -> None:
    assert is_backend_configured(key) is expected
