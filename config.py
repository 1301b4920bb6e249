"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_ASR_MODEL = "qwen3-asr-flash"
DEFAULT_CHAT_MODEL = "qwen-plus"
PLACEHOLDER_KEYS = frozenset({"your_api_key_here", "your-api-key", "changeme", "sk-xxx"})


def is_backend_configured(api_key: str) -> bool:
    key = api_key.strip()
    return bool(key) and key.lower() not in PLACEHOLDER_KEYS


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "motorparts_voice" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_asr_model(self) -> str:
        data = self._read_all()
        return str(data.get("asr_model", DEFAULT_ASR_MODEL))

    def get_chat_model(self) -> str:
        data = self._read_all()
        return str(data.get("chat_model", DEFAULT_CHAT_MODEL))

    def get_inventory_csv(self) -> str:
        data = self._read_all()
        return str(data.get("inventory_csv", ""))

    def set_inventory_csv(self, path: str) -> None:
        data = self._read_all()
        data["inventory_csv"] = path
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
