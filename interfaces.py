"""Protocol interfaces used by SessionController and the adapters."""

from __future__ import annotations

from queue import Queue
from typing import Iterator, Protocol, Sequence

from models import AudioFrame, InventoryItem, IntentResult, RecognitionEvent


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class SpeechRecognizer(Protocol):
    def is_available(self) -> bool: ...

    def start_session(self) -> Iterator[RecognitionEvent]: ...

    def stop(self) -> None: ...


class AIBackend(Protocol):
    def classify_and_respond(
        self,
        transcript: str,
        inventory: Sequence[InventoryItem],
    ) -> IntentResult: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_asr_model(self) -> str: ...

    def get_chat_model(self) -> str: ...

    def get_inventory_csv(self) -> str: ...
