"""Core data models for the voice command pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


class SessionState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    TRANSCRIBING = "TRANSCRIBING"
    AWAITING_INTENT = "AWAITING_INTENT"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# States that count as a live session; at most one may exist.
ACTIVE_STATES = frozenset(
    {
        SessionState.LISTENING,
        SessionState.TRANSCRIBING,
        SessionState.AWAITING_INTENT,
        SessionState.PROCESSING,
    }
)


class RecognitionKind(str, Enum):
    READY = "ready"
    BEGIN = "begin"
    AUDIO_LEVEL = "audio_level"
    PARTIAL = "partial"
    END = "end"
    FINAL = "final"
    ERROR = "error"


class Intent(str, Enum):
    SEARCH = "search"
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    CHECK_STOCK = "check_stock"
    GENERAL_QUERY = "general_query"


class InventoryCategory(str, Enum):
    ENGINE = "engine"
    BRAKE = "brake"
    SUSPENSION = "suspension"
    ELECTRICAL = "electrical"
    TRANSMISSION = "transmission"
    BODY = "body"
    ACCESSORIES = "accessories"
    FLUIDS = "fluids"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _CATEGORY_DISPLAY_NAMES[self]


_CATEGORY_DISPLAY_NAMES = {
    InventoryCategory.ENGINE: "Engine Parts",
    InventoryCategory.BRAKE: "Brake System",
    InventoryCategory.SUSPENSION: "Suspension",
    InventoryCategory.ELECTRICAL: "Electrical",
    InventoryCategory.TRANSMISSION: "Transmission",
    InventoryCategory.BODY: "Body Parts",
    InventoryCategory.ACCESSORIES: "Accessories",
    InventoryCategory.FLUIDS: "Fluids & Lubricants",
    InventoryCategory.OTHER: "Other",
}


def category_display_name(value: str) -> str:
    """Display name for a stored category value; unknown values pass through."""
    try:
        return InventoryCategory(value.strip().lower()).display_name
    except ValueError:
        return value


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0
    level_db: float = -100.0


@dataclass(frozen=True)
class RecognitionEvent:
    """A single event emitted by a speech recognizer.

    ``kind`` selects the variant; only the fields that belong to that
    variant are meaningful (``text`` for partial/final, ``alternates`` for
    final, ``db`` for audio level, ``code``/``message`` for errors).
    """

    kind: str
    text: str = ""
    alternates: Tuple[str, ...] = ()
    db: float = 0.0
    code: str = ""
    message: str = ""

    @classmethod
    def ready(cls) -> "RecognitionEvent":
        return cls(kind=RecognitionKind.READY.value)

    @classmethod
    def begin(cls) -> "RecognitionEvent":
        return cls(kind=RecognitionKind.BEGIN.value)

    @classmethod
    def audio_level(cls, db: float) -> "RecognitionEvent":
        return cls(kind=RecognitionKind.AUDIO_LEVEL.value, db=float(db))

    @classmethod
    def partial(cls, text: str) -> "RecognitionEvent":
        return cls(kind=RecognitionKind.PARTIAL.value, text=text)

    @classmethod
    def end(cls) -> "RecognitionEvent":
        return cls(kind=RecognitionKind.END.value)

    @classmethod
    def final(cls, text: str, alternates: Tuple[str, ...] = ()) -> "RecognitionEvent":
        return cls(
            kind=RecognitionKind.FINAL.value,
            text=text,
            alternates=tuple(alternates) or (text,),
        )

    @classmethod
    def error(cls, code: str, message: str = "") -> "RecognitionEvent":
        return cls(kind=RecognitionKind.ERROR.value, code=code, message=message)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    NO_SPEECH = "no_speech"


@dataclass(frozen=True)
class UtteranceOutcome:
    kind: OutcomeKind
    text: str = ""
    alternates: Tuple[str, ...] = ()
    code: str = ""
    message: str = ""

    @classmethod
    def success(cls, text: str, alternates: Tuple[str, ...] = ()) -> "UtteranceOutcome":
        return cls(kind=OutcomeKind.SUCCESS, text=text, alternates=tuple(alternates))

    @classmethod
    def error(cls, code: str, message: str = "") -> "UtteranceOutcome":
        return cls(kind=OutcomeKind.ERROR, code=code, message=message)

    @classmethod
    def no_speech(cls) -> "UtteranceOutcome":
        return cls(kind=OutcomeKind.NO_SPEECH)


@dataclass(frozen=True)
class InventoryItem:
    id: str = ""
    name: str = ""
    part_number: str = ""
    description: str = ""
    category: str = ""
    quantity: int = 0
    min_quantity: int = 5
    location: str = ""
    price: float = 0.0
    supplier: str = ""
    barcode: str = ""
    created_at: str = ""
    updated_at: str = ""
    tags: Tuple[str, ...] = ()

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity == 0


@dataclass(frozen=True)
class ExtractedFields:
    name: str = "Unknown Item"
    part_number: str = ""
    quantity: int = 1
    location: str = ""
    price: float = 0.0
    category: str = InventoryCategory.OTHER.value

    def to_item(self) -> InventoryItem:
        return InventoryItem(
            name=self.name,
            part_number=self.part_number,
            quantity=self.quantity,
            location=self.location,
            price=self.price,
            category=self.category,
        )


@dataclass(frozen=True)
class SuggestedAction:
    type: str
    parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IntentResult:
    intent: Intent
    transcript: str
    relevant_items: Tuple[InventoryItem, ...] = ()
    response_text: str = ""
    suggested_action: Optional[SuggestedAction] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the controller, emitted on every change."""

    state: SessionState = SessionState.IDLE
    session_id: int = 0
    partial: str = ""
    transcript: str = ""
    intent: Optional[Intent] = None
    audio_level: float = 0.0
    response: Optional[IntentResult] = None
    error_code: str = ""
    error_message: str = ""
