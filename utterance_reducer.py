"""Reduce one listening session's recognizer events to a single outcome."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from errors import CANCELLED_SESSION, NO_SPEECH_KINDS, UNKNOWN, message_for
from models import RecognitionEvent, RecognitionKind, UtteranceOutcome

logger = logging.getLogger(__name__)

LEVEL_FLOOR_DB = -60.0
LEVEL_CEILING_DB = 0.0

TextCallback = Callable[[str], None]
LevelCallback = Callable[[float], None]
Hook = Callable[[], None]


def normalize_level(
    db: float,
    floor_db: float = LEVEL_FLOOR_DB,
    ceiling_db: float = LEVEL_CEILING_DB,
) -> float:
    """Map a dBFS reading onto ``[0.0, 1.0]`` for visualisation."""
    if ceiling_db <= floor_db:
        return 0.0
    ratio = (db - floor_db) / (ceiling_db - floor_db)
    return min(1.0, max(0.0, ratio))


def reduce_utterance(
    events: Iterable[RecognitionEvent],
    on_partial: Optional[TextCallback] = None,
    on_audio_level: Optional[LevelCallback] = None,
    on_speech_start: Optional[Hook] = None,
    on_speech_end: Optional[Hook] = None,
    should_continue: Optional[Callable[[], bool]] = None,
) -> UtteranceOutcome:
    """Consume ``events`` in order until a terminal event.

    Partial results and audio levels are side-channel updates. A final
    result or an error ends the session; the iterable is not read past
    that point. Running out of events first counts as a cancellation.
    """
    for event in events:
        if should_continue is not None and not should_continue():
            logger.debug("reduction abandoned by caller")
            return _cancelled()

        kind = event.kind
        if kind == RecognitionKind.FINAL.value:
            return UtteranceOutcome.success(event.text, event.alternates)
        if kind == RecognitionKind.ERROR.value:
            code = event.code or UNKNOWN
            if code in NO_SPEECH_KINDS:
                logger.debug("no speech detected (%s)", code)
                return UtteranceOutcome.no_speech()
            return UtteranceOutcome.error(code, event.message or message_for(code))
        if kind == RecognitionKind.PARTIAL.value:
            if on_partial:
                on_partial(event.text)
        elif kind == RecognitionKind.AUDIO_LEVEL.value:
            if on_audio_level:
                on_audio_level(normalize_level(event.db))
        elif kind == RecognitionKind.BEGIN.value:
            if on_speech_start:
                on_speech_start()
        elif kind == RecognitionKind.END.value:
            if on_speech_end:
                on_speech_end()
        elif kind != RecognitionKind.READY.value:
            logger.debug("ignoring unknown recognition event %r", kind)

    return _cancelled()


def _cancelled() -> UtteranceOutcome:
    return UtteranceOutcome.error(CANCELLED_SESSION, message_for(CANCELLED_SESSION))
