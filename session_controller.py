"""State-machine based voice command orchestration."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable, Iterable, Optional, Sequence, Tuple

from errors import (
    AI_BACKEND_FAILURE,
    AI_BACKEND_UNCONFIGURED,
    CLIENT,
    RECOGNIZER_UNAVAILABLE,
    UNKNOWN,
    AIBackendError,
    message_for,
)
from intent_classifier import classify
from interfaces import AIBackend, SpeechRecognizer
from models import (
    ACTIVE_STATES,
    InventoryItem,
    OutcomeKind,
    RecognitionEvent,
    SessionSnapshot,
    SessionState,
    UtteranceOutcome,
)
from utterance_reducer import reduce_utterance

logger = logging.getLogger(__name__)

Task = Callable[[], None]
Runner = Callable[[Task], None]
InventoryProvider = Callable[[], Iterable[InventoryItem]]
StateCallback = Callable[[SessionSnapshot, SessionSnapshot], None]
PartialCallback = Callable[[str], None]
LevelCallback = Callable[[float], None]
ErrorCallback = Callable[[str, str], None]


def run_in_thread(task: Task) -> None:
    threading.Thread(target=task, daemon=True).start()


class SessionController:
    """Owns the single voice session and every transition it goes through.

    Each new session (or stop) advances ``session_id``. Background work
    captures the id it was started with and only touches state while that
    id is still current, so results of abandoned sessions are dropped.
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        ai_backend: Optional[AIBackend] = None,
        inventory_provider: InventoryProvider = tuple,
        runner: Runner = run_in_thread,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_audio_level: Optional[LevelCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recognizer = recognizer
        self._ai_backend = ai_backend
        self._inventory_provider = inventory_provider
        self._runner = runner
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_audio_level = on_audio_level
        self._on_error = on_error

        self._lock = threading.RLock()
        self._snapshot = SessionSnapshot()
        self._session_id = 0
        self._dispatched_id = 0

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def backend_configured(self) -> bool:
        return self._ai_backend is not None

    def start_session(self) -> bool:
        with self._lock:
            if self._snapshot.state in ACTIVE_STATES:
                logger.info("start rejected: session %d is %s", self._session_id, self._snapshot.state.value)
                return False
            self._session_id += 1
            token = self._session_id
            self._replace(SessionSnapshot(session_id=token))
            if not self._recognizer_available():
                self._fail(RECOGNIZER_UNAVAILABLE, message_for(RECOGNIZER_UNAVAILABLE))
                return False
            self._update(state=SessionState.LISTENING)
            try:
                events = self._recognizer.start_session()
            except Exception as exc:
                logger.warning("recognizer failed to start: %s", exc)
                self._fail(CLIENT, message_for(CLIENT), stop_recognizer=True)
                return False
        self._runner(lambda: self._consume(token, events))
        return True

    def stop_session(self) -> None:
        with self._lock:
            if self._snapshot.state == SessionState.IDLE:
                return
            previous = self._snapshot.state
            self._session_id += 1
            self._safe_stop_recognizer()
            self._update(
                state=SessionState.IDLE,
                session_id=self._session_id,
                partial="",
                audio_level=0.0,
                error_code="",
                error_message="",
            )
            logger.debug("session stopped from %s", previous.value)

    def submit_transcript(self, text: str) -> bool:
        """Run a turn from typed text instead of speech."""
        transcript = text.strip()
        with self._lock:
            if self._snapshot.state in ACTIVE_STATES or not transcript:
                return False
            self._session_id += 1
            token = self._session_id
            self._replace(SessionSnapshot(session_id=token))
            task = self._begin_turn(token, transcript)
        if task is not None:
            self._runner(task)
        return True

    def clear_response(self) -> None:
        with self._lock:
            if self._snapshot.state in ACTIVE_STATES:
                return
            self._replace(SessionSnapshot(session_id=self._session_id))

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    def _consume(self, token: int, events: Iterable[RecognitionEvent]) -> None:
        try:
            outcome = reduce_utterance(
                events,
                on_partial=lambda text: self._handle_partial(token, text),
                on_audio_level=lambda level: self._handle_audio_level(token, level),
                on_speech_start=lambda: self._handle_speech_start(token),
                should_continue=lambda: self._is_current(token),
            )
        except Exception as exc:
            logger.error("recognition stream failed: %s", exc, exc_info=True)
            outcome = UtteranceOutcome.error(UNKNOWN, str(exc))
        finally:
            self._close_events(events)
        self._handle_outcome(token, outcome)

    def _handle_speech_start(self, token: int) -> None:
        with self._lock:
            if self._is_current(token) and self._snapshot.state == SessionState.LISTENING:
                self._update(state=SessionState.TRANSCRIBING, partial="")

    def _handle_partial(self, token: int, text: str) -> None:
        with self._lock:
            if not self._is_current(token):
                return
            if self._snapshot.state not in (SessionState.LISTENING, SessionState.TRANSCRIBING):
                return
            self._update(state=SessionState.TRANSCRIBING, partial=text)
            if self._on_partial:
                self._on_partial(text)

    def _handle_audio_level(self, token: int, level: float) -> None:
        with self._lock:
            if not self._is_current(token):
                return
            self._update(audio_level=level)
            if self._on_audio_level:
                self._on_audio_level(level)

    def _handle_outcome(self, token: int, outcome: UtteranceOutcome) -> None:
        task: Optional[Task] = None
        with self._lock:
            if not self._is_current(token):
                logger.info("discarding recognition result of stale session %d", token)
                return
            if outcome.kind == OutcomeKind.SUCCESS:
                transcript = outcome.text.strip()
                if transcript:
                    task = self._begin_turn(token, transcript)
                else:
                    self._go_idle()
            elif outcome.kind == OutcomeKind.NO_SPEECH:
                self._go_idle()
            else:
                logger.warning("recognition failed (%s): %s", outcome.code, outcome.message)
                self._fail(outcome.code, message_for(outcome.code), stop_recognizer=True)
        if task is not None:
            self._runner(task)

    # ------------------------------------------------------------------
    # Intent turn
    # ------------------------------------------------------------------

    def _begin_turn(self, token: int, transcript: str) -> Optional[Task]:
        inventory: Tuple[InventoryItem, ...] = tuple(self._inventory_provider())
        self._update(
            state=SessionState.AWAITING_INTENT,
            transcript=transcript,
            intent=classify(transcript),
            partial="",
            audio_level=0.0,
        )
        if self._ai_backend is None:
            self._fail(AI_BACKEND_UNCONFIGURED, message_for(AI_BACKEND_UNCONFIGURED))
            return None
        if self._dispatched_id == token:
            return None
        self._dispatched_id = token
        self._update(state=SessionState.PROCESSING)
        backend = self._ai_backend
        return lambda: self._call_backend(token, backend, transcript, inventory)

    def _call_backend(
        self,
        token: int,
        backend: AIBackend,
        transcript: str,
        inventory: Sequence[InventoryItem],
    ) -> None:
        try:
            result = backend.classify_and_respond(transcript, inventory)
        except AIBackendError as exc:
            self._finish_failure(token, exc.message)
            return
        except Exception as exc:
            logger.error("AI backend raised: %s", exc, exc_info=True)
            self._finish_failure(token, str(exc) or message_for(AI_BACKEND_FAILURE))
            return
        with self._lock:
            if not self._is_current(token):
                logger.info("dropping AI response of stale session %d", token)
                return
            self._update(state=SessionState.COMPLETED, response=result, error_code="", error_message="")

    def _finish_failure(self, token: int, message: str) -> None:
        with self._lock:
            if not self._is_current(token):
                logger.info("dropping AI failure of stale session %d", token)
                return
            logger.warning("AI backend failed: %s", message)
            self._fail(AI_BACKEND_FAILURE, message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_current(self, token: int) -> bool:
        return token == self._session_id

    def _recognizer_available(self) -> bool:
        try:
            return bool(self._recognizer.is_available())
        except Exception as exc:
            logger.warning("recognizer availability check failed: %s", exc)
            return False

    def _go_idle(self) -> None:
        self._safe_stop_recognizer()
        self._update(state=SessionState.IDLE, partial="", audio_level=0.0)

    def _fail(self, code: str, message: str, stop_recognizer: bool = False) -> None:
        if stop_recognizer:
            self._safe_stop_recognizer()
        self._update(
            state=SessionState.FAILED,
            partial="",
            audio_level=0.0,
            error_code=code,
            error_message=message,
        )
        if self._on_error:
            self._on_error(code, message)

    def _close_events(self, events: Iterable[RecognitionEvent]) -> None:
        close = getattr(events, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as exc:
            logger.warning("closing recognition stream failed: %s", exc)

    def _safe_stop_recognizer(self) -> None:
        try:
            self._recognizer.stop()
        except Exception as exc:
            logger.warning("recognizer stop failed: %s", exc)

    def _update(self, **changes: object) -> None:
        self._replace(dataclasses.replace(self._snapshot, **changes))

    def _replace(self, snapshot: SessionSnapshot) -> None:
        previous = self._snapshot
        if previous == snapshot:
            return
        self._snapshot = snapshot
        if previous.state != snapshot.state:
            logger.debug(
                "session %d: %s -> %s",
                snapshot.session_id,
                previous.state.value,
                snapshot.state.value,
            )
        if self._on_state_change:
            self._on_state_change(previous, snapshot)
