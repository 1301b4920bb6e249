"""Speech recognizer adapter using DashScope qwen3-asr-flash.

The qwen3-asr-flash model accepts complete audio (file path, URL, or base64)
and streams back recognition results via ``stream=True``.  Microphone
frames are collected until the speaker goes quiet, converted to a WAV
payload and sent to the model.  Everything the session produces is
exposed as one lazy sequence of ``RecognitionEvent`` values.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import time
import wave
from http import HTTPStatus
from queue import Empty, Queue
from typing import Callable, Iterator, Optional

from errors import AUDIO, BUSY, CLIENT, NETWORK, NETWORK_TIMEOUT, NO_MATCH, SERVER, SPEECH_TIMEOUT
from interfaces import Recorder
from models import AudioFrame, RecognitionEvent
from recorder import SoundDeviceRecorder, is_device_available

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    wav_bytes = buf.getvalue()
    return base64.b64encode(wav_bytes).decode("ascii")


class DashscopeSpeechRecognizer:
    def __init__(
        self,
        api_key: str,
        recorder: Optional[Recorder] = None,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        speech_threshold_db: float = -40.0,
        end_silence_s: float = 1.2,
        no_speech_timeout_s: float = 5.0,
        max_listen_s: float = 15.0,
        queue_maxsize: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api_key = api_key
        self._recorder: Recorder = recorder or SoundDeviceRecorder()
        self._has_own_recorder = recorder is None
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._speech_threshold_db = speech_threshold_db
        self._end_silence_s = end_silence_s
        self._no_speech_timeout_s = no_speech_timeout_s
        self._max_listen_s = max_listen_s
        self._queue_maxsize = queue_maxsize
        self._clock = clock
        self._lock = threading.Lock()
        self._session = 0
        self._stop_event = threading.Event()
        self._stop_event.set()

    def is_available(self) -> bool:
        if dashscope is None:
            return False
        if not (self._api_key or os.getenv("DASHSCOPE_API_KEY", "")):
            return False
        if self._has_own_recorder:
            return is_device_available()
        return True

    def start_session(self) -> Iterator[RecognitionEvent]:
        """Start a new session; a session still running is stopped first."""
        with self._lock:
            if not self._stop_event.is_set():
                self._stop_locked()
            self._session += 1
            session = self._session
            stop_event = threading.Event()
            self._stop_event = stop_event
        audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
        return self._events(audio_queue, session, stop_event)

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        self._stop_event.set()
        try:
            self._recorder.stop()
        except Exception as exc:
            logger.warning("recorder stop failed: %s", exc)

    def _owns_recorder(self, session: int) -> bool:
        with self._lock:
            return session == self._session and not self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _events(
        self,
        audio_queue: Queue[AudioFrame | None],
        session: int,
        stop_event: threading.Event,
    ) -> Iterator[RecognitionEvent]:
        if stop_event.is_set():
            return
        try:
            self._recorder.start(audio_queue)
        except Exception as exc:
            logger.warning("recorder start failed: %s", exc)
            yield RecognitionEvent.error(AUDIO, str(exc))
            return
        yield RecognitionEvent.ready()

        pcm = bytearray()
        sample_rate = 16000
        channels = 1
        began = False
        started = self._clock()
        last_voice = started

        try:
            while not stop_event.is_set():
                try:
                    frame = audio_queue.get(timeout=0.2)
                except Empty:
                    frame = AudioFrame(pcm16_bytes=b"")
                if frame is None:  # Sentinel
                    break

                now = self._clock()
                if frame.pcm16_bytes:
                    pcm.extend(frame.pcm16_bytes)
                    sample_rate = frame.sample_rate
                    channels = frame.channels
                    yield RecognitionEvent.audio_level(frame.level_db)
                    if frame.level_db >= self._speech_threshold_db:
                        last_voice = now
                        if not began:
                            began = True
                            yield RecognitionEvent.begin()

                if began and now - last_voice >= self._end_silence_s:
                    break
                if not began and now - started >= self._no_speech_timeout_s:
                    yield RecognitionEvent.error(SPEECH_TIMEOUT)
                    return
                if now - started >= self._max_listen_s:
                    break
        finally:
            # a newer session may already be using the shared recorder
            if self._owns_recorder(session):
                self._recorder.stop()

        if stop_event.is_set():
            return
        yield RecognitionEvent.end()

        if not began or not pcm:
            yield RecognitionEvent.error(NO_MATCH)
            return

        wav_b64 = _pcm_to_wav_base64(bytes(pcm), sample_rate, channels)
        yield from self._recognize_stream(wav_b64, stop_event)

    def _recognize_stream(self, wav_base64: str, stop_event: threading.Event) -> Iterator[RecognitionEvent]:
        """Send audio to dashscope and stream partial/final results."""
        if dashscope is None:
            yield RecognitionEvent.error(CLIENT, "dashscope is not installed")
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            yield RecognitionEvent.error(CLIENT, "No API key configured")
            return

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            yield self._to_error_event(exc)
            return

        latest_text = ""
        try:
            for chunk in response:
                if stop_event.is_set():
                    return
                failure = self._chunk_failure(chunk)
                if failure is not None:
                    yield failure
                    return
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    yield RecognitionEvent.partial(text)
        except Exception as exc:
            yield self._to_error_event(exc)
            return

        if not latest_text.strip():
            yield RecognitionEvent.error(NO_MATCH)
            return
        yield RecognitionEvent.final(latest_text, (latest_text,))

    def _chunk_failure(self, chunk: object) -> Optional[RecognitionEvent]:
        if not isinstance(chunk, dict):
            return None
        status = chunk.get("status_code")
        if status is None or status == HTTPStatus.OK:
            return None
        message = str(chunk.get("message") or chunk.get("code") or status)
        return self._to_error_event(RuntimeError(f"{status} {message}"))

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output") or {}
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _to_error_event(self, exc: Exception) -> RecognitionEvent:
        """Map an SDK/network exception to a recognizer error event."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "403" in low or "auth" in low or "api key" in low:
            code = CLIENT
        elif "timeout" in low or "timed out" in low:
            code = NETWORK_TIMEOUT
        elif "network" in low or "connection" in low:
            code = NETWORK
        elif "429" in low or "throttl" in low or "busy" in low:
            code = BUSY
        else:
            code = SERVER
        logger.warning("recognition failed (%s): %s", code, message)
        return RecognitionEvent.error(code, message)
