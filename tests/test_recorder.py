"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

from queue import Queue
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from models import AudioFrame
from recorder import SILENCE_DB, SoundDeviceRecorder, is_device_available, pcm16_level_db


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _block(value: int = 0, n_samples: int = 1600) -> np.ndarray:
    """Block shaped like the sounddevice int16 callback buffer."""
    return np.full((n_samples, 1), value, dtype=np.int16)


# ---------------------------------------------------------------
# Level metering
# ---------------------------------------------------------------

def test_level_of_silence_is_floor() -> None:
    assert pcm16_level_db(_block(0).tobytes()) == SILENCE_DB
    assert pcm16_level_db(b"") == SILENCE_DB


def test_level_of_half_scale_signal() -> None:
    assert pcm16_level_db(_block(16384).tobytes()) == pytest.approx(-6.02, abs=0.01)


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_runs(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)

    mock_sd.InputStream.assert_called_once()
    mock_stream.start.assert_called_once()

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()

    # Should have emitted sentinel
    assert q.get_nowait() is None


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.start(q)

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.stop()
    recorder.stop()

    assert q.get_nowait() is None
    mock_stream.close.assert_called_once()


# ---------------------------------------------------------------
# Audio callback pushes frames to queue
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_pushes_audio_frames_with_level(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    q: Queue[AudioFrame | None] = Queue(maxsize=50)
    recorder.start(q)

    recorder._on_audio(_block(16384), frames=1600, time_info=None, status=None)

    frame = q.get_nowait()
    assert isinstance(frame, AudioFrame)
    assert frame.sample_rate == 16000
    assert frame.channels == 1
    assert len(frame.pcm16_bytes) == 1600 * 2
    assert frame.level_db == pytest.approx(-6.02, abs=0.01)

    recorder.stop()


@patch("recorder.sd")
def test_queue_full_increments_dropped_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue(maxsize=1)
    recorder.start(q)

    recorder._on_audio(_block(), frames=1600, time_info=None, status=None)
    assert recorder.dropped_chunks == 0

    recorder._on_audio(_block(), frames=1600, time_info=None, status=None)
    assert recorder.dropped_chunks == 1

    recorder.stop()


@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.stop()
    q.get_nowait()

    recorder._on_audio(_block(), frames=1600, time_info=None, status=None)
    assert q.empty()


# ---------------------------------------------------------------
# No sounddevice installed / device probing
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        recorder.start(q)


@patch("recorder.sd")
def test_is_device_available(mock_sd: MagicMock) -> None:
    assert is_device_available() is True

    mock_sd.query_devices.side_effect = ValueError("No input device matching")
    assert is_device_available() is False


@patch("recorder.sd", None)
def test_is_device_available_without_sounddevice() -> None:
    assert is_device_available() is False
