"""Microphone recorder that produces 16 kHz mono PCM16 WAV files."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from audio import SAMPLE_RATE, pcm16_to_wav_bytes

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


class WavRecorder:
    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._chunks: list[bytes] = []

    @property
    def is_recording(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._chunks = []
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True

    def stop(self, path: Path) -> Path:
        """Stop capturing and write everything recorded so far to ``path``."""
        pcm = self._close_stream()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(
            pcm16_to_wav_bytes(pcm, sample_rate=self.sample_rate, channels=self.channels)
        )
        return path

    def discard(self) -> None:
        self._close_stream()

    def _close_stream(self) -> bytes:
        with self._lock:
            self._running = False
            stream, self._stream = self._stream, None
        # stopping waits for the audio callback, which takes the lock
        if stream is not None:
            stream.stop()
            stream.close()
        with self._lock:
            pcm = b"".join(self._chunks)
            self._chunks = []
        return pcm

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        with self._lock:
            self._chunks.append(payload)
