"""Voice-activity gating ahead of ASR.

Short clips go straight to the recognizer. Longer clips are cut down to their
speech segments when VAD is enabled, and any VAD trouble falls back to the
full buffer so transcription always has audio to work with.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import numpy as np

from interfaces import VadEngine, VadSession
from models import GateResult

logger = logging.getLogger(__name__)

MIN_GATED_DURATION_S = 20.0
VAD_THRESHOLD = 0.7


class VadGate:
    def __init__(self, engine: VadEngine, threshold: float = VAD_THRESHOLD) -> None:
        self._engine = engine
        self._threshold = threshold
        self._session: Optional[VadSession] = None
        self._lock = threading.Lock()

    @property
    def has_session(self) -> bool:
        return self._session is not None

    def gate(self, samples: np.ndarray, duration_s: float, use_vad: bool) -> GateResult:
        if duration_s < MIN_GATED_DURATION_S or not use_vad:
            return GateResult(samples=samples)

        start = time.monotonic()
        try:
            session = self._ensure_session()
            segments = session.segment(samples)
        except Exception as exc:
            logger.warning("VAD segmentation failed; using full audio: %s", exc)
            return GateResult(samples=samples, vad_invoked=True, degraded=True, reason=str(exc))

        logger.info(
            "[perf] VAD segmentation: %.2fs, segments=%d", time.monotonic() - start, len(segments)
        )
        if not segments:
            logger.info("VAD found no speech; using full audio")
            return GateResult(samples=samples, vad_invoked=True, segment_count=0)
        merged = np.concatenate([np.asarray(s, dtype=np.float32) for s in segments])
        return GateResult(samples=merged, vad_invoked=True, segment_count=len(segments))

    def release(self) -> None:
        with self._lock:
            self._session = None

    def _ensure_session(self) -> VadSession:
        with self._lock:
            if self._session is None:
                start = time.monotonic()
                self._session = self._engine.construct(self._threshold)
                logger.info("[perf] VAD init: %.2fs", time.monotonic() - start)
            return self._session
