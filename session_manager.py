"""Ownership of the loaded ASR sessions and the shared VAD gate."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from errors import EngineInitError
from interfaces import AsrEngine, AsrSession, ModelArtifactProvider, VadEngine
from models import CachePolicy, ModelDescriptor, ModelVersion
from vad_gate import VadGate

logger = logging.getLogger(__name__)


class ModelSessionManager:
    """Loads, switches and releases ASR sessions keyed by model version.

    With ``CachePolicy.SINGLE`` at most one ASR session is resident and a
    version switch releases the old session before the new one is built.
    ``CachePolicy.MULTI`` keeps one session per version so switching back
    costs nothing. The VAD gate is shared across versions and only torn
    down by ``cleanup``.

    All operations serialize on one re-entrant lock; ``session()`` holds it
    for the whole block so a concurrent switch cannot release a session
    that is still transcribing.
    """

    def __init__(
        self,
        asr_engine: AsrEngine,
        vad_engine: VadEngine,
        artifacts: ModelArtifactProvider,
        policy: CachePolicy = CachePolicy.SINGLE,
    ) -> None:
        self._asr_engine = asr_engine
        self._artifacts = artifacts
        self._policy = policy
        self._sessions: dict[ModelVersion, AsrSession] = {}
        self._active_version: Optional[ModelVersion] = None
        self._lock = threading.RLock()
        self.vad_gate = VadGate(vad_engine)

    @property
    def active_version(self) -> Optional[ModelVersion]:
        return self._active_version

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    def resident_versions(self) -> list[ModelVersion]:
        with self._lock:
            return list(self._sessions)

    def load_model(self, descriptor: ModelDescriptor) -> AsrSession:
        return self.ensure_loaded(descriptor.version)

    def ensure_loaded(self, version: ModelVersion) -> AsrSession:
        with self._lock:
            existing = self._sessions.get(version)
            if existing is not None and (
                self._policy is CachePolicy.MULTI or self._active_version is version
            ):
                self._active_version = version
                return existing

            if self._policy is CachePolicy.SINGLE:
                self._release_asr_sessions()
            self._active_version = None

            session = self._construct(version)
            self._sessions[version] = session
            self._active_version = version
            return session

    @contextmanager
    def session(self, version: ModelVersion) -> Iterator[AsrSession]:
        with self._lock:
            yield self.ensure_loaded(version)

    def cleanup(self) -> None:
        with self._lock:
            self._release_asr_sessions()
            self.vad_gate.release()
            self._active_version = None

    def _construct(self, version: ModelVersion) -> AsrSession:
        if not self._artifacts.is_available(version):
            raise EngineInitError(f"model artifacts missing for {version.value}")
        start = time.monotonic()
        try:
            session = self._asr_engine.load(version, self._artifacts.location(version))
        except EngineInitError:
            raise
        except Exception as exc:
            raise EngineInitError(f"failed to load {version.value}: {exc}") from exc
        logger.info("[perf] ASR %s load: %.2fs", version.value, time.monotonic() - start)
        return session

    def _release_asr_sessions(self) -> None:
        while self._sessions:
            version, session = self._sessions.popitem()
            try:
                session.release()
            except Exception as exc:
                logger.warning("Releasing %s session failed: %s", version.value, exc)
            logger.debug("Released ASR session %s", version.value)
