"""Audio file → persisted transcript orchestration."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from audio import archive_audio, duration_seconds, read_audio_samples
from config import PipelineSettings
from errors import ModelNotLoadedError, NoAudioFileError, TranscriptionFailedError
from interfaces import ConfigStore, TranscriptStore
from models import ModelDescriptor, Transcript, TranscriptionOutcome
from session_manager import ModelSessionManager
from text_pipeline import NormalizeOptions, WordReplacer, normalize

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[Transcript], None]


class TranscriptionOrchestrator:
    def __init__(
        self,
        session_manager: ModelSessionManager,
        config_store: ConfigStore,
        transcript_store: TranscriptStore,
        on_transcript_created: Optional[TranscriptCallback] = None,
    ) -> None:
        self._sessions = session_manager
        self._config_store = config_store
        self._transcript_store = transcript_store
        self._listeners: list[TranscriptCallback] = []
        if on_transcript_created is not None:
            self._listeners.append(on_transcript_created)

    def subscribe(self, callback: TranscriptCallback) -> None:
        self._listeners.append(callback)

    def transcribe(
        self,
        audio_path: Path,
        model: ModelDescriptor,
        use_vad: Optional[bool] = None,
    ) -> Transcript:
        return self.transcribe_with_outcome(audio_path, model, use_vad).transcript

    def transcribe_with_outcome(
        self,
        audio_path: Path,
        model: ModelDescriptor,
        use_vad: Optional[bool] = None,
    ) -> TranscriptionOutcome:
        audio_path = Path(audio_path)
        if not audio_path.is_file():
            raise NoAudioFileError(f"no audio file at {audio_path}")

        settings = self._config_store.load_settings()
        if use_vad is None:
            use_vad = settings.vad_enabled_file
        warnings: list[str] = []
        started = time.monotonic()

        with self._sessions.session(model.version) as session:
            read_start = time.monotonic()
            samples = read_audio_samples(audio_path)
            logger.info("[perf] readAudioSamples: %.2fs", time.monotonic() - read_start)

            source_duration = duration_seconds(samples)
            gated = self._sessions.vad_gate.gate(samples, source_duration, use_vad)
            if gated.degraded:
                warnings.append(f"vad: {gated.reason}")

            asr_start = time.monotonic()
            try:
                raw_text = session.transcribe(gated.samples)
            except (ModelNotLoadedError, TranscriptionFailedError):
                raise
            except Exception as exc:
                raise TranscriptionFailedError(str(exc)) from exc
            logger.info("[perf] ASR transcribe: %.2fs", time.monotonic() - asr_start)

        logger.debug("Raw transcript: %s", raw_text)
        text = normalize(raw_text, self._normalize_options(settings))
        processing_duration = time.monotonic() - started
        logger.info(
            "[perf] File transcription total: %.2fs (useVAD=%s)", processing_duration, use_vad
        )

        archive_path: Optional[str] = None
        try:
            archive_path = str(archive_audio(audio_path, settings.recordings_dir))
        except OSError as exc:
            logger.error("Failed to archive audio %s: %s", audio_path, exc)
            warnings.append(f"archive: {exc}")

        transcript = Transcript(
            text=text,
            source_duration=source_duration,
            audio_archive_path=archive_path,
            model_display_name=model.display_name,
            processing_duration=processing_duration,
            created_at=datetime.now(),
        )

        persisted = self._persist(transcript, warnings)
        if persisted:
            self._emit_created(transcript)
        return TranscriptionOutcome(transcript=transcript, warnings=warnings, persisted=persisted)

    def _normalize_options(self, settings: PipelineSettings) -> NormalizeOptions:
        return NormalizeOptions(
            filter_output=True,
            format_text=settings.text_formatting_enabled,
            dictionary=WordReplacer(self._config_store.get_word_replacements()),
        )

    def _persist(self, transcript: Transcript, warnings: list[str]) -> bool:
        try:
            self._transcript_store.insert(transcript)
        except Exception as exc:
            logger.error("Failed to save transcription: %s", exc)
            warnings.append(f"persistence: {exc}")
            return False
        return True

    def _emit_created(self, transcript: Transcript) -> None:
        for listener in list(self._listeners):
            try:
                listener(transcript)
            except Exception as exc:
                logger.warning("transcript-created listener failed: %s", exc)
