"""State-machine based dictation: record, transcribe, paste."""

from __future__ import annotations

import logging
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional

from errors import CANCELLED, DictationError, TRANSCRIPTION_FAILED
from interfaces import ConfigStore, PasteService, Recorder, Scheduler
from models import DictationState, ModelDescriptor, PasteResult, Transcript
from transcription import TranscriptionOrchestrator

logger = logging.getLogger(__name__)

StateCallback = Callable[[DictationState, DictationState], None]
TranscriptCallback = Callable[[Transcript], None]
ErrorCallback = Callable[[str, str], None]

PASTE_AFTER_TRANSCRIBE_DELAY_S = 0.05


class DictationController:
    def __init__(
        self,
        recorder: Recorder,
        orchestrator: TranscriptionOrchestrator,
        paste_service: PasteService,
        scheduler: Scheduler,
        config_store: ConfigStore,
        model: ModelDescriptor,
        recording_dir: Optional[Path] = None,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._orchestrator = orchestrator
        self._paste_service = paste_service
        self._scheduler = scheduler
        self._config_store = config_store
        self.model = model
        self._recording_dir = recording_dir or Path(tempfile.gettempdir())
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = DictationState.IDLE
        self._session_id = 0
        self._cancel_requested = False

    @property
    def state(self) -> DictationState:
        return self._state

    def start_recording(self) -> None:
        with self._lock:
            if self._state != DictationState.IDLE:
                return
            self._session_id += 1
            self._cancel_requested = False
            self._transition(DictationState.RECORDING)
            try:
                self._recorder.start()
            except Exception as exc:
                self._fail(TRANSCRIPTION_FAILED, f"recording failed to start: {exc}")

    def stop_and_transcribe(self) -> Optional[Transcript]:
        """Blocks for the whole transcription; call it off the UI thread."""
        with self._lock:
            if self._state != DictationState.RECORDING:
                return None
            self._transition(DictationState.TRANSCRIBING)
            path = self._recording_dir / f"notescribe_recording_{self._session_id}.wav"
            try:
                self._recorder.stop(path)
            except Exception as exc:
                self._fail(TRANSCRIPTION_FAILED, f"recording failed: {exc}")
                return None

        try:
            use_vad = self._config_store.load_settings().vad_enabled_live
            transcript = self._orchestrator.transcribe(path, self.model, use_vad=use_vad)
        except DictationError as exc:
            logger.error("Transcription failed: %s", exc)
            with self._lock:
                self._fail(exc.code, exc.user_message)
            return None
        finally:
            path.unlink(missing_ok=True)

        if self._on_transcript:
            self._on_transcript(transcript)

        with self._lock:
            if self._cancel_requested or self._state != DictationState.TRANSCRIBING:
                logger.info("Dictation cancelled; transcript kept in history, not pasted")
                self._transition(DictationState.IDLE)
                return transcript
            if not transcript.text.strip():
                self._transition(DictationState.IDLE)
                return transcript
            self._transition(DictationState.PASTING)
            text = transcript.text + " "
            self._scheduler.call_later(
                PASTE_AFTER_TRANSCRIBE_DELAY_S, lambda: self._start_paste(text)
            )
        return transcript

    def cancel(self) -> None:
        cancel_paste = False
        with self._lock:
            if self._state == DictationState.RECORDING:
                try:
                    self._recorder.discard()
                except Exception as exc:
                    logger.warning("Discarding recording failed: %s", exc)
                self._emit_error(CANCELLED, "recording cancelled")
                self._transition(DictationState.IDLE)
            elif self._state == DictationState.TRANSCRIBING:
                self._cancel_requested = True
            elif self._state == DictationState.PASTING:
                self._cancel_requested = True
                cancel_paste = True
        # the paste service reports back through _on_paste_done, which takes our lock
        if cancel_paste:
            self._paste_service.cancel()

    def _start_paste(self, text: str) -> None:
        with self._lock:
            if self._cancel_requested:
                self._transition(DictationState.IDLE)
                return
        self._paste_service.paste_at_cursor(text, on_done=self._on_paste_done)

    def _on_paste_done(self, result: PasteResult) -> None:
        with self._lock:
            if not result.success:
                self._emit_error(result.reason, "paste did not complete")
            self._transition(DictationState.IDLE)

    def _fail(self, code: str, message: str) -> None:
        self._transition(DictationState.ERROR)
        self._emit_error(code, message)
        self._transition(DictationState.IDLE)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: DictationState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
