from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from config import PipelineSettings
from errors import (
    InvalidAudioFormatError,
    ModelNotLoadedError,
    NoAudioFileError,
    PersistenceError,
    TranscriptionFailedError,
)
from models import PARAKEET_V2, PARAKEET_V3, ModelVersion, Transcript
from session_manager import ModelSessionManager
from transcription import TranscriptionOrchestrator


class FakeAsrSession:
    def __init__(self, log: list[str], text: str = "", error: Exception | None = None) -> None:
        self._log = log
        self._text = text
        self._error = error
        self.received: list[np.ndarray] = []

    def transcribe(self, samples: np.ndarray) -> str:
        self._log.append("asr")
        self.received.append(samples)
        if self._error is not None:
            raise self._error
        return self._text if len(samples) else ""

    def release(self) -> None:
        self._log.append("release")


class FakeAsrEngine:
    def __init__(self, log: list[str], text: str = "", error: Exception | None = None) -> None:
        self._log = log
        self._text = text
        self._error = error
        self.sessions: list[FakeAsrSession] = []

    def load(self, version: ModelVersion, artifacts: Path) -> FakeAsrSession:
        self._log.append(f"load {version.value}")
        session = FakeAsrSession(self._log, self._text, self._error)
        self.sessions.append(session)
        return session


class FakeVadSession:
    def __init__(self, segments=None, error: Exception | None = None) -> None:
        self._segments = segments
        self._error = error

    def segment(self, samples: np.ndarray) -> list[np.ndarray]:
        if self._error is not None:
            raise self._error
        if self._segments is None:
            return [samples[:16000]]
        return self._segments


class FakeVadEngine:
    def __init__(self, session: FakeVadSession | None = None) -> None:
        self.session = session or FakeVadSession()
        self.constructed = 0

    def construct(self, threshold: float) -> FakeVadSession:
        self.constructed += 1
        return self.session


class FakeArtifacts:
    def location(self, version: ModelVersion) -> Path:
        return Path("/models") / version.value

    def is_available(self, version: ModelVersion) -> bool:
        return True


class FakeConfigStore:
    def __init__(self, settings: PipelineSettings, replacements=None, log=None) -> None:
        self._settings = settings
        self._replacements = replacements or {}
        self._log = log

    def load_settings(self) -> PipelineSettings:
        return self._settings

    def get_word_replacements(self) -> dict[str, str]:
        if self._log is not None:
            self._log.append("replacements")
        return dict(self._replacements)


class FakeTranscriptStore:
    def __init__(self, log: list[str], error: Exception | None = None) -> None:
        self._log = log
        self._error = error
        self.saved: list[Transcript] = []

    def insert(self, transcript: Transcript) -> None:
        self._log.append("insert")
        if self._error is not None:
            raise self._error
        self.saved.append(transcript)


def _write_wav(path: Path, seconds: float) -> Path:
    pcm = (np.ones(int(seconds * 16000)) * 1000).astype("<i2")
    path.write_bytes(b"\x00" * 44 + pcm.tobytes())
    return path


def _build(
    tmp_path: Path,
    text: str = "hello world",
    asr_error: Exception | None = None,
    store_error: Exception | None = None,
    vad_session: FakeVadSession | None = None,
    replacements=None,
    **settings,
):
    log: list[str] = []
    settings.setdefault("recordings_dir", tmp_path / "Recordings")
    config = FakeConfigStore(PipelineSettings(**settings), replacements, log)
    engine = FakeAsrEngine(log, text, asr_error)
    vad = FakeVadEngine(vad_session)
    manager = ModelSessionManager(engine, vad, FakeArtifacts())
    store = FakeTranscriptStore(log, store_error)
    events: list[Transcript] = []
    orchestrator = TranscriptionOrchestrator(manager, config, store, on_transcript_created=events.append)
    return orchestrator, engine, vad, store, events, log


def test_missing_file_fails_before_loading_any_model(tmp_path: Path) -> None:
    orchestrator, engine, _, store, events, log = _build(tmp_path)

    with pytest.raises(NoAudioFileError):
        orchestrator.transcribe(tmp_path / "absent.wav", PARAKEET_V3)

    assert log == []
    assert events == []


def test_truncated_header_is_invalid_format(tmp_path: Path) -> None:
    orchestrator, *_ = _build(tmp_path)
    path = tmp_path / "short.wav"
    path.write_bytes(b"RIFF" + b"\x00" * 20)

    with pytest.raises(InvalidAudioFormatError):
        orchestrator.transcribe(path, PARAKEET_V3)


def test_header_only_file_yields_empty_transcript(tmp_path: Path) -> None:
    orchestrator, _, _, store, _, _ = _build(tmp_path)
    path = _write_wav(tmp_path / "empty.wav", 0)

    transcript = orchestrator.transcribe(path, PARAKEET_V3)

    assert transcript.text == ""
    assert transcript.source_duration == 0.0
    assert store.saved == [transcript]


def test_happy_path_builds_persists_and_announces(tmp_path: Path) -> None:
    orchestrator, engine, vad, store, events, _ = _build(tmp_path, text="Hello world.")
    path = _write_wav(tmp_path / "clip.wav", 2.0)

    outcome = orchestrator.transcribe_with_outcome(path, PARAKEET_V2)
    transcript = outcome.transcript

    assert transcript.text == "Hello world."
    assert transcript.source_duration == pytest.approx(2.0)
    assert transcript.model_display_name == PARAKEET_V2.display_name
    assert transcript.processing_duration >= 0.0
    archived = Path(transcript.audio_archive_path)
    assert archived.parent == tmp_path / "Recordings"
    assert archived.name.startswith("retranscribed_")
    assert archived.read_bytes() == path.read_bytes()
    assert outcome.persisted is True
    assert outcome.warnings == []
    assert store.saved == [transcript]
    assert events == [transcript]
    assert vad.constructed == 0


def test_steps_run_in_order(tmp_path: Path) -> None:
    orchestrator, _, _, _, _, log = _build(tmp_path)
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    orchestrator.transcribe(path, PARAKEET_V3)

    assert log == ["load v3", "asr", "replacements", "insert"]


def test_dictionary_and_filter_are_applied(tmp_path: Path) -> None:
    orchestrator, *_ = _build(
        tmp_path, text="[noise] um hello there", replacements={"um": "", "hello": "hi"}
    )
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    assert orchestrator.transcribe(path, PARAKEET_V3).text == "hi there"


def test_asr_failure_is_transcription_failed(tmp_path: Path) -> None:
    orchestrator, _, _, store, events, _ = _build(tmp_path, asr_error=RuntimeError("boom"))
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    with pytest.raises(TranscriptionFailedError, match="boom"):
        orchestrator.transcribe(path, PARAKEET_V3)

    assert store.saved == []
    assert events == []
    assert not (tmp_path / "Recordings").exists()


def test_model_not_loaded_passes_through(tmp_path: Path) -> None:
    orchestrator, *_ = _build(tmp_path, asr_error=ModelNotLoadedError())
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    with pytest.raises(ModelNotLoadedError):
        orchestrator.transcribe(path, PARAKEET_V3)


def test_persistence_failure_still_returns_transcript(tmp_path: Path) -> None:
    orchestrator, _, _, _, events, _ = _build(
        tmp_path, store_error=PersistenceError("disk full")
    )
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    outcome = orchestrator.transcribe_with_outcome(path, PARAKEET_V3)

    assert outcome.transcript.text == "hello world"
    assert outcome.persisted is False
    assert any("disk full" in w for w in outcome.warnings)
    assert events == []


def test_long_file_is_gated_through_vad(tmp_path: Path) -> None:
    orchestrator, engine, vad, *_ = _build(tmp_path)
    path = _write_wav(tmp_path / "long.wav", 25.0)

    transcript = orchestrator.transcribe(path, PARAKEET_V3)

    assert vad.constructed == 1
    assert len(engine.sessions[0].received[0]) == 16000
    assert transcript.source_duration == pytest.approx(25.0)


def test_vad_can_be_disabled_per_call(tmp_path: Path) -> None:
    orchestrator, engine, vad, *_ = _build(tmp_path)
    path = _write_wav(tmp_path / "long.wav", 25.0)

    orchestrator.transcribe(path, PARAKEET_V3, use_vad=False)

    assert vad.constructed == 0
    assert len(engine.sessions[0].received[0]) == 25 * 16000


def test_file_vad_setting_is_the_default(tmp_path: Path) -> None:
    orchestrator, engine, vad, *_ = _build(tmp_path, vad_enabled_file=False)
    path = _write_wav(tmp_path / "long.wav", 25.0)

    orchestrator.transcribe(path, PARAKEET_V3)

    assert vad.constructed == 0


def test_vad_failure_degrades_to_full_buffer(tmp_path: Path) -> None:
    orchestrator, engine, *_ = _build(
        tmp_path, vad_session=FakeVadSession(error=RuntimeError("vad broke"))
    )
    path = _write_wav(tmp_path / "long.wav", 21.0)

    outcome = orchestrator.transcribe_with_outcome(path, PARAKEET_V3)

    assert len(engine.sessions[0].received[0]) == 21 * 16000
    assert any("vad broke" in w for w in outcome.warnings)
    assert outcome.persisted is True


def test_archive_failure_is_a_warning(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    orchestrator, *_ = _build(tmp_path, recordings_dir=blocker / "Recordings")
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    outcome = orchestrator.transcribe_with_outcome(path, PARAKEET_V3)

    assert outcome.transcript.audio_archive_path is None
    assert any(w.startswith("archive:") for w in outcome.warnings)
    assert outcome.persisted is True


def test_listener_errors_do_not_fail_transcription(tmp_path: Path) -> None:
    orchestrator, _, _, store, _, _ = _build(tmp_path)

    def _broken(transcript: Transcript) -> None:
        raise ValueError("listener bug")

    orchestrator.subscribe(_broken)
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    transcript = orchestrator.transcribe(path, PARAKEET_V3)

    assert store.saved == [transcript]


def test_switching_models_reloads_session(tmp_path: Path) -> None:
    orchestrator, _, _, _, _, log = _build(tmp_path)
    path = _write_wav(tmp_path / "clip.wav", 1.0)

    orchestrator.transcribe(path, PARAKEET_V2)
    orchestrator.transcribe(path, PARAKEET_V3)

    assert [e for e in log if e.startswith(("load", "release"))] == ["load v2", "release", "load v3"]


def test_no_speech_found_is_not_a_warning(tmp_path: Path) -> None:
    orchestrator, engine, *_ = _build(tmp_path, vad_session=FakeVadSession(segments=[]))
    path = _write_wav(tmp_path / "quiet.wav", 22.0)

    outcome = orchestrator.transcribe_with_outcome(path, PARAKEET_V3)

    assert len(engine.sessions[0].received[0]) == 22 * 16000
    assert outcome.warnings == []
