"""Protocol interfaces for the engines and OS services the pipeline drives."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol, Sequence

import numpy as np

from config import PipelineSettings
from models import ClipboardItem, ModelVersion, PasteResult, Transcript


class AsrSession(Protocol):
    def transcribe(self, samples: np.ndarray) -> str: ...

    def release(self) -> None: ...


class AsrEngine(Protocol):
    def load(self, version: ModelVersion, artifacts: Path) -> AsrSession: ...


class VadSession(Protocol):
    def segment(self, samples: np.ndarray) -> list[np.ndarray]: ...


class VadEngine(Protocol):
    def construct(self, threshold: float) -> VadSession: ...


class ModelArtifactProvider(Protocol):
    def location(self, version: ModelVersion) -> Path: ...

    def is_available(self, version: ModelVersion) -> bool: ...


class TranscriptStore(Protocol):
    def insert(self, transcript: Transcript) -> None: ...


class UserDictionary(Protocol):
    def apply_replacements(self, text: str) -> str: ...


class TrustOracle(Protocol):
    def is_trusted(self, prompt_user: bool) -> bool: ...


class Clipboard(Protocol):
    def read_all(self) -> Sequence[ClipboardItem]: ...

    def clear(self) -> None: ...

    def write(self, payload: bytes, type: str, transient: bool) -> None: ...


class InputInjector(Protocol):
    def post_paste(self) -> None: ...

    def post_return(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class Notifier(Protocol):
    def notify(self, message: str) -> None: ...


class PasteService(Protocol):
    def paste_at_cursor(
        self,
        text: str,
        on_done: Callable[[PasteResult], None] | None = None,
    ) -> None: ...

    def cancel(self) -> bool: ...


class ConfigStore(Protocol):
    def load_settings(self) -> PipelineSettings: ...

    def get_word_replacements(self) -> dict[str, str]: ...


class Recorder(Protocol):
    def start(self) -> None: ...

    def stop(self, path: Path) -> Path: ...

    def discard(self) -> None: ...
