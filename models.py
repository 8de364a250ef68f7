"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import numpy as np


class ModelVersion(str, Enum):
    V2 = "v2"
    V3 = "v3"

    @classmethod
    def for_model_name(cls, name: str) -> "ModelVersion":
        return cls.V2 if "v2" in name.lower() else cls.V3


class CachePolicy(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


class PasteState(str, Enum):
    IDLE = "IDLE"
    CAPTURING_CLIPBOARD = "CAPTURING_CLIPBOARD"
    AWAITING_TRUST = "AWAITING_TRUST"
    PASTING = "PASTING"
    RESTORING_CLIPBOARD = "RESTORING_CLIPBOARD"
    DONE = "DONE"


class DictationState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"
    PASTING = "PASTING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    display_name: str

    @property
    def version(self) -> ModelVersion:
        return ModelVersion.for_model_name(self.name)


PARAKEET_V2 = ModelDescriptor(name="parakeet-tdt-0.6b-v2", display_name="Parakeet V2")
PARAKEET_V3 = ModelDescriptor(name="parakeet-tdt-0.6b-v3", display_name="Parakeet V3")
PREDEFINED_MODELS = {m.name: m for m in (PARAKEET_V2, PARAKEET_V3)}


@dataclass(frozen=True)
class Transcript:
    text: str
    source_duration: float
    audio_archive_path: Optional[str]
    model_display_name: str
    processing_duration: float
    created_at: datetime


@dataclass
class TranscriptionOutcome:
    """A transcript plus the degraded optional steps that produced it."""

    transcript: Transcript
    warnings: list[str] = field(default_factory=list)
    persisted: bool = True


@dataclass
class GateResult:
    samples: np.ndarray
    vad_invoked: bool = False
    segment_count: int = 0
    degraded: bool = False
    reason: str = ""


@dataclass(frozen=True)
class ClipboardItem:
    type: str
    payload: bytes


@dataclass
class ClipboardSnapshot:
    items: list[ClipboardItem] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class PasteAttempt:
    attempt_index: int
    snapshot: Optional[ClipboardSnapshot]
    transient: bool


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool
    attempts: int = 0
