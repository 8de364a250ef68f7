"""On-device engines: NeMo Parakeet ASR and Silero VAD.

Both heavy stacks are optional; the adapters raise ``EngineInitError`` when
the libraries are missing so the rest of the app still imports.
"""

from __future__ import annotations

import gc
import logging
from pathlib import Path
from typing import Any, Optional

import numpy as np

from audio import SAMPLE_RATE
from errors import EngineInitError, EngineRuntimeError, ModelNotLoadedError
from models import ModelVersion

logger = logging.getLogger(__name__)

try:
    import torch
except Exception:  # pragma: no cover
    torch = None  # type: ignore

try:
    from nemo.collections.asr.models import ASRModel
except Exception:  # pragma: no cover
    ASRModel = None  # type: ignore

try:
    from silero_vad import get_speech_timestamps, load_silero_vad
except Exception:  # pragma: no cover
    get_speech_timestamps = None  # type: ignore
    load_silero_vad = None  # type: ignore

MODEL_NAMES = {
    ModelVersion.V2: "parakeet-tdt-0.6b-v2",
    ModelVersion.V3: "parakeet-tdt-0.6b-v3",
}


class LocalModelArtifacts:
    """Resolves ``<models_dir>/<model name>/<model name>.nemo``."""

    def __init__(self, models_dir: Path) -> None:
        self._models_dir = models_dir

    def location(self, version: ModelVersion) -> Path:
        return self._models_dir / MODEL_NAMES[version]

    def checkpoint(self, version: ModelVersion) -> Path:
        return self.location(version) / f"{MODEL_NAMES[version]}.nemo"

    def is_available(self, version: ModelVersion) -> bool:
        return self.checkpoint(version).is_file()


class ParakeetSession:
    def __init__(self, model: Any, version: ModelVersion) -> None:
        self._model: Optional[Any] = model
        self.version = version

    def transcribe(self, samples: np.ndarray) -> str:
        if self._model is None:
            raise ModelNotLoadedError(f"{MODEL_NAMES[self.version]} session was released")
        if len(samples) == 0:
            return ""
        try:
            with torch.inference_mode():
                hypotheses = self._model.transcribe(
                    [np.asarray(samples, dtype=np.float32)], batch_size=1, verbose=False
                )
        except Exception as exc:
            raise EngineRuntimeError(str(exc)) from exc
        return _hypothesis_text(hypotheses)

    def release(self) -> None:
        self._model = None
        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()


def _hypothesis_text(hypotheses: Any) -> str:
    # RNNT models may return (best, all) instead of a flat list
    if isinstance(hypotheses, tuple):
        hypotheses = hypotheses[0]
    if isinstance(hypotheses, list):
        if not hypotheses:
            return ""
        hyp = hypotheses[0]
        return hyp.text if hasattr(hyp, "text") else str(hyp)
    return str(hypotheses)


class NemoAsrEngine:
    def __init__(self, device: Optional[str] = None) -> None:
        self._device = device

    def load(self, version: ModelVersion, artifacts: Path) -> ParakeetSession:
        if ASRModel is None or torch is None:
            raise EngineInitError("nemo_toolkit[asr] is not installed")
        checkpoint = artifacts / f"{MODEL_NAMES[version]}.nemo"
        device = self._device or ("cuda" if torch.cuda.is_available() else "cpu")
        logger.info("Loading %s on %s", checkpoint, device)
        try:
            model = ASRModel.restore_from(restore_path=str(checkpoint), map_location=device)
            model.eval()
        except Exception as exc:
            raise EngineInitError(f"cannot restore {checkpoint}: {exc}") from exc
        return ParakeetSession(model, version)


class SileroVadSession:
    def __init__(self, model: Any, threshold: float) -> None:
        self._model = model
        self._threshold = threshold

    def segment(self, samples: np.ndarray) -> list[np.ndarray]:
        try:
            audio = torch.from_numpy(np.asarray(samples, dtype=np.float32))
            stamps = get_speech_timestamps(
                audio,
                self._model,
                threshold=self._threshold,
                sampling_rate=SAMPLE_RATE,
            )
        except Exception as exc:
            raise EngineRuntimeError(str(exc)) from exc
        return [samples[int(s["start"]):int(s["end"])] for s in stamps]


class SileroVadEngine:
    def construct(self, threshold: float) -> SileroVadSession:
        if load_silero_vad is None or torch is None:
            raise EngineInitError("silero-vad is not installed")
        try:
            model = load_silero_vad()
        except Exception as exc:
            raise EngineInitError(f"cannot load Silero VAD: {exc}") from exc
        return SileroVadSession(model, threshold)
