"""PCM16 WAV decoding and writing.

The pipeline natively reads 16 kHz mono 16-bit little-endian PCM behind a
fixed 44-byte RIFF header. Headers are skipped, not parsed.
"""

from __future__ import annotations

import io
import logging
import shutil
import uuid
import wave
from pathlib import Path

import numpy as np

from errors import InvalidAudioFormatError, NoAudioFileError

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
WAV_HEADER_BYTES = 44
INT16_SCALE = 32767.0


def decode_pcm16(data: bytes) -> np.ndarray:
    """Decode header + PCM16 bytes into float32 samples in [-1.0, 1.0]."""
    if len(data) < WAV_HEADER_BYTES:
        raise InvalidAudioFormatError(
            f"audio is {len(data)} bytes, shorter than the {WAV_HEADER_BYTES}-byte header"
        )
    body = data[WAV_HEADER_BYTES:]
    # a trailing odd byte is not a full sample
    usable = len(body) - (len(body) % 2)
    pcm = np.frombuffer(body[:usable], dtype="<i2")
    return np.clip(pcm.astype(np.float32) / INT16_SCALE, -1.0, 1.0)


def read_audio_samples(path: Path) -> np.ndarray:
    if not path.is_file():
        raise NoAudioFileError(f"no audio file at {path}")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise NoAudioFileError(f"cannot read {path}: {exc}") from exc
    return decode_pcm16(data)


def duration_seconds(samples: np.ndarray) -> float:
    return len(samples) / float(SAMPLE_RATE)


def pcm16_to_wav_bytes(
    pcm: bytes,
    sample_rate: int = SAMPLE_RATE,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a canonical 44-byte WAV header."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def archive_audio(source: Path, recordings_dir: Path) -> Path:
    recordings_dir.mkdir(parents=True, exist_ok=True)
    target = recordings_dir / f"retranscribed_{uuid.uuid4()}.wav"
    shutil.copyfile(source, target)
    logger.debug("Archived %s to %s", source, target)
    return target
