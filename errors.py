"""Shared error codes, user-facing messages and typed failures."""

from __future__ import annotations

NO_AUDIO_FILE = "NO_AUDIO_FILE"
INVALID_AUDIO_FORMAT = "INVALID_AUDIO_FORMAT"
MODEL_NOT_LOADED = "MODEL_NOT_LOADED"
TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
ENGINE_INIT_FAILED = "ENGINE_INIT_FAILED"
ENGINE_RUNTIME_ERROR = "ENGINE_RUNTIME_ERROR"
PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
PERMISSION_DENIED = "PERMISSION_DENIED"
CANCELLED = "CANCELLED"

ERROR_MESSAGES = {
    NO_AUDIO_FILE: "Audio file not found.",
    INVALID_AUDIO_FORMAT: "Audio must be 16 kHz mono 16-bit PCM WAV.",
    MODEL_NOT_LOADED: "Speech model is not loaded.",
    TRANSCRIPTION_FAILED: "Transcription failed, please retry.",
    ENGINE_INIT_FAILED: "Speech model could not be loaded.",
    ENGINE_RUNTIME_ERROR: "Speech engine error.",
    PERSISTENCE_FAILED: "Transcript could not be saved to history.",
    PERMISSION_DENIED: "Enable Accessibility to paste. Will retry…",
    CANCELLED: "Cancelled.",
}


class DictationError(Exception):
    code = TRANSCRIPTION_FAILED

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])
        self.message = message or ERROR_MESSAGES[self.code]

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES[self.code]


class NoAudioFileError(DictationError):
    code = NO_AUDIO_FILE


class InvalidAudioFormatError(DictationError):
    code = INVALID_AUDIO_FORMAT


class ModelNotLoadedError(DictationError):
    """Also raised by engines that are asked to transcribe before init."""

    code = MODEL_NOT_LOADED


class TranscriptionFailedError(DictationError):
    code = TRANSCRIPTION_FAILED


class EngineInitError(DictationError):
    code = ENGINE_INIT_FAILED


class EngineRuntimeError(DictationError):
    code = ENGINE_RUNTIME_ERROR


class PersistenceError(DictationError):
    code = PERSISTENCE_FAILED
