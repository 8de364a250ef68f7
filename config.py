"""Simple JSON-based config store."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from models import CachePolicy

DEFAULT_FILLER_WORDS = (
    "um", "uh", "er", "ah", "eh", "umm", "uhh", "err", "ahh", "ehh",
    "hmm", "hm", "mm", "mmm", "erm", "urm", "ugh",
)

_DATA_DIR = Path.home() / ".local" / "share" / "notescribe"


@dataclass(frozen=True)
class PipelineSettings:
    preserve_clipboard: bool = False
    clipboard_backend: str = "qt"
    vad_enabled_file: bool = True
    vad_enabled_live: bool = True
    text_formatting_enabled: bool = True
    session_cache_policy: CachePolicy = CachePolicy.SINGLE
    model_name: str = "parakeet-tdt-0.6b-v3"
    models_dir: Path = Path.home() / ".cache" / "notescribe" / "models"
    recordings_dir: Path = _DATA_DIR / "Recordings"
    history_path: Path = _DATA_DIR / "history.jsonl"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "notescribe" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_preserve_clipboard(self) -> bool:
        return bool(self._read_all().get("preserve_clipboard", False))

    def set_preserve_clipboard(self, value: bool) -> None:
        self._set("preserve_clipboard", bool(value))

    def get_model_name(self) -> str:
        return str(self._read_all().get("model_name", PipelineSettings.model_name))

    def set_model_name(self, name: str) -> None:
        self._set("model_name", name)

    def get_word_replacements(self) -> dict[str, str]:
        data = self._read_all()
        stored = data.get("word_replacements")
        replacements = dict(stored) if isinstance(stored, dict) else {}
        added = False
        for filler in DEFAULT_FILLER_WORDS:
            if filler not in replacements:
                replacements[filler] = ""
                added = True
        if added:
            data["word_replacements"] = replacements
            self._write_all(data)
        return {str(k): str(v) for k, v in replacements.items()}

    def set_word_replacement(self, original: str, replacement: str) -> None:
        original = original.strip()
        if not original:
            return
        replacements = self.get_word_replacements()
        replacements[original] = replacement
        self._set("word_replacements", replacements)

    def remove_word_replacement(self, original: str) -> None:
        replacements = self.get_word_replacements()
        replacements.pop(original, None)
        self._set("word_replacements", replacements)

    def load_settings(self) -> PipelineSettings:
        data = self._read_all()
        defaults = PipelineSettings()
        try:
            policy = CachePolicy(data.get("session_cache_policy", defaults.session_cache_policy.value))
        except ValueError:
            policy = defaults.session_cache_policy
        return PipelineSettings(
            preserve_clipboard=bool(data.get("preserve_clipboard", defaults.preserve_clipboard)),
            clipboard_backend=str(data.get("clipboard_backend", defaults.clipboard_backend)),
            vad_enabled_file=bool(data.get("vad_enabled_file", defaults.vad_enabled_file)),
            vad_enabled_live=bool(data.get("vad_enabled_live", defaults.vad_enabled_live)),
            text_formatting_enabled=bool(
                data.get("text_formatting_enabled", defaults.text_formatting_enabled)
            ),
            session_cache_policy=policy,
            model_name=str(data.get("model_name", defaults.model_name)),
            models_dir=self._path_value(data, "models_dir", defaults.models_dir),
            recordings_dir=self._path_value(data, "recordings_dir", defaults.recordings_dir),
            history_path=self._path_value(data, "history_path", defaults.history_path),
        )

    def _path_value(self, data: dict, key: str, default: Path) -> Path:
        value = data.get(key)
        return Path(value).expanduser() if value else default

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
