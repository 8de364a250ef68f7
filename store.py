"""Append-only transcript history stored as JSON lines."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from errors import PersistenceError
from models import Transcript


class JsonlTranscriptStore:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def insert(self, transcript: Transcript) -> None:
        record = asdict(transcript)
        record["created_at"] = transcript.created_at.isoformat()
        line = json.dumps(record, ensure_ascii=False)
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        except OSError as exc:
            raise PersistenceError(f"cannot write {self._path}: {exc}") from exc

    def load_all(self) -> list[Transcript]:
        if not self._path.exists():
            return []
        transcripts: list[Transcript] = []
        for line in self._path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                data["created_at"] = datetime.fromisoformat(data["created_at"])
                transcripts.append(Transcript(**data))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                continue
        return transcripts
