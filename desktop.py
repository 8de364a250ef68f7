"""OS adapters for clipboard, synthetic keys and the accessibility grant."""

from __future__ import annotations

import logging
import sys

from models import ClipboardItem

logger = logging.getLogger(__name__)

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

try:
    from PySide6.QtCore import QMimeData
    from PySide6.QtGui import QGuiApplication
except Exception:  # pragma: no cover
    QMimeData = None  # type: ignore
    QGuiApplication = None  # type: ignore

try:
    # pyobjc-framework-ApplicationServices, installed on macOS only
    from HIServices import AXIsProcessTrustedWithOptions, kAXTrustedCheckOptionPrompt
except Exception:  # pragma: no cover
    AXIsProcessTrustedWithOptions = None  # type: ignore
    kAXTrustedCheckOptionPrompt = None  # type: ignore

# nspasteboard.org marker that keeps clipboard managers from recording an entry
TRANSIENT_TYPE = "org.nspasteboard.TransientType"
TEXT_TYPES = ("text/plain", "text/plain;charset=utf-8")


class QtClipboard:
    """Multi-format clipboard backed by QClipboard; needs a QGuiApplication."""

    def __init__(self) -> None:
        if QGuiApplication is None or QMimeData is None:
            raise RuntimeError("PySide6 is not installed")
        self._clipboard = QGuiApplication.clipboard()

    def read_all(self) -> list[ClipboardItem]:
        mime = self._clipboard.mimeData()
        if mime is None:
            return []
        return [ClipboardItem(type=fmt, payload=bytes(mime.data(fmt).data())) for fmt in mime.formats()]

    def clear(self) -> None:
        self._clipboard.clear()

    def write(self, payload: bytes, type: str, transient: bool) -> None:
        mime = QMimeData()
        current = self._clipboard.mimeData()
        if current is not None:
            for fmt in current.formats():
                if fmt != type:
                    mime.setData(fmt, current.data(fmt))
        mime.setData(type, payload)
        if transient:
            mime.setData(TRANSIENT_TYPE, b"")
        self._clipboard.setMimeData(mime)


class PyperclipClipboard:
    """Plain-text clipboard; non-text formats are neither captured nor restored."""

    def __init__(self) -> None:
        if pyperclip is None:
            raise RuntimeError("pyperclip is not installed")

    def read_all(self) -> list[ClipboardItem]:
        text = pyperclip.paste()
        if not text:
            return []
        return [ClipboardItem(type=TEXT_TYPES[0], payload=text.encode("utf-8"))]

    def clear(self) -> None:
        pyperclip.copy("")

    def write(self, payload: bytes, type: str, transient: bool) -> None:
        if type not in TEXT_TYPES:
            logger.debug("Dropping clipboard format %s", type)
            return
        pyperclip.copy(payload.decode("utf-8", errors="replace"))


class PynputInjector:
    def __init__(self) -> None:
        if Controller is None or Key is None:
            raise RuntimeError("pynput is not installed")
        self._keyboard = Controller()
        self._modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl

    def post_paste(self) -> None:
        with self._keyboard.pressed(self._modifier):
            self._keyboard.press("v")
            self._keyboard.release("v")

    def post_return(self) -> None:
        self._keyboard.press(Key.enter)
        self._keyboard.release(Key.enter)


class AccessibilityTrustOracle:
    """macOS accessibility grant; other platforms need no grant."""

    def is_trusted(self, prompt_user: bool) -> bool:
        if sys.platform != "darwin":
            return True
        if AXIsProcessTrustedWithOptions is None:
            logger.warning("HIServices unavailable; cannot check accessibility trust")
            return False
        return bool(AXIsProcessTrustedWithOptions({kAXTrustedCheckOptionPrompt: prompt_user}))


class LogNotifier:
    def notify(self, message: str) -> None:
        logger.warning(message)
