"""Clipboard-safe paste delivery.

A delivery snapshots the clipboard, puts the text on it, waits for the
accessibility trust grant, posts Cmd+V and later puts the snapshot back.
Every wait is a scheduler continuation, so the caller's event loop keeps
running. Only one delivery owns the clipboard at a time; later requests
queue behind it.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Optional

from errors import CANCELLED, ERROR_MESSAGES, PERMISSION_DENIED
from interfaces import Clipboard, InputInjector, Notifier, Scheduler, TimerHandle, TrustOracle
from models import ClipboardSnapshot, PasteAttempt, PasteResult, PasteState

logger = logging.getLogger(__name__)

TEXT_TYPE = "text/plain"

DoneCallback = Callable[[PasteResult], None]
StateCallback = Callable[[PasteState, PasteState], None]


class ClipboardPasteService:
    RETRY_DELAY_S = 0.25
    MAX_RETRIES = 20
    PASTE_DELAY_S = 0.05
    RESTORE_DELAY_S = 0.9

    def __init__(
        self,
        clipboard: Clipboard,
        injector: InputInjector,
        trust: TrustOracle,
        scheduler: Scheduler,
        notifier: Optional[Notifier] = None,
        preserve_clipboard: bool = False,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._clipboard = clipboard
        self._injector = injector
        self._trust = trust
        self._scheduler = scheduler
        self._notifier = notifier
        self.preserve_clipboard = preserve_clipboard
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = PasteState.IDLE
        self._pending: deque[tuple[str, Optional[DoneCallback]]] = deque()
        self._completed: deque[tuple[Optional[DoneCallback], PasteResult]] = deque()
        self._attempt: Optional[PasteAttempt] = None
        self._on_done: Optional[DoneCallback] = None
        self._retry_handle: Optional[TimerHandle] = None
        self._generation = 0
        self._pasted = True

    @property
    def state(self) -> PasteState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._attempt is not None

    def paste_at_cursor(self, text: str, on_done: Optional[DoneCallback] = None) -> None:
        with self._lock:
            self._pending.append((text, on_done))
        self._drain()

    def cancel(self) -> bool:
        """Abort a delivery that is still waiting for the trust grant."""
        with self._lock:
            if self._state != PasteState.AWAITING_TRUST or self._attempt is None:
                return False
            if self._retry_handle is not None:
                self._retry_handle.cancel()
                self._retry_handle = None
            self._abort(CANCELLED)
        self._drain()
        return True

    def press_enter(self) -> bool:
        if not self._trust.is_trusted(prompt_user=False):
            return False
        self._injector.post_return()
        return True

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _begin(self, text: str, on_done: Optional[DoneCallback]) -> None:
        self._generation += 1
        self._on_done = on_done
        self._pasted = False
        self._transition(PasteState.CAPTURING_CLIPBOARD)

        preserve = self.preserve_clipboard
        snapshot: Optional[ClipboardSnapshot] = None
        try:
            if not preserve:
                snapshot = ClipboardSnapshot(list(self._clipboard.read_all()))
        except Exception as exc:
            logger.error("Reading clipboard failed: %s", exc)
            self._attempt = PasteAttempt(attempt_index=0, snapshot=None, transient=False)
            self._finish(PasteResult(success=False, reason=str(exc), clipboard_restored=False))
            return

        self._attempt = PasteAttempt(attempt_index=0, snapshot=snapshot, transient=not preserve)
        try:
            self._clipboard.clear()
            self._clipboard.write(text.encode("utf-8"), TEXT_TYPE, transient=not preserve)
        except Exception as exc:
            logger.error("Writing clipboard failed: %s", exc)
            self._transition(PasteState.RESTORING_CLIPBOARD)
            restored = self._restore(snapshot)
            self._finish(PasteResult(success=False, reason=str(exc), clipboard_restored=restored))
            return

        self._check_trust(self._generation)

    def _check_trust(self, generation: int) -> None:
        with self._lock:
            attempt = self._attempt
            if attempt is None or generation != self._generation:
                return
            self._retry_handle = None
            self._transition(PasteState.AWAITING_TRUST)

            if not self._trust.is_trusted(prompt_user=attempt.attempt_index == 0):
                if attempt.attempt_index == 0:
                    self._notify(ERROR_MESSAGES[PERMISSION_DENIED])
                if attempt.attempt_index < self.MAX_RETRIES:
                    attempt.attempt_index += 1
                    self._retry_handle = self._call_later(
                        self.RETRY_DELAY_S, self._check_trust, generation
                    )
                else:
                    logger.warning(
                        "Accessibility not granted after %d retries; paste aborted",
                        self.MAX_RETRIES,
                    )
                    self._abort(PERMISSION_DENIED)
                return

            self._transition(PasteState.PASTING)
            self._call_later(self.PASTE_DELAY_S, self._perform_paste, generation)
            if attempt.snapshot is not None:
                self._call_later(self.RESTORE_DELAY_S, self._restore_after_paste, generation)

    def _perform_paste(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._attempt is None:
                return
            error = ""
            try:
                self._injector.post_paste()
            except Exception as exc:
                logger.error("Posting paste keystroke failed: %s", exc)
                error = str(exc)
            self._pasted = not error
            if self._attempt.snapshot is None:
                self._finish(
                    PasteResult(
                        success=not error,
                        reason=error or "ok",
                        clipboard_restored=False,
                        attempts=self._attempt.attempt_index + 1,
                    )
                )

    def _restore_after_paste(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._attempt is None:
                return
            self._transition(PasteState.RESTORING_CLIPBOARD)
            restored = self._restore(self._attempt.snapshot)
            self._finish(
                PasteResult(
                    success=self._pasted,
                    reason="ok" if self._pasted else "paste keystroke failed",
                    clipboard_restored=restored,
                    attempts=self._attempt.attempt_index + 1,
                )
            )

    def _abort(self, reason: str) -> None:
        if self._attempt is None:
            return
        self._transition(PasteState.RESTORING_CLIPBOARD)
        restored = self._restore(self._attempt.snapshot)
        self._finish(
            PasteResult(
                success=False,
                reason=reason,
                clipboard_restored=restored,
                attempts=self._attempt.attempt_index + 1,
            )
        )

    def _restore(self, snapshot: Optional[ClipboardSnapshot]) -> bool:
        if snapshot is None:
            return False
        try:
            self._clipboard.clear()
            for item in snapshot.items:
                self._clipboard.write(item.payload, item.type, transient=False)
        except Exception as exc:
            logger.error("Restoring clipboard failed: %s", exc)
            return False
        return True

    def _finish(self, result: PasteResult) -> None:
        on_done = self._on_done
        self._attempt = None
        self._on_done = None
        self._generation += 1
        self._transition(PasteState.DONE)
        self._completed.append((on_done, result))
        self._transition(PasteState.IDLE)

    def _call_later(
        self, delay_s: float, step: Callable[[int], None], generation: int
    ) -> TimerHandle:
        def _fire() -> None:
            step(generation)
            self._drain()

        return self._scheduler.call_later(delay_s, _fire)

    def _drain(self) -> None:
        """Run finished deliveries' callbacks and start queued ones.

        Callers must not hold the lock; completion callbacks take their
        owner's lock.
        """
        while True:
            with self._lock:
                if self._completed:
                    on_done, result = self._completed.popleft()
                elif self._pending and not self.busy:
                    text, next_done = self._pending.popleft()
                    self._begin(text, next_done)
                    continue
                else:
                    return
            if on_done is not None:
                try:
                    on_done(result)
                except Exception as exc:
                    logger.warning("paste completion callback failed: %s", exc)

    def _notify(self, message: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(message)
        except Exception as exc:
            logger.warning("Permission notice failed: %s", exc)

    def _transition(self, to_state: PasteState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
