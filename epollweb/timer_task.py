"""One-shot timer running on its own thread, which can be reset or cancelled."""

from __future__ import annotations

import threading
from collections.abc import Callable


class TimerTask:
    """Calls ``callback`` once ``timeout_ms`` passes without a reset or cancel."""

    def __init__(self, fd: int, timeout_ms: int, callback: Callable[[], None]) -> None:
        self._fd = fd
        self._timeout_ms = timeout_ms
        self._callback = callback
        self._cond = threading.Condition()
        self._cancelled = False
        self._reset_flag = False
        self._thread: threading.Thread | None = None

    @property
    def fd(self) -> int:
        return self._fd

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def start(self) -> None:
        """Start the timer thread."""
        self._thread = threading.Thread(
            target=self._run, name=f"timer-{self._fd}", daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        """Stop the timer; the callback will not run afterwards."""
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()

    def reset(self, timeout_ms: int) -> None:
        """Restart the countdown with a new timeout."""
        with self._cond:
            self._timeout_ms = timeout_ms
            self._reset_flag = True
            self._cond.notify_all()

    def _run(self) -> None:
        with self._cond:
            while not self._cancelled:
                notified = self._cond.wait(self._timeout_ms / 1000)
                if not notified:
                    if not self._cancelled:
                        self._callback()
                    break
                if self._reset_flag:
                    self._reset_flag = False