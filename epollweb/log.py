"""File logger with an optional background writer thread."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import ClassVar, TextIO

from epollweb.block_queue import BlockQueue

_STOP = object()


class Logger:
    """Appends timestamped lines to a log file, synchronously or via a queue.

    Levels are free-form strings such as "INFO", "DEBUG", "WARNING", "ERROR".
    """

    _instance: ClassVar[Logger | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._file: TextIO | None = None
        self._queue: BlockQueue[object] = BlockQueue()
        self._thread: threading.Thread | None = None
        self._async = True
        self._write_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> Logger:
        """Return the process-wide logger."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def init(self, filename: str = "webserver.log", async_mode: bool = True) -> None:
        """Open ``filename`` for appending and start the writer if asynchronous.

        Raises OSError when the file cannot be opened.
        """
        if self._file is not None:
            self.close()
        self._async = async_mode
        self._file = open(filename, "a", encoding="utf-8")
        if self._async:
            self._thread = threading.Thread(
                target=self._write_loop, name="log-writer", daemon=True
            )
            self._thread.start()

    def log(self, level: str, message: str) -> None:
        """Record one line: '[date time]\\t[level]\\tmessage'."""
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{stamp}]\t[{level}]\t{message}\n"
        if self._async:
            self._queue.push(line)
        elif self._file is not None:
            with self._write_lock:
                self._file.write(line)

    def flush(self) -> None:
        if self._file is not None:
            with self._write_lock:
                self._file.flush()

    def close(self) -> None:
        """Drain pending lines, stop the writer and close the file."""
        if self._thread is not None:
            self._queue.push(_STOP)
            self._thread.join()
            self._thread = None
        self.flush()
        if self._file is not None:
            self._file.close()
            self._file = None
        self._async = True

    def __enter__(self) -> Logger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _write_loop(self) -> None:
        while True:
            message = self._queue.pop()
            if message is _STOP:
                break
            with self._write_lock:
                assert self._file is not None
                self._file.write(message)  # type: ignore[arg-type]
                self._file.flush()