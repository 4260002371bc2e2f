"""
Queue-based logging setup.

Records are enqueued on the event loop thread and written by a
QueueListener thread, so a broadcast tick never waits on console or
file I/O. Timestamps are UTC with millisecond precision, the same
format the API uses for `lastUpdate`.
"""

import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue
from typing import Any

from arbscanner.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


class UTCFormatter(logging.Formatter):
    """Formatter producing 2024-01-01T12:00:00.123Z timestamps."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        ct = datetime.fromtimestamp(record.created, tz=UTC)
        return f"{ct.strftime(datefmt or LOG_DATE_FORMAT)}.{int(record.msecs):03d}Z"


class ConnectionLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """
    Prefix every message with a WebSocket connection id.

    Example:
        >>> log = ConnectionLogAdapter(logger, "3fa2c01b")
        >>> log.info("Client disconnected")  # "[3fa2c01b] Client disconnected"
    """

    def __init__(self, logger: logging.Logger, connection_id: str) -> None:
        super().__init__(logger, {"connection_id": connection_id})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['connection_id']}] {msg}", kwargs  # type: ignore[index]


class AsyncLogger:
    """
    Owner of the logging queue and its listener thread.

    Usable as a context manager; stop() flushes pending records.
    """

    def __init__(
        self,
        name: str = "",
        level: int = logging.INFO,
        log_file: Path | None = None,
    ) -> None:
        """
        Initialize async logger.

        Args:
            name: Logger the queue handler is attached to ("" = root).
            level: Console level; the log file always receives DEBUG.
            log_file: Optional file that receives all records.
        """
        self._logger = logging.getLogger(name)
        self._level = level
        self._log_file = log_file
        self._queue: Queue[logging.LogRecord] = Queue(maxsize=MAX_LOG_QUEUE_SIZE)
        self._queue_handler: QueueHandler | None = None
        self._listener: QueueListener | None = None

    def _build_handlers(self) -> list[logging.Handler]:
        formatter = UTCFormatter(LOG_FORMAT, LOG_DATE_FORMAT)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(self._level)
        handlers: list[logging.Handler] = [console]

        if self._log_file:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self._log_file)
            file_handler.setLevel(logging.DEBUG)
            handlers.append(file_handler)

        for handler in handlers:
            handler.setFormatter(formatter)
        return handlers

    def start(self) -> None:
        """Attach the queue handler and start the listener thread."""
        if self.is_running:
            return
        self._queue_handler = QueueHandler(self._queue)
        self._logger.addHandler(self._queue_handler)
        self._logger.setLevel(logging.DEBUG if self._log_file else self._level)

        self._listener = QueueListener(
            self._queue, *self._build_handlers(), respect_handler_level=True
        )
        self._listener.start()

    def stop(self) -> None:
        """Flush pending records and detach."""
        if self._listener:
            self._listener.stop()
            self._listener = None
        if self._queue_handler:
            self._logger.removeHandler(self._queue_handler)
            self._queue_handler = None

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def is_running(self) -> bool:
        return self._listener is not None

    def __enter__(self) -> "AsyncLogger":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
) -> AsyncLogger:
    """
    Route all logging (ours, uvicorn, aiohttp) through one queue.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional file that receives DEBUG and above.

    Returns:
        Started AsyncLogger; call stop() on shutdown to flush.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    async_logger = AsyncLogger(level=numeric_level, log_file=log_file)
    async_logger.start()

    for noisy in ("aiohttp", "asyncio", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return async_logger
