"""Logging setup for the denoiseq command line.

Messages are printed to the terminal through click. When a log file is
requested, records are also put on a queue and written to the file by a
listener thread, so that the workers never wait on the disk.

Copyright © 2025 Pixelgen Technologies AB.
"""

import atexit
import logging
import logging.handlers
import queue
import sys
import typing
from pathlib import Path
from typing import Optional

import click

from denoiseq.types import PathType

denoiseq_root_logger = logging.getLogger("denoiseq")

LOG_FILE_FORMAT = "%(asctime)s %(processName)-10s %(name)s %(levelname)-8s %(message)s"
CONSOLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class StyleDict(typing.TypedDict):
    """Style dictionary for kwargs to `click.style`."""

    fg: str


LEVEL_STYLES: dict[str, StyleDict] = {
    "DEBUG": StyleDict(fg="blue"),
    "INFO": StyleDict(fg="green"),
    "WARNING": StyleDict(fg="yellow"),
    "ERROR": StyleDict(fg="red"),
    "CRITICAL": StyleDict(fg="red"),
}


class ConsoleFormatter(logging.Formatter):
    """Format records for the terminal.

    In verbose mode every line of a message is prefixed with a timestamp and
    the colored level name. Otherwise info messages are printed as they are
    and the other levels are prefixed with their name.
    """

    def __init__(self, verbose: bool = False):
        """Create a formatter.

        :param verbose: add timestamps and colored levels
        """
        super().__init__(datefmt=CONSOLE_DATE_FORMAT)
        self.verbose = verbose

    def format(self, record: logging.LogRecord) -> str:
        """Format a record for the console.

        :param record: the record to format
        :returns str: the formatted record
        """
        if record.exc_info:
            return super().format(record)

        msg = record.getMessage()
        level = record.levelname
        if self.verbose:
            style = LEVEL_STYLES.get(level, StyleDict(fg="white"))
            prefix = (
                f"{self.formatTime(record, self.datefmt)} "
                f"[{click.style(f'{level:<10}', **style)}]  "
            )
            return "\n".join(prefix + line for line in msg.splitlines())

        if record.levelno == logging.INFO:
            return msg
        return f"{level}: {msg}"


class ClickHandler(logging.Handler):
    """Forward log records to `click.echo`.

    :param use_stderr: write to stderr instead of stdout
    """

    def __init__(self, use_stderr: bool = True):
        """Initialize the click handler."""
        super().__init__()
        self._use_stderr = use_stderr

    def emit(self, record: logging.LogRecord) -> None:
        """Echo a formatted record."""
        try:
            click.echo(self.format(record), err=self._use_stderr)
        except Exception:
            self.handleError(record)


class LoggingSetup:
    """Configure the logging of a CLI command.

    Use it as a context manager, or call :meth:`initialize` and
    :meth:`close` explicitly.
    """

    def __init__(
        self,
        log_file: Optional[PathType] = None,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the logging setup.

        :param log_file: the file to write all records to, none if not given
        :param verbose: log debug messages and use the verbose console format
        :param logger: the logger to configure, default is the root logger
        """
        self.log_file = Path(log_file) if log_file is not None else None
        self.verbose = verbose
        self._logger = logger or logging.getLogger()
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._listener: Optional[logging.handlers.QueueListener] = None

    @property
    def log_level(self) -> int:
        """Return the level of the configured logger."""
        return logging.DEBUG if self.verbose else logging.INFO

    def _file_handler(self) -> logging.Handler:
        handler = logging.FileHandler(str(self.log_file), mode="w")
        handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
        return handler

    def initialize(self) -> None:
        """Install the console handler and start the log file listener."""
        console_handler = ClickHandler()
        console_handler.setFormatter(ConsoleFormatter(verbose=self.verbose))
        handlers: list[logging.Handler] = [console_handler]

        if self.log_file is not None:
            self._listener = logging.handlers.QueueListener(
                self._queue, self._file_handler()
            )
            self._listener.start()
            handlers.append(logging.handlers.QueueHandler(self._queue))

        self._logger.setLevel(self.log_level)
        self._logger.handlers = handlers
        atexit.register(self.close)

    def close(self) -> None:
        """Write all queued records to the log file and stop the listener."""
        if self._listener is None:
            return
        self._listener.stop()
        for handler in self._listener.handlers:
            handler.close()
        self._listener = None

    def __enter__(self):
        """Initialize the logging setup."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """Flush and stop the log file listener, exceptions are re-raised."""
        self.close()
        atexit.unregister(self.close)
        return False


def handle_unhandled_exception(exc_type, exc_value, exc_traceback):
    """Log exceptions that reach the interpreter as critical."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    denoiseq_root_logger.critical(
        "Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback)
    )


sys.excepthook = handle_unhandled_exception
