"""
Logging Configuration Module
============================

Console logging for applications built on awsrpc, and redaction helpers
used wherever credentials or signed headers reach a log line.

The library only creates module loggers under the ``awsrpc`` namespace;
applications call :func:`setup_logging` once at startup.

Functions
---------
setup_logging
    Attach Rich console output (and optionally a log file) to the
    ``awsrpc`` loggers.
mask_key
    Redact an access key id for log output.
redact_headers
    Render request headers with signatures and tokens hidden.

Example
-------
>>> from awsrpc.core.logging import setup_logging
>>>
>>> setup_logging(level="DEBUG", wire=True)

See Also
--------
logging : Python standard library logging module.
rich.logging : Rich library's logging handler.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple, Union

from rich.console import Console
from rich.logging import RichHandler

# Namespace shared by every module logger of the package
LOGGER_NAME = "awsrpc"

# Default format for log messages
DEFAULT_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers of the HTTP stack underneath the dispatcher
WIRE_LOGGERS = ("httpx", "httpcore")

# Header values never written to logs in full
SECRET_HEADERS = frozenset({"authorization", "x-amz-security-token"})


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    rich_tracebacks: bool = True,
    console: Optional[Console] = None,
    wire: bool = False,
) -> logging.Logger:
    """
    Configure logging for awsrpc.

    Parameters
    ----------
    level : str or int, default="INFO"
        Level for the ``awsrpc`` loggers. ``DEBUG`` logs every attempt,
        with signed headers redacted.
    log_file : str, optional
        Also append log records to this file.
    rich_tracebacks : bool, default=True
        Whether to use Rich for exception tracebacks.
    console : Console, optional
        Rich Console instance. If not provided, logs go to stderr.
    wire : bool, default=False
        Also show connection-level logs from httpx and httpcore at
        ``level``; otherwise they are limited to warnings.

    Returns
    -------
    logging.Logger
        The configured ``awsrpc`` logger.

    Notes
    -----
    Replaces handlers previously installed by this function. Records
    are not propagated to the root logger.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(level)
    package_logger.propagate = False
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=True,
        show_path=False,
        rich_tracebacks=rich_tracebacks,
        markup=False,
    )
    console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        package_logger.addHandler(file_handler)

    for name in WIRE_LOGGERS:
        logging.getLogger(name).setLevel(level if wire else logging.WARNING)

    package_logger.debug(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"file={log_file or 'None'}, wire={wire}"
    )
    return package_logger


def mask_key(access_key_id: Optional[str]) -> str:
    """
    Redact an access key id, keeping its last four characters.

    Example
    -------
    >>> mask_key("AKIDEXAMPLE1234")
    '***********1234'
    """
    if not access_key_id:
        return "<none>"
    visible = access_key_id[-4:]
    return "*" * (len(access_key_id) - len(visible)) + visible


def redact_headers(headers: Iterable[Tuple[str, str]]) -> str:
    """
    Format headers for a debug line.

    The ``Authorization`` header keeps only its credential scope, with the
    access key id masked; session tokens are hidden entirely.

    Example
    -------
    >>> redact_headers([("X-Amz-Date", "20150830T123600Z"),
    ...                 ("X-Amz-Security-Token", "FQoGZXIvYXdz")])
    'X-Amz-Date: 20150830T123600Z, X-Amz-Security-Token: <redacted>'
    """
    parts = []
    for name, value in headers:
        lowered = name.lower()
        if lowered == "authorization" and "Credential=" in value:
            prefix, _, scope = value.split(",", 1)[0].partition("Credential=")
            access_key_id, _, rest = scope.partition("/")
            value = f"{prefix}Credential={mask_key(access_key_id)}/{rest}, <redacted>"
        elif lowered in SECRET_HEADERS:
            value = "<redacted>"
        parts.append(f"{name}: {value}")
    return ", ".join(parts)
