"""
Handler construction for riskdesk logging.

File handlers come from the standard library; this module picks the
rotation policy and makes sure the log directory exists.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Union

import colorama

PathLike = Union[str, Path]


def _prepare(path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def build_file_handler(
    path: PathLike,
    rotation: str = 'time',
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 30
) -> logging.Handler:
    """
    Rotating file handler for the main log.

    Args:
        path: Log file
        rotation: ``time`` rotates at UTC midnight, in step with the engine's
                  UTC trading days; ``size`` rotates at ``max_bytes``
        max_bytes: Size limit for ``size`` rotation
        backup_count: Rotated files to keep

    Returns:
        Configured handler without formatter or level
    """
    path = _prepare(path)
    if rotation == 'time':
        return logging.handlers.TimedRotatingFileHandler(
            path, when='midnight', backupCount=backup_count, encoding='utf-8', utc=True
        )
    if rotation == 'size':
        return logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
        )
    raise ValueError(f"Unknown log rotation: {rotation}")


def build_error_handler(path: PathLike) -> logging.Handler:
    """Plain file handler that keeps ERROR and above."""
    handler = logging.FileHandler(_prepare(path), encoding='utf-8')
    handler.setLevel(logging.ERROR)
    return handler


class ColoredConsoleHandler(logging.StreamHandler):
    """
    Console stream handler.

    Lets colorama translate ANSI codes on Windows consoles and tells the
    caller whether the stream is a terminal, so colors can be dropped when
    output is piped.
    """

    def __init__(self, stream=None):
        colorama.just_fix_windows_console()
        super().__init__(stream if stream is not None else sys.stderr)

    @property
    def is_tty(self) -> bool:
        isatty = getattr(self.stream, 'isatty', None)
        return bool(isatty and isatty())
