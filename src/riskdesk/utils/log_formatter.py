"""
Formatters and filters for riskdesk log records.

Records produced through ``LoggerAdapter`` carry a ``category`` and often a
payload dict (``risk_data``, ``sizing_data``, ...). The JSON formatter keeps
the payload structured; the console formatter flattens it to ``key=value``
pairs after the message.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from colorama import Fore, Style

# Attributes of a bare LogRecord plus the ones the formatters render themselves
_RECORD_ATTRS = set(vars(logging.LogRecord('', logging.INFO, '', 0, '', None, None))) | {
    'message', 'asctime', 'category', 'correlation_id',
}


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields that reached the record through ``extra``."""
    return {
        key: value for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith('_')
    }


def _short(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def format_pairs(context: Dict[str, Any], limit: int = 6) -> str:
    """
    Render record context as ``key=value`` pairs.

    Payload dicts are flattened one level so ``risk_data={'event_type': ...}``
    reads as ``event_type=...``.
    """
    items = []
    for key, value in context.items():
        if isinstance(value, dict):
            items.extend(value.items())
        else:
            items.append((key, value))

    parts = [f"{key}={_short(value)}" for key, value in items[:limit]]
    if len(items) > limit:
        parts.append("...")
    return " ".join(parts)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line, for the rotating log file.

    Example output:
        {"timestamp": "2024-03-01T13:30:00.120000+00:00", "level": "WARNING",
         "logger": "riskdesk.risk.risk_gate", "category": "RISK",
         "message": "Risk event: limit_reached for u1",
         "data": {"risk_data": {"event_type": "limit_reached", ...}}}
    """

    def __init__(self, static_fields: Optional[Dict[str, Any]] = None):
        """
        Args:
            static_fields: Fields added to every entry (e.g. host, service)
        """
        super().__init__()
        self.static_fields = static_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'category': getattr(record, 'category', 'GENERAL'),
            'message': record.getMessage(),
        }
        entry.update(self.static_fields)

        correlation_id = getattr(record, 'correlation_id', None)
        if correlation_id:
            entry['correlation_id'] = correlation_id

        context = record_context(record)
        if context:
            entry['data'] = context

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """
    Single-line console format with colorama level colors:

        13:30:00 | WARNING  | RISK | riskdesk.risk.risk_gate | Risk event ... (event_type=...)
    """

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def __init__(self, use_colors: bool = True, show_payload: bool = True, datefmt: str = '%H:%M:%S'):
        """
        Args:
            use_colors: Emit ANSI colors
            show_payload: Append record context as key=value pairs
            datefmt: strftime format for the time column
        """
        super().__init__(datefmt=datefmt)
        self.use_colors = use_colors
        self.show_payload = show_payload

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<8}"
        category = getattr(record, 'category', 'GENERAL')
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{Style.RESET_ALL}"
            category = f"{Style.DIM}{category}{Style.RESET_ALL}"

        line = (
            f"{self.formatTime(record, self.datefmt)} | {level} | {category} | "
            f"{record.name} | {record.getMessage()}"
        )

        if self.show_payload:
            context = record_context(record)
            if context:
                line += f" ({format_pairs(context)})"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class DetailedFormatter(logging.Formatter):
    """Multi-line format for the error file: source location, payload and traceback."""

    def __init__(self, max_payload_chars: int = 2000):
        super().__init__()
        self.max_payload_chars = max_payload_chars

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        header = (
            f"[{timestamp:%Y-%m-%d %H:%M:%S}Z] {record.levelname} "
            f"{getattr(record, 'category', 'GENERAL')} {record.name}"
        )
        correlation_id = getattr(record, 'correlation_id', None)
        if correlation_id:
            header += f" corr={correlation_id}"

        lines = [
            header,
            f"  at {record.pathname}:{record.lineno} in {record.funcName}",
            f"  {record.getMessage()}",
        ]

        context = record_context(record)
        if context:
            payload = json.dumps(context, indent=2, default=str)
            if len(payload) > self.max_payload_chars:
                payload = payload[:self.max_payload_chars] + " ..."
            lines.append("  payload: " + payload.replace("\n", "\n  "))

        if record.exc_info:
            lines.append("  " + self.formatException(record.exc_info).replace("\n", "\n  "))

        return "\n".join(lines)


class CategoryFilter(logging.Filter):
    """Pass only records whose category is included and not excluded."""

    def __init__(
        self,
        include_categories: Optional[Iterable[str]] = None,
        exclude_categories: Optional[Iterable[str]] = None
    ):
        super().__init__()
        self.include_categories = {c.upper() for c in include_categories} if include_categories else None
        self.exclude_categories = {c.upper() for c in exclude_categories or ()}

    def filter(self, record: logging.LogRecord) -> bool:
        category = getattr(record, 'category', 'GENERAL')
        if category in self.exclude_categories:
            return False
        return self.include_categories is None or category in self.include_categories
