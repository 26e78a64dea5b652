"""
Logging for the riskdesk engine.

Engine modules take a ``LoggerAdapter`` from ``get_logger(__name__)`` and
never print. Each record carries a ``category`` and, for domain events, a
payload dict under a category-specific attribute (``risk_data``,
``sizing_data``, ``correlation_data``, ``performance_metrics``), which the
JSON file formatter keeps structured.

Example Usage:
    from riskdesk.config import load_config
    from riskdesk.utils import get_logger, setup_logging

    config = load_config('config/config.yaml')
    setup_logging(config.logging)

    logger = get_logger('riskdesk.risk')
    logger.log_risk_event({'event_type': 'limit_reached', 'user_id': 'u1'})
"""

import logging
import sys
import threading
import uuid
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from .log_formatter import CategoryFilter, ColoredFormatter, DetailedFormatter, JsonFormatter
from .log_handlers import ColoredConsoleHandler, build_error_handler, build_file_handler


class LogCategory(str, Enum):
    """Categories used to tag and filter log records."""
    RISK = "RISK"
    SIZING = "SIZING"
    CORRELATION = "CORRELATION"
    SESSIONS = "SESSIONS"
    BACKTEST = "BACKTEST"
    SYSTEM = "SYSTEM"
    GENERAL = "GENERAL"


# Record attribute that carries each category's payload
PAYLOAD_ATTRS = {
    LogCategory.RISK: 'risk_data',
    LogCategory.SIZING: 'sizing_data',
    LogCategory.CORRELATION: 'correlation_data',
    LogCategory.BACKTEST: 'performance_metrics',
}

DEFAULT_LOG_SETTINGS: Dict[str, Any] = {
    'level': 'INFO',
    'console': True,
    'colors': True,
    'file': False,
    'directory': 'logs',
    'filename': 'riskdesk.log',
    'rotation': 'time',
    'max_bytes': 10 * 1024 * 1024,
    'backup_count': 30,
    'error_file': False,
    'error_filename': 'errors.log',
    'categories': None,
}


def resolve_level(level: Union[str, int]) -> int:
    """Numeric level for a name such as ``"debug"``; unknown names give INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that stamps records with a correlation id and default extras,
    and offers one helper per engine category.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})
        self.correlation_id: Optional[str] = None

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        if self.correlation_id:
            extra['correlation_id'] = self.correlation_id
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs

    @contextmanager
    def correlation_context(self, correlation_id: Optional[str] = None):
        """
        Tag every record logged inside the block with one correlation id.

        Example:
            with logger.correlation_context() as run_id:
                engine.build_report(trades, 10000)
        """
        previous = self.correlation_id
        self.correlation_id = correlation_id or uuid.uuid4().hex
        try:
            yield self.correlation_id
        finally:
            self.correlation_id = previous

    def log_category(
        self,
        category: LogCategory,
        payload: Dict[str, Any],
        msg: str,
        level: int = logging.INFO
    ) -> None:
        """Log ``msg`` tagged with ``category`` and its payload."""
        attr = PAYLOAD_ATTRS.get(category, 'payload')
        self.log(level, msg, extra={'category': category.value, attr: payload})

    def log_risk_event(self, event_data: Dict[str, Any], msg: str = "", level: int = logging.WARNING) -> None:
        """Log a risk gate event; WARNING unless told otherwise."""
        self.log_category(
            LogCategory.RISK, event_data,
            msg or f"Risk event: {event_data.get('event_type', 'unknown')}", level
        )

    def log_sizing(self, sizing_data: Dict[str, Any], msg: str = "", level: int = logging.DEBUG) -> None:
        self.log_category(
            LogCategory.SIZING, sizing_data,
            msg or f"Position size: {sizing_data.get('position_size', 'unknown')}", level
        )

    def log_correlation(self, correlation_data: Dict[str, Any], msg: str = "", level: int = logging.DEBUG) -> None:
        self.log_category(
            LogCategory.CORRELATION, correlation_data,
            msg or f"Correlation: {correlation_data.get('status', 'unknown')}", level
        )

    def log_backtest_metrics(self, metrics: Dict[str, Any], msg: str = "", level: int = logging.INFO) -> None:
        self.log_category(LogCategory.BACKTEST, metrics, msg or "Backtest metrics", level)


class LoggerManager:
    """
    Process-wide owner of the handlers riskdesk installs on the root logger.

    Only handlers created here are ever removed, so handlers added by the
    host application (or pytest) are left alone.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._adapters = {}
                instance._handlers = []
                instance._settings = {}
                instance._configured = False
                cls._instance = instance
        return cls._instance

    @property
    def is_setup(self) -> bool:
        return self._configured

    @property
    def settings(self) -> Dict[str, Any]:
        return dict(self._settings)

    def setup(self, config: Optional[Union[BaseModel, Dict[str, Any]]] = None) -> None:
        """
        Install console and file handlers; a no-op once configured.

        Args:
            config: ``LoggingSettings`` or a dict with the same keys
        """
        if self._configured:
            return

        if isinstance(config, BaseModel):
            config = config.model_dump(mode='json')
        settings = {**DEFAULT_LOG_SETTINGS, **(config or {})}
        level = resolve_level(settings['level'])
        logging.getLogger().setLevel(level)

        handlers = self._build_handlers(settings)
        root = logging.getLogger()
        for handler in handlers:
            if handler.level == logging.NOTSET:
                handler.setLevel(level)
            root.addHandler(handler)

        self._handlers = handlers
        self._settings = settings
        self._configured = True

        self.get_logger('riskdesk.system').log_category(
            LogCategory.SYSTEM,
            {key: settings[key] for key in ('level', 'console', 'file', 'error_file')},
            "Logging initialized",
            logging.DEBUG
        )

    @staticmethod
    def _build_handlers(settings: Dict[str, Any]) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []
        directory = Path(settings['directory'])

        if settings['console']:
            # stderr, so command results on stdout stay machine-readable
            console = ColoredConsoleHandler(sys.stderr)
            console.setFormatter(ColoredFormatter(use_colors=settings['colors'] and console.is_tty))
            if settings.get('categories'):
                console.addFilter(CategoryFilter(include_categories=settings['categories']))
            handlers.append(console)

        if settings['file']:
            main_file = build_file_handler(
                directory / settings['filename'],
                rotation=settings['rotation'],
                max_bytes=settings['max_bytes'],
                backup_count=settings['backup_count']
            )
            main_file.setFormatter(JsonFormatter())
            handlers.append(main_file)

        if settings['error_file']:
            errors = build_error_handler(directory / settings['error_filename'])
            errors.setFormatter(DetailedFormatter())
            handlers.append(errors)

        return handlers

    def get_logger(self, name: str) -> LoggerAdapter:
        if name not in self._adapters:
            self._adapters[name] = LoggerAdapter(logging.getLogger(name))
        return self._adapters[name]

    def shutdown(self) -> None:
        """Detach and close the installed handlers."""
        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
        self._configured = False


_manager = LoggerManager()


def setup_logging(config: Optional[Union[BaseModel, Dict[str, Any]]] = None) -> None:
    """
    Configure riskdesk logging.

    Args:
        config: ``LoggingSettings`` or a dict, e.g.
            ``{'level': 'DEBUG', 'file': True, 'directory': 'logs'}``
    """
    _manager.setup(config)


def get_logger(name: str) -> LoggerAdapter:
    """Shared adapter for ``name``; create one per module with ``__name__``."""
    return _manager.get_logger(name)


def shutdown_logging() -> None:
    _manager.shutdown()


@contextmanager
def log_context(correlation_id: Optional[str] = None, name: str = 'riskdesk.context', **extra):
    """
    Yield a fresh adapter whose records carry a correlation id and ``extra``.

    The adapter is private to the block, so shared module loggers are
    never modified.

    Example:
        with log_context(command='backtest', run='r-42') as log:
            log.info("Loading trades")
    """
    adapter = LoggerAdapter(logging.getLogger(name), extra)
    adapter.correlation_id = correlation_id or uuid.uuid4().hex
    yield adapter
