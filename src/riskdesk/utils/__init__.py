"""
Utilities package for the riskdesk engine.

Holds the logging stack: the logger manager and adapter, formatters for the
console and log files, and handler builders.

Example Usage:
    from riskdesk.utils import get_logger, setup_logging, log_context

    setup_logging({'level': 'DEBUG'})

    with log_context(run='r-1') as log:
        log.info("Computing metrics")
"""

from .logger import (
    setup_logging,
    get_logger,
    shutdown_logging,
    log_context,
    resolve_level,
    LoggerAdapter,
    LoggerManager,
    LogCategory,
)

from .log_formatter import (
    JsonFormatter,
    ColoredFormatter,
    DetailedFormatter,
    CategoryFilter,
)

from .log_handlers import (
    ColoredConsoleHandler,
    build_file_handler,
    build_error_handler,
)

__all__ = [
    'setup_logging',
    'get_logger',
    'shutdown_logging',
    'log_context',
    'resolve_level',
    'LoggerAdapter',
    'LoggerManager',
    'LogCategory',
    'JsonFormatter',
    'ColoredFormatter',
    'DetailedFormatter',
    'CategoryFilter',
    'ColoredConsoleHandler',
    'build_file_handler',
    'build_error_handler',
]
