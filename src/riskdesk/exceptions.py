"""
Custom exceptions for the risk and analytics engine.

This module defines the exception hierarchy used when the engine receives
input it cannot compute on, or when configuration cannot be loaded.
Degenerate-but-valid cases (zero drawdown, zero gross loss, ...) are never
raised; they resolve to documented sentinel values instead.
"""

from typing import Any


class RiskDeskError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class InvalidInputError(RiskDeskError):
    """
    Exception raised for input outside a calculation's domain.

    Examples: non-positive prices or balances, a stop loss equal to the
    entry price, an empty trade list passed to the metrics engine.
    These are always signaled to the caller and never defaulted to zero,
    since a silent zero would read as a valid "no risk" result.
    """

    def __init__(
        self,
        message: str = "Invalid input",
        field: str = None,
        value: Any = None,
        details: dict = None
    ):
        super().__init__(message, error_code="INVALID_INPUT", details=details)
        self.field = field
        self.value = value


class ConfigurationError(RiskDeskError):
    """
    Exception raised when configuration cannot be loaded or validated.

    Examples: missing config file, malformed YAML/JSON, threshold values
    that fail validation.
    """

    def __init__(
        self,
        message: str = "Configuration error",
        path: str = None,
        details: dict = None
    ):
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details)
        self.path = path
