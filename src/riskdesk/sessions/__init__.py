"""Trading session classification."""

from .session_classifier import (
    SESSION_LABELS,
    SessionClassifier,
    TradingSession,
    session_label,
    to_utc,
)

__all__ = [
    'SESSION_LABELS',
    'SessionClassifier',
    'TradingSession',
    'session_label',
    'to_utc',
]
