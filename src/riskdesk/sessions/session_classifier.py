"""
Trading session classification.

Maps a timestamp to the market session active at that time. Sessions are
fixed UTC hour windows checked in priority order, the first match wins:

    sydney    21:00-06:00 UTC (crosses midnight)
    tokyo     00:00-09:00 UTC
    london    07:00-16:00 UTC
    new_york  12:00-21:00 UTC

Hours matched by no window map to ``other``, so classification is total.
Evaluation never depends on the machine's local timezone.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from dateutil import parser as date_parser

from ..config.config_manager import SessionSettings
from ..exceptions import InvalidInputError

Timestamp = Union[datetime, str, int, float]


class TradingSession(str, Enum):
    """Trading session buckets."""
    SYDNEY = "sydney"
    TOKYO = "tokyo"
    LONDON = "london"
    NEW_YORK = "new_york"
    OTHER = "other"


SESSION_LABELS = {
    TradingSession.SYDNEY: "Sydney",
    TradingSession.TOKYO: "Tokyo",
    TradingSession.LONDON: "London",
    TradingSession.NEW_YORK: "New York",
    TradingSession.OTHER: "Other",
}

# (start, end, label); checked in this order
SESSION_OVERLAPS = (
    (12, 16, "London + NY"),
    (7, 9, "Tokyo + London"),
    (0, 6, "Sydney + Tokyo"),
)


def to_utc(value: Timestamp) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    Aware datetimes are converted, naive ones are taken to be UTC already,
    strings are parsed as ISO-8601 and numbers are epoch seconds.

    Raises:
        InvalidInputError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, bool):
        raise InvalidInputError("Timestamp cannot be a boolean", field="timestamp", value=value)

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise InvalidInputError("Timestamp must be finite", field="timestamp", value=value)
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str):
        try:
            parsed = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError) as e:
            raise InvalidInputError(
                f"Cannot parse timestamp: {value!r}", field="timestamp", value=value
            ) from e
        return to_utc(parsed)

    raise InvalidInputError(
        f"Unsupported timestamp type: {type(value).__name__}", field="timestamp", value=value
    )


def session_label(session: Union[TradingSession, str]) -> str:
    """Display label for a session."""
    try:
        return SESSION_LABELS[TradingSession(session)]
    except ValueError as e:
        raise InvalidInputError(f"Unknown session: {session}", field="session", value=session) from e


class SessionClassifier:
    """
    Assigns timestamps to trading sessions.

    The windows are injected through ``SessionSettings`` so tests and
    callers can use their own definitions.
    """

    def __init__(self, settings: Optional[SessionSettings] = None):
        self.settings = settings or SessionSettings()

    def classify(self, timestamp: Timestamp) -> TradingSession:
        """
        Determine which trading session a timestamp falls into.

        Args:
            timestamp: datetime, ISO-8601 string or epoch seconds

        Returns:
            TradingSession; ``OTHER`` when no window matches
        """
        return self.classify_hour(to_utc(timestamp).hour)

    def classify_hour(self, utc_hour: int) -> TradingSession:
        if not 0 <= utc_hour <= 23:
            raise InvalidInputError("UTC hour must be within 0-23", field="utc_hour", value=utc_hour)

        for window in self.settings.windows:
            if window.contains(utc_hour):
                return TradingSession(window.session)
        return TradingSession.OTHER

    def active_overlaps(self, timestamp: Timestamp) -> Optional[str]:
        """
        Describe the session overlap active at a timestamp.

        Returns:
            "London + NY", "Tokyo + London", "Sydney + Tokyo", or None
        """
        hour = to_utc(timestamp).hour
        for start, end, label in SESSION_OVERLAPS:
            if start <= hour < end:
                return label
        return None

    def format_session_window(
        self, session: Union[TradingSession, str], utc_offset_hours: int = 0
    ) -> str:
        """
        Format a session's window shifted to a UTC offset, e.g. "07:00-16:00".

        Args:
            session: Session to format
            utc_offset_hours: Offset of the viewer's timezone from UTC

        Returns:
            "HH:00-HH:00", or "Variable" for ``other``
        """
        try:
            session = TradingSession(session)
        except ValueError as e:
            raise InvalidInputError(f"Unknown session: {session}", field="session", value=session) from e
        window = self.settings.window_for(session.value)
        if window is None:
            return "Variable"

        start = (window.start_hour + utc_offset_hours) % 24
        end = (window.end_hour + utc_offset_hours) % 24
        return f"{start:02d}:00-{end:02d}:00"
