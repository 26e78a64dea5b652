"""Risk event records and the per-day emission ledger.

A risk event is written once per threshold crossing per user per trading
day. The ledger is the only mutable state in the engine; it is an explicit
key-value store so it can be inspected and reset in tests. It does not need
to survive a restart: after one, a crossing may be reported again.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Hashable, Optional, Set, Tuple


class RiskEventType(str, Enum):
    """Risk event types, in threshold order."""

    DAILY_LOSS_WARNING = "daily_loss_warning"
    DAILY_LOSS_DANGER = "daily_loss_danger"
    LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True)
class RiskEvent:
    """One persisted threshold crossing."""

    user_id: str
    event_date: date
    event_type: RiskEventType
    message: str
    threshold_value: float
    trigger_value: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event_date": self.event_date.isoformat()
            if isinstance(self.event_date, date)
            else str(self.event_date),
            "event_type": self.event_type.value,
            "message": self.message,
            "threshold_value": self.threshold_value,
            "trigger_value": self.trigger_value,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
        }


LedgerKey = Tuple[str, Hashable, RiskEventType]


class RiskEventLedger:
    """Tracks which thresholds already produced an event.

    Keys are ``(user_id, trading_day, event_type)``. Starting a newer trading
    day for a user drops that user's keys from earlier days; a day older than
    the user's current one is stale and leaves the ledger untouched.
    """

    def __init__(self):
        self._emitted: Dict[LedgerKey, bool] = {}
        self._current_day: Dict[str, Hashable] = {}

    def is_stale(self, user_id: str, trading_day: Hashable) -> bool:
        """True when ``trading_day`` is older than the user's current day.

        Days that cannot be ordered (mixed types) are never stale.
        """
        current = self._current_day.get(user_id)
        if current is None or current == trading_day:
            return False
        try:
            return trading_day < current
        except TypeError:
            return False

    def start_day(self, user_id: str, trading_day: Hashable) -> bool:
        """Move ``user_id`` to ``trading_day``; stale days are ignored.

        Returns:
            True when this was a rollover that discarded older keys
        """
        previous = self._current_day.get(user_id)
        if previous == trading_day or self.is_stale(user_id, trading_day):
            return False

        self._current_day[user_id] = trading_day
        if previous is None:
            return False
        self.reset_day(user_id, previous)
        return True

    def has_emitted(
        self, user_id: str, trading_day: Hashable, event_type: RiskEventType
    ) -> bool:
        return self._emitted.get((user_id, trading_day, event_type), False)

    def mark_emitted(
        self, user_id: str, trading_day: Hashable, event_type: RiskEventType
    ) -> None:
        self._emitted[(user_id, trading_day, event_type)] = True

    def emitted_types(self, user_id: str, trading_day: Hashable) -> Set[RiskEventType]:
        return {
            key[2]
            for key, emitted in self._emitted.items()
            if emitted and key[0] == user_id and key[1] == trading_day
        }

    def reset_day(self, user_id: str, trading_day: Hashable) -> None:
        for key in [k for k in self._emitted if k[0] == user_id and k[1] == trading_day]:
            del self._emitted[key]

    def clear(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self._emitted.clear()
            self._current_day.clear()
            return
        for key in [k for k in self._emitted if k[0] == user_id]:
            del self._emitted[key]
        self._current_day.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._emitted)
