"""Daily loss gate for the riskdesk engine.

The gate turns a day's starting balance, the running P&L and a risk profile
into a trading-allowed decision:

    ok  ->  warning  ->  disabled

``evaluate_daily_risk`` is a pure function of its inputs and is safe to call
on every tick. ``RiskGate`` wraps it with the per-day event ledger so each
threshold crossing is reported once, and optionally holds the status at the
highest tier reached during the day.
"""

import math
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Hashable, List, Optional, Tuple

from ..config.config_manager import RiskGateSettings, RiskProfile
from ..exceptions import InvalidInputError
from ..utils.logger import get_logger
from .risk_events import RiskEvent, RiskEventLedger, RiskEventType

logger = get_logger(__name__)

LIMIT_REACHED_REASON = "Daily loss limit reached. Trading disabled for today."
UNAVAILABLE_REASON = "No risk profile configured. Daily loss limit unavailable."


class RiskStatus(str, Enum):
    """Gate status."""

    OK = "ok"
    WARNING = "warning"
    DISABLED = "disabled"
    UNAVAILABLE = "unavailable"


class RiskSeverity(str, Enum):
    """Severity tiers; ``danger`` is the upper part of status ``warning``."""

    NONE = "none"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


SEVERITY_RANK = {
    RiskSeverity.NONE: 0,
    RiskSeverity.WARNING: 1,
    RiskSeverity.DANGER: 2,
    RiskSeverity.CRITICAL: 3,
}

EVENT_SEVERITY = {
    RiskEventType.DAILY_LOSS_WARNING: RiskSeverity.WARNING,
    RiskEventType.DAILY_LOSS_DANGER: RiskSeverity.DANGER,
    RiskEventType.LIMIT_REACHED: RiskSeverity.CRITICAL,
}


@dataclass(frozen=True)
class DailyRiskStatus:
    """Derived daily risk state; recomputed on demand, never stored."""

    starting_balance: float
    current_pnl: float
    loss_limit: float
    loss_used_percent: float
    remaining_budget: float
    status: RiskStatus
    severity: RiskSeverity
    trading_allowed: bool
    reason: Optional[str] = None
    latched: bool = False

    @property
    def display_loss_used_percent(self) -> float:
        """Loss used percent capped at 100 for progress bars."""
        return min(self.loss_used_percent, 100.0)

    def to_dict(self) -> dict:
        return {
            "starting_balance": self.starting_balance,
            "current_pnl": self.current_pnl,
            "loss_limit": self.loss_limit,
            "loss_used_percent": self.loss_used_percent,
            "remaining_budget": self.remaining_budget,
            "status": self.status.value,
            "severity": self.severity.value,
            "trading_allowed": self.trading_allowed,
            "reason": self.reason,
            "latched": self.latched,
        }


@dataclass(frozen=True)
class WeeklyDrawdownStatus:
    """Weekly drawdown check against ``max_weekly_drawdown_percent``."""

    week_starting_balance: float
    week_pnl: float
    limit_amount: float
    drawdown_used_percent: float
    remaining: float
    limit_breached: bool


@dataclass(frozen=True)
class RiskCheckResult:
    """Result of a pre-trade check."""

    can_trade: bool
    status: RiskStatus
    reason: Optional[str] = None
    open_positions: int = 0
    max_positions: int = 0


def _validate_balance_and_pnl(balance: float, pnl: float, balance_field: str) -> None:
    if balance is None or not math.isfinite(balance) or balance <= 0:
        raise InvalidInputError(
            f"{balance_field} must be a positive number", field=balance_field, value=balance
        )
    if pnl is None or not math.isfinite(pnl):
        raise InvalidInputError("P&L must be a finite number", field="current_pnl", value=pnl)


def _thresholds(settings: RiskGateSettings) -> List[Tuple[float, RiskEventType]]:
    return [
        (settings.warning_threshold, RiskEventType.DAILY_LOSS_WARNING),
        (settings.danger_threshold, RiskEventType.DAILY_LOSS_DANGER),
        (settings.disabled_threshold, RiskEventType.LIMIT_REACHED),
    ]


def threshold_crossed(value: float, threshold: float) -> bool:
    """``value >= threshold``, counting float round-off at the boundary as crossed."""
    return value >= threshold or math.isclose(value, threshold, rel_tol=1e-9)


def _warning_reason(loss_used_percent: float) -> str:
    return f"Warning: {loss_used_percent:.0f}% of daily loss limit used."


def _status_for_severity(severity: RiskSeverity) -> RiskStatus:
    if severity == RiskSeverity.CRITICAL:
        return RiskStatus.DISABLED
    if severity == RiskSeverity.NONE:
        return RiskStatus.OK
    return RiskStatus.WARNING


def unavailable_status(starting_balance: float = 0.0, current_pnl: float = 0.0) -> DailyRiskStatus:
    """Status reported when no risk profile is configured."""
    return DailyRiskStatus(
        starting_balance=starting_balance,
        current_pnl=current_pnl,
        loss_limit=0.0,
        loss_used_percent=0.0,
        remaining_budget=0.0,
        status=RiskStatus.UNAVAILABLE,
        severity=RiskSeverity.NONE,
        trading_allowed=False,
        reason=UNAVAILABLE_REASON,
    )


def evaluate_daily_risk(
    starting_balance: float,
    current_pnl: float,
    risk_profile: Optional[RiskProfile],
    settings: Optional[RiskGateSettings] = None,
) -> DailyRiskStatus:
    """Compute the daily gate status.

    Args:
        starting_balance: Balance snapshot at the start of the trading day
        current_pnl: Realized plus unrealized P&L for the day
        risk_profile: User's risk profile; None yields status ``unavailable``
        settings: Gate thresholds (defaults when None)

    Returns:
        DailyRiskStatus. ``loss_used_percent`` is not capped, so a loss
        beyond the limit reads above 100.

    Raises:
        InvalidInputError: If the balance is not positive or P&L is not finite
    """
    if risk_profile is None:
        return unavailable_status(starting_balance or 0.0, current_pnl or 0.0)

    _validate_balance_and_pnl(starting_balance, current_pnl, "starting_balance")
    settings = settings or RiskGateSettings()

    loss_limit = starting_balance * risk_profile.max_daily_loss_percent / 100
    loss = max(0.0, -current_pnl)
    loss_used_percent = loss / loss_limit * 100
    remaining_budget = max(0.0, loss_limit - loss)

    if threshold_crossed(loss_used_percent, settings.disabled_threshold):
        severity = RiskSeverity.CRITICAL
        reason = LIMIT_REACHED_REASON
    elif threshold_crossed(loss_used_percent, settings.danger_threshold):
        severity = RiskSeverity.DANGER
        reason = _warning_reason(loss_used_percent)
    elif threshold_crossed(loss_used_percent, settings.warning_threshold):
        severity = RiskSeverity.WARNING
        reason = _warning_reason(loss_used_percent)
    else:
        severity = RiskSeverity.NONE
        reason = None

    status = _status_for_severity(severity)
    return DailyRiskStatus(
        starting_balance=starting_balance,
        current_pnl=current_pnl,
        loss_limit=loss_limit,
        loss_used_percent=loss_used_percent,
        remaining_budget=remaining_budget,
        status=status,
        severity=severity,
        trading_allowed=status != RiskStatus.DISABLED,
        reason=reason,
    )


def evaluate_weekly_drawdown(
    week_starting_balance: float,
    week_pnl: float,
    risk_profile: RiskProfile,
) -> WeeklyDrawdownStatus:
    """Check the week's P&L against the weekly drawdown limit.

    Args:
        week_starting_balance: Balance at the start of the week
        week_pnl: P&L accumulated during the week
        risk_profile: User's risk profile

    Returns:
        WeeklyDrawdownStatus
    """
    _validate_balance_and_pnl(week_starting_balance, week_pnl, "week_starting_balance")

    limit_amount = week_starting_balance * risk_profile.max_weekly_drawdown_percent / 100
    loss = max(0.0, -week_pnl)

    return WeeklyDrawdownStatus(
        week_starting_balance=week_starting_balance,
        week_pnl=week_pnl,
        limit_amount=limit_amount,
        drawdown_used_percent=loss / limit_amount * 100,
        remaining=max(0.0, limit_amount - loss),
        limit_breached=threshold_crossed(loss, limit_amount),
    )


def can_open_position(
    daily_status: DailyRiskStatus,
    open_positions: int,
    risk_profile: Optional[RiskProfile],
) -> RiskCheckResult:
    """Combine the daily gate with the concurrent position limit.

    Args:
        daily_status: Current daily gate status
        open_positions: Number of positions currently open
        risk_profile: User's risk profile

    Returns:
        RiskCheckResult
    """
    if open_positions < 0:
        raise InvalidInputError(
            "open_positions cannot be negative", field="open_positions", value=open_positions
        )

    if risk_profile is None or daily_status.status == RiskStatus.UNAVAILABLE:
        return RiskCheckResult(
            can_trade=False,
            status=RiskStatus.UNAVAILABLE,
            reason=UNAVAILABLE_REASON,
            open_positions=open_positions,
        )

    max_positions = risk_profile.max_concurrent_positions
    if not daily_status.trading_allowed:
        return RiskCheckResult(
            can_trade=False,
            status=daily_status.status,
            reason=daily_status.reason,
            open_positions=open_positions,
            max_positions=max_positions,
        )

    if open_positions >= max_positions:
        return RiskCheckResult(
            can_trade=False,
            status=daily_status.status,
            reason=f"Maximum concurrent positions reached ({open_positions}/{max_positions}).",
            open_positions=open_positions,
            max_positions=max_positions,
        )

    return RiskCheckResult(
        can_trade=True,
        status=daily_status.status,
        reason=daily_status.reason,
        open_positions=open_positions,
        max_positions=max_positions,
    )


class RiskGate:
    """Daily loss gate with once-per-crossing risk events.

    Example:
        gate = RiskGate(settings, event_sink=store.append)
        status, events = gate.evaluate("user-1", date.today(), 10000.0, -720.0, profile)
    """

    def __init__(
        self,
        settings: Optional[RiskGateSettings] = None,
        ledger: Optional[RiskEventLedger] = None,
        event_sink: Optional[Callable[[RiskEvent], None]] = None,
    ):
        """Initialize the gate.

        Args:
            settings: Gate thresholds (defaults when None)
            ledger: Emission ledger; a fresh one when None
            event_sink: Called with every new RiskEvent, e.g. to persist it
        """
        self.settings = settings or RiskGateSettings()
        self.ledger = ledger if ledger is not None else RiskEventLedger()
        self.event_sink = event_sink
        self._lock = threading.Lock()

    def evaluate(
        self,
        user_id: str,
        trading_day: Hashable,
        starting_balance: float,
        current_pnl: float,
        risk_profile: Optional[RiskProfile],
    ) -> Tuple[DailyRiskStatus, List[RiskEvent]]:
        """Evaluate the gate and emit events for newly crossed thresholds.

        Several thresholds crossed by one update each produce an event,
        ordered by threshold.
        An evaluation for a day older than the user's current day is
        reported without events or latching.

        Args:
            user_id: User the evaluation belongs to
            trading_day: Trading day identifier (a ``date`` or any hashable)
            starting_balance: Balance snapshot at the start of the day
            current_pnl: Day P&L so far
            risk_profile: User's risk profile, or None if not configured

        Returns:
            Tuple of (status, new events)
        """
        status = evaluate_daily_risk(
            starting_balance, current_pnl, risk_profile, self.settings
        )
        if status.status == RiskStatus.UNAVAILABLE:
            logger.debug(f"Risk gate unavailable for {user_id}: no risk profile")
            return status, []

        with self._lock:
            if self.ledger.is_stale(user_id, trading_day):
                logger.debug(f"Late evaluation for {user_id} on past day {trading_day}: no events")
                return status, []

            if self.ledger.start_day(user_id, trading_day):
                logger.info(f"Trading day rollover for {user_id}: {trading_day}")

            events = []
            for threshold, event_type in _thresholds(self.settings):
                if not threshold_crossed(status.loss_used_percent, threshold):
                    break
                if self.ledger.has_emitted(user_id, trading_day, event_type):
                    continue
                event = self._build_event(user_id, trading_day, event_type, threshold, status)
                self.ledger.mark_emitted(user_id, trading_day, event_type)
                events.append(event)

                logger.log_risk_event(event.to_dict(), msg=f"Risk event: {event_type.value} for {user_id}")
                if self.event_sink is not None:
                    self.event_sink(event)

            if self.settings.latch_within_day:
                status = self._apply_latch(user_id, trading_day, status)

        return status, events

    def _apply_latch(
        self, user_id: str, trading_day: Hashable, status: DailyRiskStatus
    ) -> DailyRiskStatus:
        emitted = self.ledger.emitted_types(user_id, trading_day)
        if not emitted:
            return status

        latched_severity = max(
            (EVENT_SEVERITY[event_type] for event_type in emitted),
            key=lambda severity: SEVERITY_RANK[severity],
        )
        if SEVERITY_RANK[latched_severity] <= SEVERITY_RANK[status.severity]:
            return status

        latched_status = _status_for_severity(latched_severity)
        if latched_status == RiskStatus.DISABLED:
            reason = LIMIT_REACHED_REASON
        else:
            reason = (
                f"Warning: {status.loss_used_percent:.0f}% of daily loss limit used; "
                f"{latched_severity.value} threshold crossed earlier today."
            )

        return replace(
            status,
            status=latched_status,
            severity=latched_severity,
            trading_allowed=latched_status != RiskStatus.DISABLED,
            reason=reason,
            latched=True,
        )

    def _build_event(
        self,
        user_id: str,
        trading_day: Hashable,
        event_type: RiskEventType,
        threshold: float,
        status: DailyRiskStatus,
    ) -> RiskEvent:
        if event_type == RiskEventType.LIMIT_REACHED:
            message = LIMIT_REACHED_REASON
        else:
            message = _warning_reason(status.loss_used_percent)

        return RiskEvent(
            user_id=user_id,
            event_date=trading_day,
            event_type=event_type,
            message=message,
            threshold_value=threshold,
            trigger_value=status.loss_used_percent,
            metadata={
                "starting_balance": status.starting_balance,
                "current_pnl": status.current_pnl,
                "loss_limit": status.loss_limit,
            },
        )

    def reset(self, user_id: Optional[str] = None) -> None:
        """Forget emitted events, for one user or everyone."""
        self.ledger.clear(user_id)
