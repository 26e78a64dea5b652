"""Risk package: position sizing and the daily loss gate."""

from .position_sizer import (
    PositionSizer,
    PositionSizeResult,
    PositionType,
    RTarget,
    TakeProfitResult,
    infer_direction,
)
from .risk_events import RiskEvent, RiskEventLedger, RiskEventType
from .risk_gate import (
    DailyRiskStatus,
    RiskCheckResult,
    RiskGate,
    RiskSeverity,
    RiskStatus,
    WeeklyDrawdownStatus,
    can_open_position,
    evaluate_daily_risk,
    evaluate_weekly_drawdown,
    unavailable_status,
)

__all__ = [
    "PositionSizer",
    "PositionSizeResult",
    "PositionType",
    "RTarget",
    "TakeProfitResult",
    "infer_direction",
    "RiskEvent",
    "RiskEventLedger",
    "RiskEventType",
    "DailyRiskStatus",
    "RiskCheckResult",
    "RiskGate",
    "RiskSeverity",
    "RiskStatus",
    "WeeklyDrawdownStatus",
    "can_open_position",
    "evaluate_daily_risk",
    "evaluate_weekly_drawdown",
    "unavailable_status",
]
