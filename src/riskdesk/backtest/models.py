"""
Data models for backtest analytics.

Trades arrive from an external simulation step and are immutable here;
metrics are derived records rebuilt as a whole from a trade set.
"""

import math
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidInputError
from ..sessions.session_classifier import TradingSession, session_label, to_utc


class TradeDirection(str, Enum):
    """Trade direction."""
    LONG = "long"
    SHORT = "short"


class ExitType(str, Enum):
    """How a simulated trade was closed."""
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    TRAILING_STOP = "trailing_stop"
    TIME_BASED = "time_based"
    SIGNAL = "signal"


class TradeOutcome(str, Enum):
    """Win / loss / breakeven partition of a trade."""
    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError as e:
        raise InvalidInputError(
            f"Unknown {field_name}: {value}", field=field_name, value=value
        ) from e


@dataclass(frozen=True)
class BacktestTrade:
    """A closed, simulated trade."""
    entry_time: datetime
    exit_time: datetime
    direction: TradeDirection
    entry_price: float
    exit_price: float
    pnl: float
    pnl_percent: float
    exit_type: ExitType
    symbol: Optional[str] = None
    quantity: Optional[float] = None
    commission: float = 0.0
    risk_amount: Optional[float] = None
    trade_id: Optional[str] = None

    def __post_init__(self):
        # Frozen: normalization has to go through object.__setattr__
        object.__setattr__(self, 'entry_time', to_utc(self.entry_time))
        object.__setattr__(self, 'exit_time', to_utc(self.exit_time))
        object.__setattr__(self, 'direction', _parse_enum(TradeDirection, self.direction, 'direction'))
        object.__setattr__(self, 'exit_type', _parse_enum(ExitType, self.exit_type, 'exit_type'))

        if self.exit_time < self.entry_time:
            raise InvalidInputError(
                "Trade exit_time precedes entry_time", field='exit_time', value=self.exit_time
            )
        for name in ('entry_price', 'exit_price'):
            value = getattr(self, name)
            if value is None or not math.isfinite(value) or value <= 0:
                raise InvalidInputError(f"{name} must be a positive number", field=name, value=value)
        for name in ('pnl', 'pnl_percent'):
            value = getattr(self, name)
            if value is None or not math.isfinite(value):
                raise InvalidInputError(f"{name} must be a finite number", field=name, value=value)
        for name in ('risk_amount', 'quantity'):
            value = getattr(self, name)
            if value is not None and (not math.isfinite(value) or value <= 0):
                raise InvalidInputError(f"{name} must be a positive number when given", field=name, value=value)
        if self.commission is None or not math.isfinite(self.commission):
            raise InvalidInputError(
                "commission must be a finite number", field='commission', value=self.commission
            )

    @property
    def outcome(self) -> TradeOutcome:
        if self.pnl > 0:
            return TradeOutcome.WIN
        if self.pnl < 0:
            return TradeOutcome.LOSS
        return TradeOutcome.BREAKEVEN

    @property
    def holding_hours(self) -> float:
        return (self.exit_time - self.entry_time).total_seconds() / 3600

    @property
    def r_multiple(self) -> Optional[float]:
        if not self.risk_amount:
            return None
        return self.pnl / self.risk_amount

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BacktestTrade':
        """Build a trade from a loosely typed record (JSON row, CSV row)."""
        required = ('entry_time', 'exit_time', 'direction', 'entry_price',
                    'exit_price', 'pnl', 'pnl_percent', 'exit_type')
        missing = [name for name in required if data.get(name) in (None, '')]
        if missing:
            raise InvalidInputError(
                f"Trade record missing fields: {', '.join(missing)}",
                field=missing[0],
                details={'record': data}
            )

        def optional_float(name):
            value = data.get(name)
            return None if value in (None, '') else to_float(value, name)

        return cls(
            entry_time=data['entry_time'],
            exit_time=data['exit_time'],
            direction=data['direction'],
            entry_price=to_float(data['entry_price'], 'entry_price'),
            exit_price=to_float(data['exit_price'], 'exit_price'),
            pnl=to_float(data['pnl'], 'pnl'),
            pnl_percent=to_float(data['pnl_percent'], 'pnl_percent'),
            exit_type=data['exit_type'],
            symbol=data.get('symbol') or None,
            quantity=optional_float('quantity'),
            commission=optional_float('commission') or 0.0,
            risk_amount=optional_float('risk_amount'),
            trade_id=(str(data['trade_id']) if data.get('trade_id') not in (None, '') else None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trade_id': self.trade_id,
            'symbol': self.symbol,
            'entry_time': self.entry_time.isoformat(),
            'exit_time': self.exit_time.isoformat(),
            'direction': self.direction.value,
            'entry_price': self.entry_price,
            'exit_price': self.exit_price,
            'pnl': self.pnl,
            'pnl_percent': self.pnl_percent,
            'exit_type': self.exit_type.value,
            'quantity': self.quantity,
            'commission': self.commission,
            'risk_amount': self.risk_amount,
        }


def to_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be numeric, got: {value!r}", field=name, value=value) from e


@dataclass(frozen=True)
class EquityPoint:
    """Single point on the equity curve."""
    timestamp: datetime
    balance: float
    drawdown_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'balance': self.balance,
            'drawdown_percent': self.drawdown_percent,
        }


@dataclass
class SessionStats:
    """Per-session aggregate."""
    session: TradingSession
    trades: int
    wins: int
    losses: int
    breakeven: int
    win_rate: float
    total_pnl: float
    avg_pnl: float
    avg_win: float
    avg_loss: float
    gross_profit: float
    gross_loss: float
    profit_factor: float

    @property
    def label(self) -> str:
        return session_label(self.session)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['session'] = self.session.value
        data['label'] = self.label
        return data


@dataclass
class SessionBreakdown:
    """Session stats sorted by total P&L, best first."""
    sessions: List[SessionStats] = field(default_factory=list)

    @property
    def best_session(self) -> Optional[SessionStats]:
        return self.sessions[0] if self.sessions else None

    @property
    def worst_session(self) -> Optional[SessionStats]:
        return self.sessions[-1] if self.sessions else None

    @property
    def total_trades(self) -> int:
        return sum(stats.trades for stats in self.sessions)

    def get(self, session: TradingSession) -> Optional[SessionStats]:
        for stats in self.sessions:
            if stats.session == session:
                return stats
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessions': [stats.to_dict() for stats in self.sessions],
            'best_session': self.best_session.session.value if self.best_session else None,
            'worst_session': self.worst_session.session.value if self.worst_session else None,
        }


@dataclass(frozen=True)
class BacktestMetrics:
    """
    Aggregate performance statistics for one backtest run.

    Sentinels: ``profit_factor`` and ``recovery_factor`` are ``math.inf``
    when there is profit and nothing to divide by; ``calmar_ratio`` equals
    the annualized return when there is no drawdown; ``breakeven_win_rate``
    and ``expectancy_per_r`` are None when undefined. Percent fields are in
    percent; ``win_rate`` and ``breakeven_win_rate`` are fractions.
    """
    # Returns
    initial_capital: float
    final_capital: float
    total_return_amount: float
    total_return_percent: float
    cagr_percent: float
    annualized_return_percent: float
    period_days: float

    # Trade partition
    total_trades: int
    winning_trades: int
    losing_trades: int
    breakeven_trades: int
    win_rate: float

    # Trade statistics
    gross_profit: float
    gross_loss: float
    profit_factor: float
    avg_win: float
    avg_loss: float
    avg_win_percent: float
    avg_loss_percent: float
    largest_win: float
    largest_loss: float
    avg_risk_reward: float
    expectancy: float
    expectancy_per_r: Optional[float]
    breakeven_win_rate: Optional[float]
    kelly_percent: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    avg_holding_hours: float
    exposure_percent: float

    # Risk
    max_drawdown_percent: float
    max_drawdown_amount: float
    max_drawdown_duration: int
    current_drawdown_percent: float
    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float
    recovery_factor: float
    value_at_risk_95: float
    value_at_risk_99: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
