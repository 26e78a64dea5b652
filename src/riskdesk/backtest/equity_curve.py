"""
Equity curve module for backtest analytics.

This module builds the equity series implied by a trade list and derives
drawdown statistics from any equity series.
"""

import logging
import math
from typing import List, Optional, Sequence

from ..exceptions import InvalidInputError
from ..sessions.session_classifier import Timestamp, to_utc
from .models import BacktestTrade, EquityPoint

logger = logging.getLogger(__name__)


def calculate_drawdown_series(balances: Sequence[float]) -> List[float]:
    """
    Drawdown of each balance from the running peak, in percent (<= 0).

    The peak is seeded with the first balance.

    Args:
        balances: Equity values in time order

    Returns:
        List of drawdown percentages, same length as ``balances``

    Raises:
        InvalidInputError: If the first balance is not positive or any
            balance is not finite
    """
    if not balances:
        return []
    for index, balance in enumerate(balances):
        if balance is None or not math.isfinite(balance):
            raise InvalidInputError(
                f"Equity balance #{index} must be a finite number",
                field='balance', value=balance, details={'index': index}
            )
    if balances[0] <= 0:
        raise InvalidInputError(
            "Equity curve must start from a positive balance",
            field='balance', value=balances[0]
        )

    peak = balances[0]
    drawdowns = []
    for balance in balances:
        if balance > peak:
            peak = balance
        drawdowns.append((balance - peak) / peak * 100 if balance < peak else 0.0)
    return drawdowns


def build_equity_curve(
    trades: Sequence[BacktestTrade],
    initial_capital: float,
    period_start: Optional[Timestamp] = None
) -> List[EquityPoint]:
    """
    Build the equity curve implied by a trade list.

    One opening point at ``period_start`` (or the first entry time), then
    one point per trade at its exit time, trades taken in exit order.

    Args:
        trades: Closed trades
        initial_capital: Starting balance
        period_start: Start of the backtest period

    Returns:
        List of EquityPoint with drawdown filled in
    """
    if initial_capital <= 0:
        raise InvalidInputError(
            "initial_capital must be positive", field='initial_capital', value=initial_capital
        )

    ordered = sorted(trades, key=lambda t: t.exit_time)
    if period_start is not None:
        start = to_utc(period_start)
    elif ordered:
        start = min(t.entry_time for t in ordered)
    else:
        raise InvalidInputError("period_start is required when there are no trades", field='period_start')

    timestamps = [start]
    balances = [initial_capital]
    balance = initial_capital
    for trade in ordered:
        balance += trade.pnl
        timestamps.append(trade.exit_time)
        balances.append(balance)

    drawdowns = calculate_drawdown_series(balances)
    logger.debug(f"Equity curve built: {len(balances)} points, final balance {balance:.2f}")
    return [
        EquityPoint(timestamp=ts, balance=b, drawdown_percent=dd)
        for ts, b, dd in zip(timestamps, balances, drawdowns)
    ]


class EquityCurve:
    """
    Drawdown analysis over an equity series.

    This class handles:
    - Maximum drawdown (percent and amount)
    - Drawdown duration, counted in curve points
    - Current distance from the peak
    """

    def __init__(self, points: Sequence[EquityPoint]):
        """
        Initialize equity curve.

        Args:
            points: Equity points in time order
        """
        self._points = list(points)
        self._balances = [p.balance for p in self._points]
        self._drawdowns = calculate_drawdown_series(self._balances)

    @classmethod
    def from_trades(
        cls,
        trades: Sequence[BacktestTrade],
        initial_capital: float,
        period_start: Optional[Timestamp] = None
    ) -> 'EquityCurve':
        return cls(build_equity_curve(trades, initial_capital, period_start))

    @property
    def points(self) -> List[EquityPoint]:
        """Points with drawdown recomputed from the balances."""
        return [
            EquityPoint(timestamp=p.timestamp, balance=p.balance, drawdown_percent=dd)
            for p, dd in zip(self._points, self._drawdowns)
        ]

    @property
    def balances(self) -> List[float]:
        return list(self._balances)

    @property
    def drawdowns(self) -> List[float]:
        return list(self._drawdowns)

    @property
    def max_drawdown_percent(self) -> float:
        """Most negative drawdown, 0.0 for a non-decreasing curve."""
        return min(self._drawdowns) if self._drawdowns else 0.0

    @property
    def max_drawdown_amount(self) -> float:
        """Largest peak-to-trough decline in money, as a positive number."""
        peak = None
        worst = 0.0
        for balance in self._balances:
            if peak is None or balance > peak:
                peak = balance
            worst = max(worst, peak - balance)
        return worst

    @property
    def max_drawdown_duration(self) -> int:
        """Longest run of consecutive points below the running peak."""
        longest = current = 0
        for drawdown in self._drawdowns:
            if drawdown < 0:
                current += 1
                longest = max(longest, current)
            else:
                current = 0
        return longest

    @property
    def current_drawdown_percent(self) -> float:
        return self._drawdowns[-1] if self._drawdowns else 0.0

    def is_non_decreasing(self) -> bool:
        return all(b2 >= b1 for b1, b2 in zip(self._balances, self._balances[1:]))

    def __len__(self) -> int:
        return len(self._points)
