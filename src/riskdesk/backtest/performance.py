"""
Backtest performance metrics.

This module turns a simulated trade list (and optionally its equity series)
into the full performance report: returns, trade statistics, drawdown,
risk-adjusted ratios and session attribution.

Every call recomputes all metrics from the complete input. Several of them
(Sharpe, breakeven win rate) do not add up across trade subsets, so there is
no incremental update path.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..config.config_manager import BacktestSettings
from ..exceptions import InvalidInputError
from ..sessions.session_classifier import SessionClassifier, Timestamp, to_utc
from ..utils.logger import get_logger
from .equity_curve import EquityCurve, build_equity_curve
from .models import BacktestMetrics, BacktestTrade, EquityPoint, SessionBreakdown
from .session_breakdown import calculate_session_breakdown, profit_factor

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400.0


def calculate_streaks(trades: Sequence[BacktestTrade]) -> Dict[str, int]:
    """
    Longest runs of consecutive wins and losses in entry-time order.

    A breakeven trade ends both runs.
    """
    max_wins = max_losses = 0
    wins = losses = 0
    for trade in sorted(trades, key=lambda t: t.entry_time):
        if trade.pnl > 0:
            wins += 1
            losses = 0
        elif trade.pnl < 0:
            losses += 1
            wins = 0
        else:
            wins = losses = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)
    return {'max_consecutive_wins': max_wins, 'max_consecutive_losses': max_losses}


def calculate_cagr_percent(
    initial_capital: float, final_capital: float, period_days: float
) -> float:
    """
    Compound annual growth rate in percent.

    Falls back to the simple total return when the period is empty, and is
    -100 when the account is wiped out. An annualization too large to
    represent is reported as ``math.inf``.
    """
    total_return_percent = (final_capital - initial_capital) / initial_capital * 100
    if period_days <= 0:
        return total_return_percent
    if final_capital <= 0:
        return -100.0
    try:
        return ((final_capital / initial_capital) ** (365.0 / period_days) - 1) * 100
    except OverflowError:
        return math.inf


def calculate_sharpe_ratio(
    returns: np.ndarray, trading_days_per_year: int, risk_free_rate: float = 0.0
) -> float:
    """
    Trade-level Sharpe ratio.

    Mean trade return over the population standard deviation of trade
    returns, scaled by sqrt(trading_days_per_year). This uses per-trade
    volatility, not daily-bar volatility. 0.0 when returns do not vary.
    """
    if len(returns) == 0:
        return 0.0
    std = float(np.std(returns))
    if std == 0:
        return 0.0
    excess = float(np.mean(returns)) - risk_free_rate / trading_days_per_year
    return excess / std * math.sqrt(trading_days_per_year)


def calculate_sortino_ratio(
    returns: np.ndarray, trading_days_per_year: int, risk_free_rate: float = 0.0
) -> float:
    """
    Trade-level Sortino ratio.

    Downside deviation is the root mean square of negative returns over all
    trades. 0.0 when there is no downside.
    """
    if len(returns) == 0:
        return 0.0
    downside = returns[returns < 0]
    downside_dev = math.sqrt(float(np.sum(downside ** 2)) / len(returns))
    if downside_dev == 0:
        return 0.0
    excess = float(np.mean(returns)) - risk_free_rate / trading_days_per_year
    return excess / downside_dev * math.sqrt(trading_days_per_year)


def calculate_value_at_risk(pnls: Sequence[float], confidence: float) -> float:
    """
    Historical single-trade value at risk, as a positive amount.

    The loss at the (1 - confidence) quantile of trade P&L; 0.0 when that
    trade is not a loss.
    """
    if not pnls:
        return 0.0
    ordered = sorted(pnls)
    index = int(math.floor(len(ordered) * (1 - confidence)))
    return max(0.0, -ordered[min(index, len(ordered) - 1)])


@dataclass
class BacktestReport:
    """Metrics plus the series they were derived from."""
    metrics: BacktestMetrics
    equity_curve: List[EquityPoint] = field(default_factory=list)
    session_breakdown: SessionBreakdown = field(default_factory=SessionBreakdown)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metrics': self.metrics.to_dict(),
            'equity_curve': [point.to_dict() for point in self.equity_curve],
            'session_breakdown': self.session_breakdown.to_dict(),
        }

    def generate_summary(self) -> str:
        """
        Generate a human-readable performance summary.

        Returns:
            Formatted summary string
        """
        m = self.metrics

        summary = []
        summary.append("=" * 60)
        summary.append("BACKTEST PERFORMANCE SUMMARY")
        summary.append("=" * 60)

        summary.append("\n--- Return Metrics ---")
        summary.append(f"Initial Capital: ${m.initial_capital:,.2f}")
        summary.append(f"Final Capital: ${m.final_capital:,.2f}")
        summary.append(f"Total Return: ${m.total_return_amount:,.2f} ({m.total_return_percent:.2f}%)")
        summary.append(f"CAGR: {m.cagr_percent:.2f}%")
        summary.append(f"Period: {m.period_days:.1f} days")

        summary.append("\n--- Risk Metrics ---")
        summary.append(f"Max Drawdown: {m.max_drawdown_percent:.2f}% (${m.max_drawdown_amount:,.2f})")
        summary.append(f"Sharpe Ratio: {m.sharpe_ratio:.2f}")
        summary.append(f"Sortino Ratio: {m.sortino_ratio:.2f}")
        summary.append(f"Calmar Ratio: {m.calmar_ratio:.2f}")
        summary.append(f"Recovery Factor: {m.recovery_factor:.2f}")
        summary.append(f"VaR 95%: ${m.value_at_risk_95:,.2f}")

        summary.append("\n--- Trade Metrics ---")
        summary.append(
            f"Total Trades: {m.total_trades} "
            f"({m.winning_trades}W / {m.losing_trades}L / {m.breakeven_trades}BE)"
        )
        summary.append(f"Win Rate: {m.win_rate * 100:.2f}%")
        if m.breakeven_win_rate is not None:
            summary.append(f"Breakeven Win Rate: {m.breakeven_win_rate * 100:.2f}%")
        summary.append(f"Avg Win: ${m.avg_win:,.2f}")
        summary.append(f"Avg Loss: ${m.avg_loss:,.2f}")
        summary.append(f"Avg R:R: {m.avg_risk_reward:.2f}")
        summary.append(f"Profit Factor: {m.profit_factor:.2f}")
        summary.append(f"Expectancy: ${m.expectancy:,.2f}")
        summary.append(
            f"Streaks: {m.max_consecutive_wins} wins / {m.max_consecutive_losses} losses"
        )
        summary.append(f"Exposure: {m.exposure_percent:.2f}%")

        if self.session_breakdown.sessions:
            summary.append("\n--- Sessions ---")
            for stats in self.session_breakdown.sessions:
                summary.append(
                    f"{stats.label:<10} {stats.trades:>4} trades  "
                    f"win {stats.win_rate * 100:6.2f}%  P&L ${stats.total_pnl:,.2f}"
                )

        summary.append("=" * 60)

        return "\n".join(summary)


class BacktestMetricsEngine:
    """
    Calculate performance metrics for backtest results.

    This class handles:
    - Return metrics (total, CAGR, annualized)
    - Risk metrics (drawdown, Sharpe, Sortino, Calmar, VaR)
    - Trade statistics (win rate, profit factor, expectancy, streaks)
    - Session attribution
    """

    def __init__(
        self,
        settings: Optional[BacktestSettings] = None,
        classifier: Optional[SessionClassifier] = None
    ):
        """
        Initialize the engine.

        Args:
            settings: Annualization settings (defaults when None)
            classifier: Session classifier for the breakdown
        """
        self.settings = settings or BacktestSettings()
        self.classifier = classifier or SessionClassifier()

    def calculate_metrics(
        self,
        trades: Sequence[BacktestTrade],
        initial_capital: float,
        period_start: Optional[Timestamp] = None,
        period_end: Optional[Timestamp] = None,
        equity_curve: Optional[Sequence[EquityPoint]] = None
    ) -> BacktestMetrics:
        """
        Calculate all performance metrics.

        Args:
            trades: Closed trades from the simulation
            initial_capital: Starting balance
            period_start: Backtest start (defaults to the first entry)
            period_end: Backtest end (defaults to the last exit)
            equity_curve: Equity series; rebuilt from the trades when None

        Returns:
            BacktestMetrics

        Raises:
            InvalidInputError: For an empty trade list, non-positive capital
                or a period that ends before it starts
        """
        if not trades:
            raise InvalidInputError("At least one trade is required", field='trades', value=[])
        if initial_capital is None or not math.isfinite(initial_capital) or initial_capital <= 0:
            raise InvalidInputError(
                "initial_capital must be positive", field='initial_capital', value=initial_capital
            )

        start = to_utc(period_start) if period_start is not None else min(t.entry_time for t in trades)
        end = to_utc(period_end) if period_end is not None else max(t.exit_time for t in trades)
        if end < start:
            raise InvalidInputError("period_end precedes period_start", field='period_end', value=end)
        period_seconds = (end - start).total_seconds()
        period_days = period_seconds / SECONDS_PER_DAY

        # Returns
        total_return_amount = sum(t.pnl for t in trades)
        final_capital = initial_capital + total_return_amount
        total_return_percent = total_return_amount / initial_capital * 100
        cagr_percent = calculate_cagr_percent(initial_capital, final_capital, period_days)
        if period_days > 0:
            annualized_return_percent = total_return_percent * 365.0 / period_days
        else:
            annualized_return_percent = total_return_percent

        # Trade partition
        wins = [t for t in trades if t.pnl > 0]
        losses = [t for t in trades if t.pnl < 0]
        total_trades = len(trades)
        breakeven_trades = total_trades - len(wins) - len(losses)
        win_rate = len(wins) / total_trades

        gross_profit = sum(t.pnl for t in wins)
        gross_loss = abs(sum(t.pnl for t in losses))
        avg_win = gross_profit / len(wins) if wins else 0.0
        avg_loss = gross_loss / len(losses) if losses else 0.0
        avg_win_percent = sum(t.pnl_percent for t in wins) / len(wins) if wins else 0.0
        avg_loss_percent = abs(sum(t.pnl_percent for t in losses)) / len(losses) if losses else 0.0

        avg_risk_reward = avg_win / avg_loss if avg_win > 0 and avg_loss > 0 else 0.0
        expectancy = win_rate * avg_win - (1 - win_rate) * avg_loss

        risk_amounts = [t.risk_amount for t in trades if t.risk_amount]
        expectancy_per_r = (
            expectancy / (sum(risk_amounts) / len(risk_amounts)) if risk_amounts else None
        )
        breakeven_win_rate = 1 / (1 + avg_risk_reward) if avg_risk_reward > 0 else None
        kelly_percent = (
            max(0.0, (win_rate - (1 - win_rate) / avg_risk_reward) * 100)
            if avg_risk_reward > 0 else 0.0
        )

        holding_hours = [t.holding_hours for t in trades]
        avg_holding_hours = sum(holding_hours) / total_trades
        if period_seconds > 0:
            exposure_percent = sum(holding_hours) * 3600 / period_seconds * 100
        else:
            exposure_percent = 0.0

        # Drawdown
        if equity_curve:
            curve = EquityCurve(equity_curve)
        else:
            curve = EquityCurve(build_equity_curve(trades, initial_capital, start))
        max_drawdown_percent = curve.max_drawdown_percent
        max_drawdown_amount = curve.max_drawdown_amount

        if max_drawdown_percent < 0:
            calmar_ratio = cagr_percent / abs(max_drawdown_percent)
        else:
            calmar_ratio = cagr_percent

        if max_drawdown_amount > 0:
            recovery_factor = total_return_amount / max_drawdown_amount
        else:
            recovery_factor = math.inf if total_return_amount > 0 else 0.0

        # Risk-adjusted returns, chronological
        chronological = sorted(trades, key=lambda t: t.entry_time)
        returns = np.array([t.pnl_percent / 100 for t in chronological], dtype=float)
        days = self.settings.trading_days_per_year
        rf = self.settings.risk_free_rate
        pnls = [t.pnl for t in chronological]

        metrics = BacktestMetrics(
            initial_capital=initial_capital,
            final_capital=final_capital,
            total_return_amount=total_return_amount,
            total_return_percent=total_return_percent,
            cagr_percent=cagr_percent,
            annualized_return_percent=annualized_return_percent,
            period_days=period_days,
            total_trades=total_trades,
            winning_trades=len(wins),
            losing_trades=len(losses),
            breakeven_trades=breakeven_trades,
            win_rate=win_rate,
            gross_profit=gross_profit,
            gross_loss=gross_loss,
            profit_factor=profit_factor(gross_profit, gross_loss),
            avg_win=avg_win,
            avg_loss=avg_loss,
            avg_win_percent=avg_win_percent,
            avg_loss_percent=avg_loss_percent,
            largest_win=max((t.pnl for t in wins), default=0.0),
            largest_loss=abs(min((t.pnl for t in losses), default=0.0)),
            avg_risk_reward=avg_risk_reward,
            expectancy=expectancy,
            expectancy_per_r=expectancy_per_r,
            breakeven_win_rate=breakeven_win_rate,
            kelly_percent=kelly_percent,
            avg_holding_hours=avg_holding_hours,
            exposure_percent=exposure_percent,
            max_drawdown_percent=max_drawdown_percent,
            max_drawdown_amount=max_drawdown_amount,
            max_drawdown_duration=curve.max_drawdown_duration,
            current_drawdown_percent=curve.current_drawdown_percent,
            sharpe_ratio=calculate_sharpe_ratio(returns, days, rf),
            sortino_ratio=calculate_sortino_ratio(returns, days, rf),
            calmar_ratio=calmar_ratio,
            recovery_factor=recovery_factor,
            value_at_risk_95=calculate_value_at_risk(pnls, 0.95),
            value_at_risk_99=calculate_value_at_risk(pnls, 0.99),
            **calculate_streaks(trades),
        )

        logger.log_backtest_metrics({
            'total_trades': total_trades,
            'total_return_percent': round(total_return_percent, 4),
            'win_rate': round(win_rate, 4),
            'max_drawdown_percent': round(max_drawdown_percent, 4),
            'sharpe_ratio': round(metrics.sharpe_ratio, 4),
        })
        return metrics

    def calculate_session_breakdown(self, trades: Sequence[BacktestTrade]) -> SessionBreakdown:
        return calculate_session_breakdown(trades, self.classifier)

    def build_report(
        self,
        trades: Sequence[BacktestTrade],
        initial_capital: float,
        period_start: Optional[Timestamp] = None,
        period_end: Optional[Timestamp] = None,
        equity_curve: Optional[Sequence[EquityPoint]] = None
    ) -> BacktestReport:
        """
        Calculate metrics, equity curve and session breakdown together.

        The report's equity curve has drawdown recomputed from balances,
        whether it was supplied or rebuilt from the trades.
        """
        metrics = self.calculate_metrics(
            trades, initial_capital, period_start, period_end, equity_curve
        )
        if equity_curve:
            points = EquityCurve(equity_curve).points
        else:
            start = period_start if period_start is not None else min(t.entry_time for t in trades)
            points = build_equity_curve(trades, initial_capital, start)

        return BacktestReport(
            metrics=metrics,
            equity_curve=points,
            session_breakdown=self.calculate_session_breakdown(trades),
        )
