"""
Backtest analytics package.

Aggregates the output of an external backtest simulation (closed trades and
optionally an equity series) into performance metrics, an equity curve with
drawdowns, and a per-session breakdown.
"""

from .models import (
    BacktestMetrics,
    BacktestTrade,
    EquityPoint,
    ExitType,
    SessionBreakdown,
    SessionStats,
    TradeDirection,
    TradeOutcome,
)
from .equity_curve import EquityCurve, build_equity_curve, calculate_drawdown_series
from .session_breakdown import calculate_session_breakdown, calculate_session_stats, profit_factor
from .performance import (
    BacktestMetricsEngine,
    BacktestReport,
    calculate_cagr_percent,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_streaks,
    calculate_value_at_risk,
)
from .trade_loader import (
    BacktestDataset,
    export_report_json,
    export_trades_csv,
    json_safe,
    load_backtest_file,
    load_trades,
)

__all__ = [
    'BacktestMetrics',
    'BacktestTrade',
    'EquityPoint',
    'ExitType',
    'SessionBreakdown',
    'SessionStats',
    'TradeDirection',
    'TradeOutcome',
    'EquityCurve',
    'build_equity_curve',
    'calculate_drawdown_series',
    'calculate_session_breakdown',
    'calculate_session_stats',
    'profit_factor',
    'BacktestMetricsEngine',
    'BacktestReport',
    'calculate_cagr_percent',
    'calculate_sharpe_ratio',
    'calculate_sortino_ratio',
    'calculate_streaks',
    'calculate_value_at_risk',
    'BacktestDataset',
    'export_report_json',
    'export_trades_csv',
    'load_backtest_file',
    'load_trades',
    'json_safe',
]
