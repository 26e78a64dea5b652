"""
Session attribution of backtest trades.

Trades are grouped by the session of their entry time; sessions with no
trades are left out, and the rest are sorted by total P&L, best first.
"""

import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ..sessions.session_classifier import SessionClassifier, TradingSession
from .models import BacktestTrade, SessionBreakdown, SessionStats


def profit_factor(gross_profit: float, gross_loss: float) -> float:
    """
    Gross profit over gross loss.

    ``math.inf`` when there is profit and no loss, 0.0 when both are zero.
    """
    if gross_loss > 0:
        return gross_profit / gross_loss
    return math.inf if gross_profit > 0 else 0.0


def calculate_session_stats(session: TradingSession, trades: Sequence[BacktestTrade]) -> SessionStats:
    wins = [t.pnl for t in trades if t.pnl > 0]
    losses = [t.pnl for t in trades if t.pnl < 0]
    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))
    total_pnl = sum(t.pnl for t in trades)

    return SessionStats(
        session=session,
        trades=len(trades),
        wins=len(wins),
        losses=len(losses),
        breakeven=len(trades) - len(wins) - len(losses),
        win_rate=len(wins) / len(trades) if trades else 0.0,
        total_pnl=total_pnl,
        avg_pnl=total_pnl / len(trades) if trades else 0.0,
        avg_win=gross_profit / len(wins) if wins else 0.0,
        avg_loss=gross_loss / len(losses) if losses else 0.0,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        profit_factor=profit_factor(gross_profit, gross_loss),
    )


def calculate_session_breakdown(
    trades: Sequence[BacktestTrade],
    classifier: Optional[SessionClassifier] = None
) -> SessionBreakdown:
    """
    Group trades by entry session and aggregate each group.

    Args:
        trades: Closed trades
        classifier: Session classifier (default windows when None)

    Returns:
        SessionBreakdown whose trade counts sum to ``len(trades)``
    """
    classifier = classifier or SessionClassifier()

    grouped: Dict[TradingSession, List[BacktestTrade]] = defaultdict(list)
    for trade in trades:
        grouped[classifier.classify(trade.entry_time)].append(trade)

    stats = [
        calculate_session_stats(session, session_trades)
        for session, session_trades in grouped.items()
    ]
    stats.sort(key=lambda s: s.total_pnl, reverse=True)
    return SessionBreakdown(sessions=stats)
