"""
riskdesk - risk-gated position sizing and backtest analytics.

Components:
- PositionSizer: risk amount and stop distance to position size
- RiskGate: daily loss limit state machine with once-per-day events
- CorrelationAdvisor: correlated exposure among open positions
- SessionClassifier: timestamp to trading session
- BacktestMetricsEngine: performance metrics from simulated trades
"""

from .exceptions import ConfigurationError, InvalidInputError, RiskDeskError
from .config import EngineConfig, RiskProfile, load_config
from .risk import PositionSizer, RiskGate, evaluate_daily_risk
from .correlation import CorrelationAdvisor
from .sessions import SessionClassifier, TradingSession
from .backtest import BacktestMetricsEngine, BacktestTrade

__version__ = "1.0.0"

__all__ = [
    'ConfigurationError',
    'InvalidInputError',
    'RiskDeskError',
    'EngineConfig',
    'RiskProfile',
    'load_config',
    'PositionSizer',
    'RiskGate',
    'evaluate_daily_risk',
    'CorrelationAdvisor',
    'SessionClassifier',
    'TradingSession',
    'BacktestMetricsEngine',
    'BacktestTrade',
    '__version__',
]
