"""Shared fixtures for riskdesk tests."""

from datetime import date

import pytest

from riskdesk.backtest import BacktestMetricsEngine
from riskdesk.config import (
    BacktestSettings,
    CorrelationSettings,
    PositionSizingSettings,
    RiskGateSettings,
    RiskProfile,
    SessionSettings,
)
from riskdesk.correlation import CorrelationAdvisor
from riskdesk.risk import PositionSizer, RiskEventLedger, RiskGate
from riskdesk.sessions import SessionClassifier
from riskdesk.utils import shutdown_logging

from tests.factories import make_trade, utc


@pytest.fixture
def risk_profile():
    return RiskProfile()


@pytest.fixture
def sizer():
    return PositionSizer(PositionSizingSettings())


@pytest.fixture
def gate_settings():
    return RiskGateSettings()


@pytest.fixture
def ledger():
    return RiskEventLedger()


@pytest.fixture
def recorded_events():
    return []


@pytest.fixture
def gate(gate_settings, ledger, recorded_events):
    return RiskGate(gate_settings, ledger=ledger, event_sink=recorded_events.append)


@pytest.fixture
def trading_day():
    return date(2024, 3, 1)


@pytest.fixture
def advisor():
    return CorrelationAdvisor(CorrelationSettings())


@pytest.fixture
def classifier():
    return SessionClassifier(SessionSettings())


@pytest.fixture
def engine(classifier):
    return BacktestMetricsEngine(BacktestSettings(), classifier)


@pytest.fixture
def sample_trades():
    """Three trades: one win of 100 then two losses of 50, a day apart."""
    return [
        make_trade(100.0, entry_time=utc(2024, 1, 1, 13), pnl_percent=1.0),
        make_trade(-50.0, entry_time=utc(2024, 1, 2, 8), pnl_percent=-0.5),
        make_trade(-50.0, entry_time=utc(2024, 1, 3, 22), pnl_percent=-0.5),
    ]


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    shutdown_logging()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        'RISKDESK_RISK_PER_TRADE', 'RISKDESK_MAX_DAILY_LOSS', 'RISKDESK_MAX_WEEKLY_DRAWDOWN',
        'RISKDESK_MAX_POSITION_SIZE', 'RISKDESK_MAX_POSITIONS', 'RISKDESK_WARNING_THRESHOLD',
        'RISKDESK_DANGER_THRESHOLD', 'RISKDESK_LATCH_WITHIN_DAY', 'RISKDESK_TRADING_DAYS',
        'RISKDESK_LOG_LEVEL', 'RISKDESK_LOG_FILE', 'RISKDESK_LOG_DIR',
    ):
        monkeypatch.delenv(name, raising=False)
