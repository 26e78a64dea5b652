"""Unit tests for equity curve and drawdown."""

import pytest

from riskdesk.backtest import EquityCurve, EquityPoint, build_equity_curve, calculate_drawdown_series
from riskdesk.exceptions import InvalidInputError
from tests.factories import make_trade, utc


def test_drawdown_series():
    """Test drawdown is measured from the running peak."""
    drawdowns = calculate_drawdown_series([100, 120, 90, 130, 117])

    assert drawdowns == pytest.approx([0, 0, -25, 0, -10])


def test_drawdown_series_requires_positive_start():
    with pytest.raises(InvalidInputError):
        calculate_drawdown_series([0, 10])
    assert calculate_drawdown_series([]) == []


def test_build_equity_curve_orders_by_exit(sample_trades):
    """Test one opening point then one point per trade in exit order."""
    points = build_equity_curve(list(reversed(sample_trades)), 10000)

    assert len(points) == 4
    assert points[0].timestamp == utc(2024, 1, 1, 13)
    assert [p.balance for p in points] == pytest.approx([10000, 10100, 10050, 10000])
    assert [p.timestamp for p in points[1:]] == sorted(t.exit_time for t in sample_trades)


def test_build_equity_curve_with_period_start(sample_trades):
    points = build_equity_curve(sample_trades, 10000, period_start="2023-12-31T00:00:00Z")

    assert points[0].timestamp == utc(2023, 12, 31)


def test_build_equity_curve_empty_needs_start():
    with pytest.raises(InvalidInputError):
        build_equity_curve([], 10000)
    assert len(build_equity_curve([], 10000, period_start=utc(2024, 1, 1))) == 1


def test_build_equity_curve_rejects_non_positive_capital(sample_trades):
    with pytest.raises(InvalidInputError):
        build_equity_curve(sample_trades, 0)


def test_curve_statistics(sample_trades):
    curve = EquityCurve.from_trades(sample_trades, 10000)

    assert curve.max_drawdown_percent == pytest.approx(-100 / 10100 * 100)
    assert curve.max_drawdown_amount == pytest.approx(100)
    assert curve.max_drawdown_duration == 2
    assert curve.current_drawdown_percent == pytest.approx(curve.max_drawdown_percent)
    assert not curve.is_non_decreasing()
    assert len(curve) == 4


def test_non_decreasing_curve_has_zero_drawdown():
    """Test max drawdown is zero exactly when equity never falls."""
    trades = [make_trade(pnl, entry_time=utc(2024, 1, day, 10)) for day, pnl in enumerate([5, 0, 20, 1], 1)]

    curve = EquityCurve.from_trades(trades, 1000)

    assert curve.is_non_decreasing()
    assert curve.max_drawdown_percent == 0
    assert curve.max_drawdown_amount == 0
    assert curve.max_drawdown_duration == 0


def test_drawdown_never_positive():
    """Test every drawdown value is at or below zero."""
    balances = [1000, 950, 1100, 1099.5, 1300, 200, 250, 1400]
    curve = EquityCurve([EquityPoint(utc(2024, 1, i + 1), b) for i, b in enumerate(balances)])

    assert all(dd <= 0 for dd in curve.drawdowns)
    assert curve.max_drawdown_percent <= 0
    assert curve.max_drawdown_percent == pytest.approx(-1100 / 1300 * 100)


def test_points_recompute_drawdown():
    """Test supplied drawdown values are replaced by recomputed ones."""
    curve = EquityCurve([
        EquityPoint(utc(2024, 1, 1), 100, drawdown_percent=-99),
        EquityPoint(utc(2024, 1, 2), 80, drawdown_percent=0),
    ])

    assert [p.drawdown_percent for p in curve.points] == pytest.approx([0, -20])


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), None])
def test_drawdown_series_rejects_non_finite_balance(bad):
    """Test a non-finite balance fails instead of reading as no drawdown."""
    with pytest.raises(InvalidInputError) as exc:
        calculate_drawdown_series([10000, bad, 9000])

    assert exc.value.details == {'index': 1}


def test_equity_curve_rejects_nan_point():
    points = [
        EquityPoint(timestamp=utc(2024, 1, 1), balance=10000),
        EquityPoint(timestamp=utc(2024, 1, 2), balance=float("nan")),
    ]

    with pytest.raises(InvalidInputError):
        EquityCurve(points)
