"""Unit tests for the correlation advisor."""

from datetime import date, timedelta

import numpy as np
import pytest

from riskdesk.config import CorrelationSettings, RiskProfile
from riskdesk.correlation import (
    AnalysisStatus,
    CorrelationAdvisor,
    CorrelationLevel,
    CorrelationSource,
    CorrelationTable,
    OpenPosition,
    calculate_correlation,
    extract_base_asset,
)
from riskdesk.exceptions import InvalidInputError

SUFFIXES = CorrelationSettings().quote_suffixes


def test_btc_eth_pair(advisor):
    """Test BTCUSDT and ETHUSDT give one very high pair at 0.85."""
    report = advisor.analyze(["BTCUSDT", "ETHUSDT"])

    assert report.status == AnalysisStatus.ANALYZED
    assert len(report.pairs) == 1
    pair = report.pairs[0]
    assert {pair.asset1, pair.asset2} == {"BTC", "ETH"}
    assert pair.correlation == pytest.approx(0.85)
    assert pair.level == CorrelationLevel.VERY_HIGH
    assert pair.is_warning is True
    assert pair.source == CorrelationSource.STATIC
    assert report.highest_pair is pair
    assert report.has_warnings


@pytest.mark.parametrize(
    "symbol, base",
    [
        ("BTCUSDT", "BTC"),
        ("btc/usdt", "BTC"),
        ("ETH-USD", "ETH"),
        ("SOL_USDC", "SOL"),
        ("ETHBTC", "ETH"),
        ("DOGEFDUSD", "DOGE"),
        ("XRPUSD", "XRP"),
        ("ABCDEF", "ABC"),
    ],
)
def test_extract_base_asset(symbol, base):
    assert extract_base_asset(symbol, SUFFIXES) == base


def test_extract_base_asset_empty():
    with pytest.raises(InvalidInputError):
        extract_base_asset("  ", SUFFIXES)


def test_table_is_symmetric_with_default():
    table = CorrelationTable({"BTC/ETH": 0.85}, default=0.3)

    assert table.get("BTC", "ETH") == table.get("ETH", "BTC") == 0.85
    assert table.get("btc", "BTC") == 1.0
    assert table.get("BTC", "PEPE") == 0.3
    assert ("eth", "btc") in table
    assert len(table) == 1


def test_unknown_pair_uses_default(advisor):
    report = advisor.analyze(["PEPEUSDT", "BONKUSDT"])

    assert report.pairs[0].correlation == pytest.approx(0.3)
    assert report.pairs[0].level == CorrelationLevel.LOW
    assert not report.has_warnings


@pytest.mark.parametrize(
    "value, level",
    [(0.8, CorrelationLevel.VERY_HIGH), (0.7, CorrelationLevel.HIGH),
     (0.5, CorrelationLevel.MODERATE), (0.49, CorrelationLevel.LOW), (-0.6, CorrelationLevel.LOW)],
)
def test_classify(advisor, value, level):
    assert advisor.classify(value) == level


def test_empty_and_single_are_distinguished(advisor):
    """Test empty results carry a status instead of being ambiguous."""
    assert advisor.analyze([]).status == AnalysisStatus.NO_POSITIONS
    single = advisor.analyze(["BTCUSDT"])
    assert single.status == AnalysisStatus.SINGLE_POSITION
    assert single.pairs == []


def test_pairs_sorted_and_deduplicated(advisor):
    """Test each asset pair appears once, highest correlation first."""
    positions = [
        OpenPosition("BTCUSDT", "long", 0.1, 50000),
        OpenPosition("BTC/USDC", "short", 0.1, 50010),
        OpenPosition("ETHUSDT"),
        "SOLUSDT",
    ]

    report = advisor.analyze(positions)
    keys = [tuple(sorted((p.asset1, p.asset2))) for p in report.pairs]

    assert len(keys) == len(set(keys)) == 3
    assert ("BTC", "BTC") not in keys
    correlations = [p.correlation for p in report.pairs]
    assert correlations == sorted(correlations, reverse=True)
    assert correlations[0] == pytest.approx(0.85)


def test_concentrated_pairs_use_profile(advisor):
    profile = RiskProfile(max_correlated_exposure=0.8)

    report = advisor.analyze(["BTCUSDT", "ETHUSDT", "XRPUSDT"], risk_profile=profile)

    assert [(p.asset1, p.asset2) for p in report.concentrated_pairs] == [("BTC", "ETH")]
    assert report.to_dict()["concentrated_pairs"] == 1


def test_empirical_correlation_used_with_enough_history(advisor):
    """Test aligned P&L history replaces the static value."""
    start = date(2024, 1, 1)
    btc = {start + timedelta(days=i): float(v) for i, v in enumerate([1, -2, 3, -1, 2, 0.5])}
    eth = {start + timedelta(days=i): float(-v) for i, v in enumerate([1, -2, 3, -1, 2, 0.5])}

    report = advisor.analyze(["BTCUSDT", "ETHUSDT"], history={"btc": btc, "eth": eth})

    pair = report.pairs[0]
    assert pair.source == CorrelationSource.EMPIRICAL
    assert pair.correlation == pytest.approx(-1.0)
    assert pair.is_warning is False


def test_empirical_falls_back_to_static_with_short_history(advisor):
    start = date(2024, 1, 1)
    short = {start + timedelta(days=i): float(i) for i in range(3)}

    report = advisor.analyze(["BTCUSDT", "ETHUSDT"], history={"BTC": short, "ETH": short})

    assert report.pairs[0].source == CorrelationSource.STATIC
    assert report.pairs[0].correlation == pytest.approx(0.85)


def test_empirical_uses_common_keys_only(advisor):
    series1 = {i: float(i) for i in range(10)}
    series2 = {i: float(2 * i) for i in range(5, 15)}

    assert advisor.empirical_correlation(series1, series2) == pytest.approx(1.0)


def test_calculate_correlation():
    """Test Pearson correlation, constant series and bad input."""
    x = np.array([1.0, 2.0, 3.0, 4.0])

    assert calculate_correlation(x, 2 * x + 1) == pytest.approx(1.0)
    assert calculate_correlation(x, -x) == pytest.approx(-1.0)
    assert calculate_correlation(x, np.ones(4)) == 0.0
    with pytest.raises(InvalidInputError):
        calculate_correlation(x, x[:3])
    with pytest.raises(InvalidInputError):
        calculate_correlation(x[:1], x[:1])


def test_report_to_dict(advisor):
    data = advisor.analyze(["BTCUSDT", "ETHUSDT"]).to_dict()

    assert data["status"] == "analyzed"
    assert data["pairs"][0]["level"] == "very_high"
    assert data["high_correlation_pairs"] == 1
