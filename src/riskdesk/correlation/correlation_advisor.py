"""Correlation advisor for open positions.

This module maps pairs of open positions to the historical co-movement of
their base assets and flags concentrated exposure. Correlations come from a
static, symmetric base-asset table, or from the Pearson correlation of two
daily P&L series when enough overlapping history exists.
"""

import logging
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from ..config.config_manager import CorrelationSettings, RiskProfile
from ..exceptions import InvalidInputError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CorrelationLevel(str, Enum):
    """Correlation strength classification."""
    VERY_HIGH = "very_high"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class CorrelationSource(str, Enum):
    """Where a pair's correlation came from."""
    STATIC = "static"
    EMPIRICAL = "empirical"


class AnalysisStatus(str, Enum):
    """Outcome of an analysis, so an empty result is never ambiguous."""
    NO_POSITIONS = "no_positions"
    SINGLE_POSITION = "single_position"
    ANALYZED = "analyzed"


@dataclass
class OpenPosition:
    """An open position as seen by the advisor."""
    symbol: str
    direction: Optional[str] = None
    size: Optional[float] = None
    entry_price: Optional[float] = None


@dataclass
class CorrelationPair:
    """Correlation between two open positions' base assets."""
    asset1: str
    asset2: str
    symbol1: str
    symbol2: str
    correlation: float
    level: CorrelationLevel
    is_warning: bool
    source: CorrelationSource = CorrelationSource.STATIC

    def to_dict(self) -> Dict[str, object]:
        return {
            'asset1': self.asset1,
            'asset2': self.asset2,
            'symbol1': self.symbol1,
            'symbol2': self.symbol2,
            'correlation': self.correlation,
            'level': self.level.value,
            'is_warning': self.is_warning,
            'source': self.source.value,
        }


@dataclass
class CorrelationReport:
    """Result of analyzing a set of open positions."""
    status: AnalysisStatus
    pairs: List[CorrelationPair] = field(default_factory=list)
    concentrated_pairs: List[CorrelationPair] = field(default_factory=list)

    @property
    def high_correlation_pairs(self) -> List[CorrelationPair]:
        return [pair for pair in self.pairs if pair.is_warning]

    @property
    def highest_pair(self) -> Optional[CorrelationPair]:
        return self.pairs[0] if self.pairs else None

    @property
    def has_warnings(self) -> bool:
        return bool(self.high_correlation_pairs)

    def to_dict(self) -> Dict[str, object]:
        return {
            'status': self.status.value,
            'pairs': [pair.to_dict() for pair in self.pairs],
            'high_correlation_pairs': len(self.high_correlation_pairs),
            'concentrated_pairs': len(self.concentrated_pairs),
        }


def extract_base_asset(symbol: str, quote_suffixes: Sequence[str]) -> str:
    """Strip the quote currency from a trading pair symbol.

    Handles ``BTCUSDT``, ``BTC/USDT``, ``BTC-USDT`` and ``BTC_USDT``.
    Suffixes are tried in the given order, so pass them longest first.
    Falls back to the first three characters when nothing matches.

    Args:
        symbol: Trading pair symbol
        quote_suffixes: Known quote currencies

    Returns:
        Upper-case base asset
    """
    if not symbol or not symbol.strip():
        raise InvalidInputError("Symbol cannot be empty", field='symbol', value=symbol)

    normalized = symbol.strip().upper()
    for separator in ('/', '-', '_', ':'):
        if separator in normalized:
            base = normalized.split(separator, 1)[0]
            if base:
                return base

    for suffix in quote_suffixes:
        if normalized.endswith(suffix) and len(normalized) > len(suffix):
            return normalized[:-len(suffix)]

    return normalized[:3]


class CorrelationTable:
    """Symmetric base-asset correlation lookup with a default for unknown pairs."""

    def __init__(self, table: Mapping[str, float], default: float = 0.3):
        self.default = default
        self._table: Dict[Tuple[str, str], float] = {}
        for key, value in table.items():
            first, second = (part.strip().upper() for part in key.split('/'))
            self._table[self._key(first, second)] = value

    @staticmethod
    def _key(asset1: str, asset2: str) -> Tuple[str, str]:
        return (asset1, asset2) if asset1 <= asset2 else (asset2, asset1)

    @classmethod
    def from_settings(cls, settings: CorrelationSettings) -> 'CorrelationTable':
        return cls(settings.table, default=settings.default_correlation)

    def get(self, asset1: str, asset2: str) -> float:
        asset1, asset2 = asset1.upper(), asset2.upper()
        if asset1 == asset2:
            return 1.0
        return self._table.get(self._key(asset1, asset2), self.default)

    def __contains__(self, pair: Tuple[str, str]) -> bool:
        return self._key(pair[0].upper(), pair[1].upper()) in self._table

    def __len__(self) -> int:
        return len(self._table)


def calculate_correlation(series1: np.ndarray, series2: np.ndarray) -> float:
    """Calculate Pearson correlation coefficient between two series.

    Formula: covariance(X, Y) / (std_dev(X) * std_dev(Y))

    Args:
        series1: First series
        series2: Second series

    Returns:
        Pearson correlation coefficient (-1 to 1); 0.0 when either
        series is constant

    Raises:
        InvalidInputError: If arrays have different lengths or insufficient data
    """
    series1 = np.asarray(series1, dtype=float)
    series2 = np.asarray(series2, dtype=float)

    if len(series1) != len(series2):
        raise InvalidInputError(
            f"Series must have same length: {len(series1)} vs {len(series2)}"
        )

    mask = ~(np.isnan(series1) | np.isnan(series2))
    clean1 = series1[mask]
    clean2 = series2[mask]

    if len(clean1) < 2:
        raise InvalidInputError("Need at least 2 valid data points for correlation")

    dev1 = clean1 - np.mean(clean1)
    dev2 = clean2 - np.mean(clean2)

    std1 = np.sqrt(np.sum(dev1 ** 2))
    std2 = np.sqrt(np.sum(dev2 ** 2))

    if std1 == 0 or std2 == 0:
        logger.debug("Zero variance series, correlation defined as 0")
        return 0.0

    correlation = np.sum(dev1 * dev2) / (std1 * std2)

    # Clamp to [-1, 1] to handle floating point errors
    return float(np.clip(correlation, -1.0, 1.0))


class CorrelationAdvisor:
    """Flags correlated exposure among open positions.

    Example:
        advisor = CorrelationAdvisor(settings)
        report = advisor.analyze(['BTCUSDT', 'ETHUSDT'])
        report.highest_pair.correlation   # 0.85
    """

    def __init__(
        self,
        settings: Optional[CorrelationSettings] = None,
        table: Optional[CorrelationTable] = None
    ):
        """Initialize the advisor.

        Args:
            settings: Correlation settings (defaults when None)
            table: Correlation table; built from settings when None
        """
        self.settings = settings or CorrelationSettings()
        self.table = table or CorrelationTable.from_settings(self.settings)

    def base_asset(self, symbol: str) -> str:
        return extract_base_asset(symbol, self.settings.quote_suffixes)

    def classify(self, correlation: float) -> CorrelationLevel:
        """Classify a correlation value against the configured levels."""
        if correlation >= self.settings.very_high:
            return CorrelationLevel.VERY_HIGH
        if correlation >= self.settings.high:
            return CorrelationLevel.HIGH
        if correlation >= self.settings.moderate:
            return CorrelationLevel.MODERATE
        return CorrelationLevel.LOW

    def empirical_correlation(
        self,
        series1: Mapping[Hashable, float],
        series2: Mapping[Hashable, float]
    ) -> Optional[float]:
        """Pearson correlation of two keyed series over their common keys.

        Args:
            series1: Observations keyed by period (e.g. date -> daily P&L)
            series2: Observations keyed by the same periods

        Returns:
            Correlation, or None when fewer than ``min_empirical_points``
            periods overlap
        """
        common = sorted(set(series1) & set(series2))
        if len(common) < self.settings.min_empirical_points:
            return None
        return calculate_correlation(
            np.array([series1[key] for key in common], dtype=float),
            np.array([series2[key] for key in common], dtype=float)
        )

    def pair_correlation(
        self,
        asset1: str,
        asset2: str,
        history: Optional[Mapping[str, Mapping[Hashable, float]]] = None
    ) -> Tuple[float, CorrelationSource]:
        """Correlation for two base assets, empirical when history allows."""
        if history and asset1 in history and asset2 in history:
            empirical = self.empirical_correlation(history[asset1], history[asset2])
            if empirical is not None:
                return empirical, CorrelationSource.EMPIRICAL
        return self.table.get(asset1, asset2), CorrelationSource.STATIC

    def analyze(
        self,
        positions: Sequence[Union[OpenPosition, str]],
        history: Optional[Mapping[str, Mapping[Hashable, float]]] = None,
        risk_profile: Optional[RiskProfile] = None
    ) -> CorrelationReport:
        """Analyze correlation among open positions.

        Each unordered pair of distinct base assets appears once, sorted by
        correlation, highest first. Positions sharing a base asset are not
        paired with each other.

        Args:
            positions: Open positions or bare symbols
            history: Optional per-base-asset daily P&L series for empirical
                     correlation
            risk_profile: When given, pairs above its
                          ``max_correlated_exposure`` are reported as concentrated

        Returns:
            CorrelationReport
        """
        symbols = [p.symbol if isinstance(p, OpenPosition) else p for p in positions]

        if not symbols:
            return CorrelationReport(status=AnalysisStatus.NO_POSITIONS)
        if len(symbols) == 1:
            return CorrelationReport(status=AnalysisStatus.SINGLE_POSITION)

        normalized_history = None
        if history:
            normalized_history = {asset.upper(): series for asset, series in history.items()}

        assets = [(self.base_asset(symbol), symbol) for symbol in symbols]
        seen = set()
        pairs = []
        for i, (asset1, symbol1) in enumerate(assets):
            for asset2, symbol2 in assets[i + 1:]:
                if asset1 == asset2:
                    continue
                key = tuple(sorted((asset1, asset2)))
                if key in seen:
                    continue
                seen.add(key)

                correlation, source = self.pair_correlation(asset1, asset2, normalized_history)
                level = self.classify(correlation)
                pairs.append(CorrelationPair(
                    asset1=asset1,
                    asset2=asset2,
                    symbol1=symbol1,
                    symbol2=symbol2,
                    correlation=correlation,
                    level=level,
                    is_warning=correlation >= self.settings.high,
                    source=source
                ))

        pairs.sort(key=lambda pair: pair.correlation, reverse=True)

        concentrated = []
        if risk_profile is not None:
            concentrated = [
                pair for pair in pairs
                if pair.correlation > risk_profile.max_correlated_exposure
            ]

        report = CorrelationReport(
            status=AnalysisStatus.ANALYZED,
            pairs=pairs,
            concentrated_pairs=concentrated
        )

        logger.log_correlation(report.to_dict())
        if report.has_warnings:
            logger.log(
                logging.WARNING,
                f"{len(report.high_correlation_pairs)} highly correlated position pair(s), "
                f"highest {report.highest_pair.asset1}/{report.highest_pair.asset2} "
                f"at {report.highest_pair.correlation:.2f}"
            )
        return report
