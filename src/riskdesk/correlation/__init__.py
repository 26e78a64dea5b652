"""Correlation analysis for open positions."""

from .correlation_advisor import (
    AnalysisStatus,
    CorrelationAdvisor,
    CorrelationLevel,
    CorrelationPair,
    CorrelationReport,
    CorrelationSource,
    CorrelationTable,
    OpenPosition,
    calculate_correlation,
    extract_base_asset,
)

__all__ = [
    'AnalysisStatus',
    'CorrelationAdvisor',
    'CorrelationLevel',
    'CorrelationPair',
    'CorrelationReport',
    'CorrelationSource',
    'CorrelationTable',
    'OpenPosition',
    'calculate_correlation',
    'extract_base_asset',
]
