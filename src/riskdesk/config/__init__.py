"""
Configuration package for the riskdesk engine.

This package provides configuration management with support for YAML/JSON files,
environment variable overrides, and Pydantic-based validation.
"""

from .config_manager import (
    ConfigManager,
    EngineConfig,
    RiskProfile,
    PositionSizingSettings,
    RiskGateSettings,
    CorrelationSettings,
    SessionSettings,
    SessionWindow,
    BacktestSettings,
    LoggingSettings,
    LogLevel,
    load_config,
)

__all__ = [
    'ConfigManager',
    'EngineConfig',
    'RiskProfile',
    'PositionSizingSettings',
    'RiskGateSettings',
    'CorrelationSettings',
    'SessionSettings',
    'SessionWindow',
    'BacktestSettings',
    'LoggingSettings',
    'LogLevel',
    'load_config',
]
