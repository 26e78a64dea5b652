"""
Configuration Manager for the riskdesk engine.

This module provides centralized configuration management with support for:
- YAML and JSON configuration files
- Environment variable overrides (optionally read from a .env file)
- Pydantic-based validation
- Default values for optional parameters

Every engine component receives its settings section explicitly; nothing in
the engine reads configuration from module globals.
"""

import os
import json
import yaml
from pathlib import Path
from typing import List, Optional, Union, Dict, Any
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator, ValidationError
from enum import Enum

from ..exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Supported log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


SESSION_NAMES = ("sydney", "tokyo", "london", "new_york")


class RiskProfile(BaseModel):
    """
    A user's risk profile.

    Immutable snapshot: the engine reads it, never mutates it. Edit it by
    building a new profile (``profile.model_copy(update={...})``).
    """
    model_config = ConfigDict(frozen=True)

    risk_per_trade_percent: float = Field(
        default=2.0, gt=0, le=100,
        description="Risk per trade as percentage of account"
    )
    max_daily_loss_percent: float = Field(
        default=5.0, gt=0, le=100,
        description="Maximum daily loss as percentage of the day's starting balance"
    )
    max_weekly_drawdown_percent: float = Field(
        default=10.0, gt=0, le=100,
        description="Maximum weekly drawdown as percentage of the week's starting balance"
    )
    max_position_size_percent: float = Field(
        default=40.0, gt=0,
        description="Maximum position value as percentage of leveraged capital"
    )
    max_correlated_exposure: float = Field(
        default=0.75, ge=0, le=1.0,
        description="Correlation above which exposure is treated as concentrated"
    )
    max_concurrent_positions: int = Field(
        default=3, ge=1,
        description="Maximum number of simultaneously open positions"
    )


class PositionSizingSettings(BaseModel):
    """Position sizing validation settings."""
    min_stop_distance_percent: float = Field(
        default=0.1, ge=0,
        description="Stop distances below this percent of entry are flagged"
    )
    max_capital_deployment_percent: float = Field(
        default=100.0, gt=0,
        description="Capital deployment above this percent is flagged"
    )
    r_multiples: List[float] = Field(
        default=[1.0, 2.0, 3.0],
        description="R multiples used for profit targets"
    )

    @field_validator('r_multiples')
    @classmethod
    def validate_r_multiples(cls, v):
        if not v:
            raise ValueError("r_multiples cannot be empty")
        if any(multiple <= 0 for multiple in v):
            raise ValueError("r_multiples must all be positive")
        return sorted(v)


class RiskGateSettings(BaseModel):
    """Daily loss gate thresholds, in percent of the daily loss limit used."""
    warning_threshold: float = Field(
        default=70.0, gt=0,
        description="Loss used percent at which the gate warns"
    )
    danger_threshold: float = Field(
        default=90.0, gt=0,
        description="Loss used percent at which the warning becomes severe"
    )
    disabled_threshold: float = Field(
        default=100.0, gt=0,
        description="Loss used percent at which trading is disabled"
    )
    latch_within_day: bool = Field(
        default=True,
        description="Never lower the status inside one trading day"
    )

    @model_validator(mode='after')
    def validate_threshold_order(self):
        if not (self.warning_threshold <= self.danger_threshold <= self.disabled_threshold):
            raise ValueError(
                "Thresholds must be ordered: warning <= danger <= disabled"
            )
        return self


class CorrelationSettings(BaseModel):
    """Correlation advisor settings."""
    default_correlation: float = Field(
        default=0.3, ge=-1.0, le=1.0,
        description="Correlation assumed for pairs missing from the table"
    )
    very_high: float = Field(default=0.8, ge=-1.0, le=1.0)
    high: float = Field(default=0.7, ge=-1.0, le=1.0)
    moderate: float = Field(default=0.5, ge=-1.0, le=1.0)
    quote_suffixes: List[str] = Field(
        default=["USDT", "BUSD", "USDC", "TUSD", "FDUSD", "USD", "BTC", "ETH", "BNB"],
        description="Quote currencies stripped from symbols to get the base asset"
    )
    table: Dict[str, float] = Field(
        default={
            "BTC/ETH": 0.85,
            "BTC/SOL": 0.78,
            "BTC/BNB": 0.75,
            "BTC/XRP": 0.65,
            "BTC/ADA": 0.68,
            "BTC/DOGE": 0.62,
            "BTC/AVAX": 0.72,
            "BTC/LINK": 0.70,
            "ETH/SOL": 0.80,
            "ETH/BNB": 0.72,
            "ETH/XRP": 0.62,
            "ETH/ADA": 0.70,
            "ETH/AVAX": 0.76,
            "ETH/LINK": 0.74,
            "ETH/MATIC": 0.75,
            "SOL/AVAX": 0.74,
            "SOL/BNB": 0.66,
            "XRP/ADA": 0.64,
            "DOGE/SHIB": 0.78,
        },
        description="Symmetric base-asset correlation table keyed 'A/B'"
    )
    min_empirical_points: int = Field(
        default=5, ge=2,
        description="Common observations needed before empirical correlation is used"
    )

    @field_validator('quote_suffixes')
    @classmethod
    def validate_suffixes(cls, v):
        # Longest first so USDT wins over USD
        return sorted({s.upper() for s in v}, key=lambda s: (-len(s), s))

    @field_validator('table')
    @classmethod
    def validate_table(cls, v):
        for key, value in v.items():
            if key.count('/') != 1:
                raise ValueError(f"Correlation table key must look like 'BTC/ETH', got: {key}")
            if not -1.0 <= value <= 1.0:
                raise ValueError(f"Correlation for {key} must be within [-1, 1], got: {value}")
        return v

    @model_validator(mode='after')
    def validate_level_order(self):
        if not (self.moderate <= self.high <= self.very_high):
            raise ValueError("Levels must be ordered: moderate <= high <= very_high")
        return self


class SessionWindow(BaseModel):
    """One trading session window in UTC hours, end exclusive."""
    session: str
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=0, le=24)

    @field_validator('session')
    @classmethod
    def validate_session(cls, v):
        if v not in SESSION_NAMES:
            raise ValueError(f"session must be one of {list(SESSION_NAMES)}")
        return v

    @property
    def wraps_midnight(self) -> bool:
        return self.start_hour > self.end_hour

    def contains(self, hour: int) -> bool:
        if self.wraps_midnight:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour


class SessionSettings(BaseModel):
    """Session windows, checked in list order; the first match wins."""
    windows: List[SessionWindow] = Field(
        default_factory=lambda: [
            SessionWindow(session="sydney", start_hour=21, end_hour=6),
            SessionWindow(session="tokyo", start_hour=0, end_hour=9),
            SessionWindow(session="london", start_hour=7, end_hour=16),
            SessionWindow(session="new_york", start_hour=12, end_hour=21),
        ]
    )

    def window_for(self, session: str) -> Optional[SessionWindow]:
        for window in self.windows:
            if window.session == session:
                return window
        return None


class BacktestSettings(BaseModel):
    """Backtest metrics settings."""
    trading_days_per_year: int = Field(
        default=252, ge=1, le=366,
        description="Annualization factor for Sharpe and Sortino (252 or 365)"
    )
    risk_free_rate: float = Field(
        default=0.0, ge=0,
        description="Annual risk free rate as a fraction"
    )


class LoggingSettings(BaseModel):
    """Logging settings."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Root log level")
    console: bool = Field(default=True, description="Log to the console")
    colors: bool = Field(default=True, description="Colorize console output")
    file: bool = Field(default=False, description="Log to a rotating JSON file")
    directory: str = Field(default="logs", description="Directory for log files")
    filename: str = Field(default="riskdesk.log", description="Log file name")
    rotation: str = Field(default="time", description="'time' or 'size'")
    max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    backup_count: int = Field(default=30, ge=0)
    error_file: bool = Field(default=False, description="Write errors to a separate file")
    error_filename: str = Field(default="errors.log")
    categories: Optional[List[str]] = Field(
        default=None, description="Categories shown on the console; all when unset"
    )

    @field_validator('rotation')
    @classmethod
    def validate_rotation(cls, v):
        if v not in ("time", "size"):
            raise ValueError("rotation must be 'time' or 'size'")
        return v


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    risk_profile: RiskProfile = Field(default_factory=RiskProfile)
    position_sizing: PositionSizingSettings = Field(default_factory=PositionSizingSettings)
    risk_gate: RiskGateSettings = Field(default_factory=RiskGateSettings)
    correlation: CorrelationSettings = Field(default_factory=CorrelationSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    backtest: BacktestSettings = Field(default_factory=BacktestSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class ConfigManager:
    """
    Configuration manager for the engine.

    Handles loading configuration from YAML/JSON files with support for:
    - Environment variable overrides
    - Validation using Pydantic models
    - Default values for optional parameters
    - Saving configuration back to file

    Environment Variables:
        RISKDESK_RISK_PER_TRADE: Override risk per trade percent
        RISKDESK_MAX_DAILY_LOSS: Override max daily loss percent
        RISKDESK_MAX_POSITIONS: Override max concurrent positions
        RISKDESK_WARNING_THRESHOLD: Override gate warning threshold
        RISKDESK_TRADING_DAYS: Override annualization days
        RISKDESK_LOG_LEVEL: Override log level
    """

    # Environment variable mappings
    ENV_MAPPINGS = {
        'RISKDESK_RISK_PER_TRADE': ('risk_profile', 'risk_per_trade_percent'),
        'RISKDESK_MAX_DAILY_LOSS': ('risk_profile', 'max_daily_loss_percent'),
        'RISKDESK_MAX_WEEKLY_DRAWDOWN': ('risk_profile', 'max_weekly_drawdown_percent'),
        'RISKDESK_MAX_POSITION_SIZE': ('risk_profile', 'max_position_size_percent'),
        'RISKDESK_MAX_POSITIONS': ('risk_profile', 'max_concurrent_positions'),
        'RISKDESK_WARNING_THRESHOLD': ('risk_gate', 'warning_threshold'),
        'RISKDESK_DANGER_THRESHOLD': ('risk_gate', 'danger_threshold'),
        'RISKDESK_LATCH_WITHIN_DAY': ('risk_gate', 'latch_within_day'),
        'RISKDESK_TRADING_DAYS': ('backtest', 'trading_days_per_year'),
        'RISKDESK_LOG_LEVEL': ('logging', 'level'),
        'RISKDESK_LOG_FILE': ('logging', 'file'),
        'RISKDESK_LOG_DIR': ('logging', 'directory'),
    }

    BOOL_FIELDS = {
        ('risk_gate', 'latch_within_day'),
        ('logging', 'file'),
    }

    INT_FIELDS = {
        ('risk_profile', 'max_concurrent_positions'),
        ('backtest', 'trading_days_per_year'),
    }

    FLOAT_FIELDS = {
        ('risk_profile', 'risk_per_trade_percent'),
        ('risk_profile', 'max_daily_loss_percent'),
        ('risk_profile', 'max_weekly_drawdown_percent'),
        ('risk_profile', 'max_position_size_percent'),
        ('risk_gate', 'warning_threshold'),
        ('risk_gate', 'danger_threshold'),
    }

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        env_file: Optional[Union[str, Path]] = None
    ):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (YAML or JSON)
            env_file: Optional .env file loaded before overrides are applied
        """
        self._config_path: Optional[Path] = Path(config_path) if config_path else None
        self._env_file: Optional[Path] = Path(env_file) if env_file else None
        self._config: Optional[EngineConfig] = None
        self._raw_config: Dict[str, Any] = {}

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> EngineConfig:
        """
        Load configuration from file.

        Without any path, defaults plus environment overrides are used.

        Args:
            config_path: Path to configuration file. If not provided, uses the path
                        specified during initialization.

        Returns:
            EngineConfig: Validated configuration object

        Raises:
            ConfigurationError: If the file is missing, malformed or invalid
        """
        if config_path:
            self._config_path = Path(config_path)

        if self._config_path:
            if not self._config_path.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {self._config_path}",
                    path=str(self._config_path)
                )
            self._raw_config = self._load_file(self._config_path)
        else:
            self._raw_config = {}

        if self._env_file:
            load_dotenv(dotenv_path=self._env_file, override=False)

        self._apply_env_overrides()

        try:
            self._config = EngineConfig(**self._raw_config)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e}",
                path=str(self._config_path) if self._config_path else None,
                details={'errors': e.errors(include_url=False)}
            ) from e

        return self._config

    def _load_file(self, path: Path) -> Dict[str, Any]:
        """
        Load configuration from file based on extension.

        Args:
            path: Path to configuration file

        Returns:
            Dict containing configuration data

        Raises:
            ConfigurationError: If file format is not supported or cannot be parsed
        """
        suffix = path.suffix.lower()

        if suffix not in ['.yaml', '.yml', '.json']:
            raise ConfigurationError(
                f"Unsupported configuration format: {suffix}. "
                "Use .yaml, .yml, or .json",
                path=str(path)
            )

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}", path=str(path)) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}", path=str(path)) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                path=str(path)
            )
        return data

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        Environment variables take precedence over file configuration.
        """
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is not None:
                converted_value = self._convert_env_value(env_var, value, section, key)

                if not isinstance(self._raw_config.get(section), dict):
                    self._raw_config[section] = {}

                self._raw_config[section][key] = converted_value

    def _convert_env_value(
        self, env_var: str, value: str, section: str, key: str
    ) -> Union[str, bool, int, float]:
        """
        Convert environment variable string to appropriate type.

        Args:
            env_var: Environment variable name, used in error messages
            value: String value from environment variable
            section: Configuration section name
            key: Configuration key name

        Returns:
            Converted value with appropriate type
        """
        if (section, key) in self.BOOL_FIELDS:
            return value.lower() in ('true', '1', 'yes', 'on')

        if (section, key) in self.INT_FIELDS:
            try:
                return int(value)
            except ValueError:
                raise ConfigurationError(
                    f"Environment variable {env_var} must be an integer, got: {value}"
                )

        if (section, key) in self.FLOAT_FIELDS:
            try:
                return float(value)
            except ValueError:
                raise ConfigurationError(
                    f"Environment variable {env_var} must be a number, got: {value}"
                )

        if (section, key) == ('logging', 'level'):
            return value.upper()

        return value

    def save_config(
        self, config_path: Optional[Union[str, Path]] = None, format: str = 'yaml'
    ) -> None:
        """
        Save current configuration to file.

        Args:
            config_path: Path to save configuration. If not provided, uses the
                        path specified during initialization.
            format: Output format ('yaml' or 'json')

        Raises:
            ConfigurationError: If no configuration is loaded or format is invalid
        """
        if not self._config:
            raise ConfigurationError("No configuration loaded to save")

        save_path = Path(config_path) if config_path else self._config_path
        if not save_path:
            raise ConfigurationError("No save path specified")

        if format.lower() not in ['yaml', 'yml', 'json']:
            raise ConfigurationError(f"Unsupported format: {format}. Use 'yaml' or 'json'")

        save_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self._config.model_dump(mode='json')

        with open(save_path, 'w', encoding='utf-8') as f:
            if format.lower() == 'json':
                json.dump(config_dict, f, indent=2)
            else:
                yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

    def get_config(self) -> EngineConfig:
        """
        Get the current configuration.

        Returns:
            EngineConfig: Current configuration object

        Raises:
            ConfigurationError: If no configuration is loaded
        """
        if not self._config:
            raise ConfigurationError("No configuration loaded. Call load_config() first.")
        return self._config

    def get_risk_profile(self) -> RiskProfile:
        """Get the configured risk profile."""
        return self.get_config().risk_profile

    def get_gate_params(self) -> RiskGateSettings:
        """Get risk gate thresholds."""
        return self.get_config().risk_gate

    def get_backtest_params(self) -> BacktestSettings:
        """Get backtest metric parameters."""
        return self.get_config().backtest

    def reload(self) -> EngineConfig:
        """
        Reload configuration from file.

        Returns:
            EngineConfig: Reloaded configuration object
        """
        return self.load_config(self._config_path)

    @property
    def is_loaded(self) -> bool:
        """Check if configuration is loaded."""
        return self._config is not None

    @classmethod
    def create_default_config(cls, config_path: Union[str, Path]) -> EngineConfig:
        """
        Create a default configuration file.

        Args:
            config_path: Path where to save the default configuration

        Returns:
            EngineConfig: Default configuration object
        """
        config_path = Path(config_path)
        manager = cls()
        manager._config = EngineConfig()
        manager._config_path = config_path

        format = 'json' if config_path.suffix.lower() == '.json' else 'yaml'
        manager.save_config(format=format)

        return manager._config


# Convenience function for quick access
def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None
) -> EngineConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to configuration file (defaults only when None)
        env_file: Optional .env file with RISKDESK_ overrides

    Returns:
        EngineConfig: Validated configuration object
    """
    manager = ConfigManager(config_path, env_file=env_file)
    return manager.load_config()
