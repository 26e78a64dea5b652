"""Position Sizing module for the riskdesk engine.

This module converts account risk parameters and entry/stop prices into a
trade size, and derives the R-multiple profit ladder for that trade.
"""

import math
from typing import List, Optional, Union
from dataclasses import dataclass, field
from enum import Enum

from ..config.config_manager import PositionSizingSettings, RiskProfile
from ..exceptions import InvalidInputError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PositionType(str, Enum):
    """Position direction types."""

    LONG = "long"
    SHORT = "short"


@dataclass
class RTarget:
    """One rung of the R-multiple ladder."""

    multiple: float
    price: Optional[float]
    profit: float
    reachable: bool = True


@dataclass
class PositionSizeResult:
    """Result of position size calculation."""

    position_size: float
    position_value: float
    capital_deployment_percent: float
    stop_distance: float
    stop_distance_percent: float
    risk_amount: float
    potential_loss: float
    potential_profit_1r: float
    potential_profit_2r: float
    potential_profit_3r: float
    direction: PositionType
    leverage: float = 1.0
    r_targets: List[RTarget] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.warnings


@dataclass
class TakeProfitResult:
    """Result of take profit calculation."""

    take_profit_price: float
    risk_reward_ratio: float
    potential_profit: float
    potential_profit_percent: float
    stop_loss_distance: float


def _require_positive(name: str, value: float) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive number", field=name, value=value)


def infer_direction(entry_price: float, stop_loss_price: float) -> PositionType:
    """A stop below entry protects a long; above entry, a short."""
    return PositionType.LONG if stop_loss_price < entry_price else PositionType.SHORT


class PositionSizer:
    """Position sizing and risk management calculator.

    This class handles all position sizing calculations including:
    - Position size based on risk percentage and stop distance
    - R-multiple profit ladder
    - Risk:Reward based take profit calculations
    - Non-fatal validation warnings
    """

    def __init__(self, settings: Optional[PositionSizingSettings] = None):
        """Initialize the PositionSizer.

        Args:
            settings: Sizing validation settings (defaults when None)
        """
        self.settings = settings or PositionSizingSettings()

    def calculate_position_size(
        self,
        account_balance: float,
        risk_percent: float,
        entry_price: float,
        stop_loss_price: float,
        leverage: float = 1.0,
        risk_profile: Optional[RiskProfile] = None,
    ) -> PositionSizeResult:
        """Calculate position size based on risk parameters.

        Formula: Position Size = (Balance x Risk%) / |Entry - Stop| x Leverage

        The potential loss is always the risk amount, whatever the direction
        or leverage. Leverage scales the size, and deployment is measured
        against leveraged capital.

        Args:
            account_balance: Current account balance
            risk_percent: Percentage of account to risk, in (0, 100]
            entry_price: Entry price for the position
            stop_loss_price: Stop loss price, different from entry
            leverage: Leverage multiplier, at least 1
            risk_profile: Optional profile whose max position size is enforced

        Returns:
            PositionSizeResult with calculated position size and warnings

        Raises:
            InvalidInputError: If any input is outside its domain
        """
        _require_positive("account_balance", account_balance)
        _require_positive("entry_price", entry_price)
        _require_positive("stop_loss_price", stop_loss_price)
        _require_positive("risk_percent", risk_percent)
        if risk_percent > 100:
            raise InvalidInputError(
                "risk_percent must not exceed 100", field="risk_percent", value=risk_percent
            )
        if leverage is None or not math.isfinite(leverage) or leverage < 1:
            raise InvalidInputError(
                "leverage must be at least 1", field="leverage", value=leverage
            )

        stop_distance = abs(entry_price - stop_loss_price)
        if stop_distance == 0:
            raise InvalidInputError(
                "Stop loss cannot equal entry price",
                field="stop_loss_price",
                value=stop_loss_price,
            )

        risk_amount = self.get_risk_amount(account_balance, risk_percent)
        stop_distance_percent = stop_distance / entry_price * 100
        position_size = (risk_amount / stop_distance) * leverage
        position_value = position_size * entry_price
        leveraged_capital = account_balance * leverage
        capital_deployment_percent = position_value / leveraged_capital * 100
        direction = infer_direction(entry_price, stop_loss_price)

        warnings = []
        if stop_distance_percent < self.settings.min_stop_distance_percent:
            warnings.append(
                f"Stop distance {stop_distance_percent:.3f}% is below "
                f"{self.settings.min_stop_distance_percent}%; size is very sensitive to price noise"
            )
        if capital_deployment_percent > self.settings.max_capital_deployment_percent:
            warnings.append(
                f"Capital deployment {capital_deployment_percent:.1f}% exceeds "
                f"{self.settings.max_capital_deployment_percent}% of available capital"
            )
        if risk_profile is not None:
            max_value = leveraged_capital * risk_profile.max_position_size_percent / 100
            if position_value > max_value:
                warnings.append(
                    f"Position value {position_value:.2f} exceeds max position size "
                    f"{risk_profile.max_position_size_percent}% ({max_value:.2f})"
                )

        r_targets = self.calculate_r_targets(
            entry_price, stop_loss_price, risk_amount=risk_amount
        )

        result = PositionSizeResult(
            position_size=position_size,
            position_value=position_value,
            capital_deployment_percent=capital_deployment_percent,
            stop_distance=stop_distance,
            stop_distance_percent=stop_distance_percent,
            risk_amount=risk_amount,
            potential_loss=risk_amount,
            potential_profit_1r=risk_amount * 1,
            potential_profit_2r=risk_amount * 2,
            potential_profit_3r=risk_amount * 3,
            direction=direction,
            leverage=leverage,
            r_targets=r_targets,
            warnings=warnings,
        )

        logger.log_sizing(
            {
                "account_balance": account_balance,
                "risk_percent": risk_percent,
                "entry_price": entry_price,
                "stop_loss_price": stop_loss_price,
                "leverage": leverage,
                "position_size": position_size,
                "warnings": len(warnings),
            }
        )
        return result

    def calculate_r_targets(
        self,
        entry_price: float,
        stop_loss_price: float,
        multiples: Optional[List[float]] = None,
        risk_amount: float = 0.0,
    ) -> List[RTarget]:
        """Calculate take-profit prices at each R multiple.

        A short target at or below zero cannot be reached; it is reported
        with ``price=None`` and ``reachable=False``.

        Args:
            entry_price: Entry price for the position
            stop_loss_price: Stop loss price
            multiples: R multiples (defaults to the configured ladder)
            risk_amount: Money at risk, used for each rung's profit

        Returns:
            List of RTarget, one per multiple in ascending order
        """
        _require_positive("entry_price", entry_price)
        _require_positive("stop_loss_price", stop_loss_price)
        stop_distance = abs(entry_price - stop_loss_price)
        if stop_distance == 0:
            raise InvalidInputError(
                "Stop loss cannot equal entry price",
                field="stop_loss_price",
                value=stop_loss_price,
            )

        direction = infer_direction(entry_price, stop_loss_price)
        sign = 1 if direction == PositionType.LONG else -1

        targets = []
        for multiple in sorted(multiples or self.settings.r_multiples):
            price = entry_price + sign * stop_distance * multiple
            reachable = price > 0
            targets.append(
                RTarget(
                    multiple=multiple,
                    price=price if reachable else None,
                    profit=risk_amount * multiple,
                    reachable=reachable,
                )
            )
        return targets

    def calculate_take_profit(
        self,
        entry_price: float,
        stop_loss_price: float,
        risk_reward_ratio: float = 2.0,
        position_type: Optional[Union[PositionType, str]] = None,
    ) -> TakeProfitResult:
        """Calculate take profit price based on risk:reward ratio.

        Args:
            entry_price: Entry price for the position
            stop_loss_price: Stop loss price
            risk_reward_ratio: Risk:Reward ratio (default: 2.0 for 2:1)
            position_type: 'long' or 'short'; inferred from the stop when None

        Returns:
            TakeProfitResult with calculated take profit price and metadata

        Raises:
            InvalidInputError: If the stop equals entry, sits on the wrong
                side for ``position_type``, or a short target would be at
                or below zero
        """
        _require_positive("entry_price", entry_price)
        _require_positive("stop_loss_price", stop_loss_price)
        _require_positive("risk_reward_ratio", risk_reward_ratio)
        if entry_price == stop_loss_price:
            raise InvalidInputError(
                "Stop loss cannot equal entry price",
                field="stop_loss_price",
                value=stop_loss_price,
            )

        if position_type is None:
            position_type = infer_direction(entry_price, stop_loss_price)
        elif isinstance(position_type, str):
            try:
                position_type = PositionType(position_type.lower())
            except ValueError:
                raise InvalidInputError(
                    f"Unknown position type: {position_type}",
                    field="position_type",
                    value=position_type,
                )
        if position_type != infer_direction(entry_price, stop_loss_price):
            raise InvalidInputError(
                f"Stop loss {stop_loss_price} is on the wrong side of entry for a {position_type.value}",
                field="stop_loss_price",
                value=stop_loss_price,
            )

        stop_loss_distance = abs(entry_price - stop_loss_price)
        take_profit_distance = stop_loss_distance * risk_reward_ratio

        if position_type == PositionType.LONG:
            take_profit_price = entry_price + take_profit_distance
        else:
            take_profit_price = entry_price - take_profit_distance

        if take_profit_price <= 0:
            raise InvalidInputError(
                f"Take profit at {risk_reward_ratio}R would be at or below zero",
                field="risk_reward_ratio",
                value=risk_reward_ratio,
            )

        return TakeProfitResult(
            take_profit_price=take_profit_price,
            risk_reward_ratio=risk_reward_ratio,
            potential_profit=take_profit_distance,
            potential_profit_percent=(take_profit_distance / entry_price) * 100,
            stop_loss_distance=stop_loss_distance,
        )

    def get_risk_amount(self, account_balance: float, risk_percent: float) -> float:
        """Calculate the dollar risk amount.

        Args:
            account_balance: Current account balance
            risk_percent: Percentage of account to risk

        Returns:
            Dollar amount to risk
        """
        return account_balance * (risk_percent / 100)
