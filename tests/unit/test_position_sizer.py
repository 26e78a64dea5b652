"""Unit tests for position sizing."""

import pytest

from riskdesk.config import PositionSizingSettings, RiskProfile
from riskdesk.exceptions import InvalidInputError
from riskdesk.risk import PositionSizer, PositionType, infer_direction


def test_basic_long_sizing(sizer):
    """Test 10000 balance, 2% risk, entry 50000, stop 49000."""
    result = sizer.calculate_position_size(10000, 2, 50000, 49000)

    assert result.potential_loss == pytest.approx(200.0)
    assert result.position_size == pytest.approx(0.2)
    assert result.stop_distance == pytest.approx(1000.0)
    assert result.stop_distance_percent == pytest.approx(2.0)
    assert result.position_value == pytest.approx(10000.0)
    assert result.capital_deployment_percent == pytest.approx(100.0)
    assert result.direction == PositionType.LONG
    assert result.potential_profit_1r == pytest.approx(200.0)
    assert result.potential_profit_2r == pytest.approx(400.0)
    assert result.potential_profit_3r == pytest.approx(600.0)


def test_short_sizing_has_same_loss(sizer):
    """Test a stop above entry sizes a short with the same risk."""
    result = sizer.calculate_position_size(10000, 2, 50000, 51000)

    assert result.direction == PositionType.SHORT
    assert result.potential_loss == pytest.approx(200.0)
    assert result.position_size == pytest.approx(0.2)


@pytest.mark.parametrize("leverage", [1.0, 2.0, 5.0, 20.0])
def test_potential_loss_independent_of_leverage(sizer, leverage):
    """Test potential loss equals balance x risk% whatever the leverage."""
    result = sizer.calculate_position_size(25000, 1.5, 3000, 2950, leverage=leverage)

    assert result.potential_loss == pytest.approx(25000 * 0.015)
    assert result.position_size == pytest.approx(375 / 50 * leverage)


def test_leverage_deployment_measured_against_leveraged_capital(sizer):
    """Test deployment percent does not grow with leverage."""
    plain = sizer.calculate_position_size(10000, 2, 50000, 49000)
    levered = sizer.calculate_position_size(10000, 2, 50000, 49000, leverage=5)

    assert levered.position_value == pytest.approx(plain.position_value * 5)
    assert levered.capital_deployment_percent == pytest.approx(plain.capital_deployment_percent)


def test_stop_equal_to_entry_rejected(sizer):
    """Test zero stop distance raises instead of dividing by zero."""
    with pytest.raises(InvalidInputError) as exc:
        sizer.calculate_position_size(10000, 2, 50000, 50000)

    assert exc.value.field == "stop_loss_price"


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"account_balance": 0}, "account_balance"),
        ({"account_balance": -100}, "account_balance"),
        ({"entry_price": 0}, "entry_price"),
        ({"stop_loss_price": -1}, "stop_loss_price"),
        ({"risk_percent": 0}, "risk_percent"),
        ({"risk_percent": 150}, "risk_percent"),
        ({"leverage": 0.5}, "leverage"),
        ({"account_balance": float("nan")}, "account_balance"),
    ],
)
def test_invalid_inputs_rejected(sizer, kwargs, field):
    """Test every out-of-domain input raises InvalidInputError."""
    params = {
        "account_balance": 10000,
        "risk_percent": 2,
        "entry_price": 50000,
        "stop_loss_price": 49000,
    }
    params.update(kwargs)

    with pytest.raises(InvalidInputError) as exc:
        sizer.calculate_position_size(**params)

    assert exc.value.field == field
    assert exc.value.error_code == "INVALID_INPUT"


def test_tight_stop_warning(sizer):
    """Test a stop distance under 0.1% of entry is flagged, not rejected."""
    result = sizer.calculate_position_size(10000, 1, 50000, 49990)

    assert result.stop_distance_percent == pytest.approx(0.02)
    assert any("Stop distance" in warning for warning in result.warnings)
    assert not result.is_valid


def test_over_deployment_warning(sizer):
    """Test deployment above 100% of capital is flagged."""
    result = sizer.calculate_position_size(10000, 5, 100, 99)

    assert result.capital_deployment_percent > 100
    assert any("Capital deployment" in warning for warning in result.warnings)


def test_max_position_size_warning():
    """Test a profile's max position size produces a warning."""
    sizer = PositionSizer(PositionSizingSettings())
    profile = RiskProfile(max_position_size_percent=40.0)

    result = sizer.calculate_position_size(10000, 2, 50000, 49000, risk_profile=profile)

    assert any("max position size" in warning for warning in result.warnings)


def test_clean_trade_has_no_warnings(sizer, risk_profile):
    """Test a moderate trade passes without warnings."""
    result = sizer.calculate_position_size(10000, 1, 100, 95, risk_profile=risk_profile)

    assert result.warnings == []
    assert result.is_valid


def test_r_targets_long(sizer):
    """Test the R ladder above entry for a long."""
    targets = sizer.calculate_r_targets(100, 95, risk_amount=50)

    assert [t.multiple for t in targets] == [1.0, 2.0, 3.0]
    assert [t.price for t in targets] == pytest.approx([105, 110, 115])
    assert [t.profit for t in targets] == pytest.approx([50, 100, 150])
    assert all(t.reachable for t in targets)


def test_r_targets_short_never_non_positive(sizer):
    """Test short targets that would fall to zero or below are unreachable."""
    targets = sizer.calculate_r_targets(10, 14, multiples=[1, 2, 3])

    assert targets[0].price == pytest.approx(6)
    assert targets[1].price == pytest.approx(2)
    assert targets[2].price is None
    assert targets[2].reachable is False


def test_custom_r_multiples_from_settings():
    """Test the ladder follows configured multiples."""
    sizer = PositionSizer(PositionSizingSettings(r_multiples=[3, 1.5]))

    targets = sizer.calculate_r_targets(100, 90)

    assert [t.multiple for t in targets] == [1.5, 3]
    assert [t.price for t in targets] == pytest.approx([115, 130])


def test_take_profit_long_and_short(sizer):
    """Test take profit placement for both directions."""
    long_tp = sizer.calculate_take_profit(100, 95, risk_reward_ratio=2)
    short_tp = sizer.calculate_take_profit(100, 105, risk_reward_ratio=3, position_type="short")

    assert long_tp.take_profit_price == pytest.approx(110)
    assert long_tp.potential_profit_percent == pytest.approx(10)
    assert short_tp.take_profit_price == pytest.approx(85)
    assert short_tp.stop_loss_distance == pytest.approx(5)


def test_take_profit_unknown_position_type(sizer):
    """Test an unknown position type is rejected."""
    with pytest.raises(InvalidInputError):
        sizer.calculate_take_profit(100, 95, position_type="sideways")


def test_infer_direction():
    assert infer_direction(100, 90) == PositionType.LONG
    assert infer_direction(100, 110) == PositionType.SHORT


@pytest.mark.parametrize("entry, stop, kwargs, field", [
    (100, 100, {}, "stop_loss_price"),
    (100, 0, {}, "stop_loss_price"),
    (100, float("nan"), {}, "stop_loss_price"),
    (100, 95, {"position_type": "short"}, "stop_loss_price"),
    (100, 105, {"position_type": PositionType.LONG}, "stop_loss_price"),
    (100, 160, {"risk_reward_ratio": 2}, "risk_reward_ratio"),
])
def test_take_profit_rejects_invalid_setups(sizer, entry, stop, kwargs, field):
    """Test take profit applies the same stop checks as the R ladder."""
    with pytest.raises(InvalidInputError) as exc:
        sizer.calculate_take_profit(entry, stop, **kwargs)

    assert exc.value.field == field
