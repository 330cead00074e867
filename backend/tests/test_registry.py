import pytest

from ta_engine.services.base import UnknownIndicatorError, ValidationError
from ta_engine.services.indicators.registry import DEFAULT_FACTORIES, IndicatorRegistry
from ta_engine.services.indicators.momentum import MACDCalculator, RSICalculator
from ta_engine.services.indicators.trend import MovingAverageCalculator
from ta_engine.services.indicators.volatility import BollingerBandsCalculator


@pytest.fixture
def registry():
    return IndicatorRegistry()


def test_list_available_covers_every_family(registry):
    names = registry.list_available()

    assert names == list(DEFAULT_FACTORIES)
    for name in ("RSI", "MACD", "MA200", "ICHIMOKU", "KELTNER_CHANNEL", "FORCE_INDEX"):
        assert name in names


def test_create_is_case_insensitive(registry):
    assert isinstance(registry.create("rsi"), RSICalculator)
    assert isinstance(registry.create(" Macd "), MACDCalculator)


def test_aliases_resolve(registry):
    assert isinstance(registry.create("bb"), BollingerBandsCalculator)
    assert registry.resolve("stochrsi") == "STOCHASTIC_RSI"
    assert registry.resolve("PSAR") == "PARABOLIC_SAR"
    assert registry.list_aliases()["EMA"] == "MA"


def test_unknown_name_raises(registry):
    with pytest.raises(UnknownIndicatorError) as exc:
        registry.create("FOO")

    assert exc.value.name == "FOO"
    assert "RSI" in exc.value.details["available"]
    assert "FOO" not in registry


def test_fixed_period_moving_averages(registry):
    ma = registry.create("MA200")

    assert isinstance(ma, MovingAverageCalculator)
    assert ma.period == 200
    assert ma.name == "MA200"


def test_params_are_passed_to_constructor(registry):
    rsi = registry.create("RSI", {"period": 7})
    ma = registry.create("SMA", {"period": 10})

    assert rsi.period == 7
    assert rsi.offset == 7
    assert ma.name == "MA10"


def test_unknown_params_raise_validation_error(registry):
    with pytest.raises(ValidationError) as exc:
        registry.create("RSI", {"length": 7})
    assert exc.value.details["unknown"] == ["length"]


def test_invalid_param_values_raise_validation_error(registry):
    with pytest.raises(ValidationError):
        registry.create("MACD", {"fast_period": 30})
    with pytest.raises(ValidationError):
        registry.create("BOLLINGER_BANDS", {"period": -1})
    with pytest.raises(ValidationError):
        registry.create("RSI", {"period": 14.5})
    with pytest.raises(ValidationError):
        registry.create("STOCHASTIC", {"k_period": True})
    with pytest.raises(ValidationError):
        registry.create("KELTNER_CHANNEL", {"atr_period": "10"})


def test_fractional_multipliers_are_accepted(registry):
    assert registry.create("BOLLINGER_BANDS", {"std_dev": 2.5}).std_dev == 2.5
    assert registry.create("KELTNER_CHANNEL", {"multiplier": 1.5}).multiplier == 1.5


def test_create_many_fails_on_first_unknown(registry):
    with pytest.raises(UnknownIndicatorError) as exc:
        registry.create_many(["RSI", "FOO", "BAR"])
    assert exc.value.name == "FOO"


def test_create_many_keys_by_requested_name(registry):
    calculators = registry.create_many(["rsi", "BB"], {"RSI": {"period": 9}})

    assert list(calculators) == ["rsi", "BB"]
    assert calculators["rsi"].period == 9
    assert isinstance(calculators["BB"], BollingerBandsCalculator)


def test_registries_are_independent():
    small = IndicatorRegistry(factories={"RSI": RSICalculator}, aliases={"STRENGTH": "RSI", "BB": "BOLLINGER_BANDS"})

    assert small.list_available() == ["RSI"]
    assert small.list_aliases() == {"STRENGTH": "RSI"}
    assert "BB" not in small
    assert "MACD" in IndicatorRegistry()


def test_each_call_builds_a_fresh_calculator(registry):
    assert registry.create("RSI") is not registry.create("RSI")
