import math

import numpy as np
import pytest

from conftest import build_series, flat_series, random_walk_series, rising_series
from ta_engine.schemas.indicators import (
    Crossover,
    OscillatorSignal,
    Reversal,
    Strength,
    TrendDirection,
    ZonePosition,
)
from ta_engine.services.base import InsufficientDataError, ValidationError
from ta_engine.services.indicators.momentum import (
    AwesomeOscillatorCalculator,
    MACDCalculator,
    RSICalculator,
    StochasticCalculator,
    StochasticRSICalculator,
    WilliamsRCalculator,
)


def sine_series(n=200, period=40):
    return build_series([100 + 10 * math.sin(2 * math.pi * i / period) for i in range(n)])


# =============================================================================
# RSI
# =============================================================================


def test_rsi_warm_up_and_range(walk):
    result = RSICalculator().calculate(walk)

    assert result.offset == 14
    assert len(result) == len(walk) - 14
    assert all(0 <= r.rsi <= 100 for r in result.values)


def test_rsi_boundary():
    calc = RSICalculator(period=14)

    assert len(calc.calculate(random_walk_series(15))) == 1
    with pytest.raises(InsufficientDataError) as exc:
        calc.calculate(random_walk_series(14))
    assert exc.value.required == 15
    assert exc.value.available == 14


def test_rsi_flat_series_hits_zero_loss_fallback(flat):
    latest = RSICalculator().latest(flat)

    assert latest.rs == 100
    assert latest.rsi == 100
    assert latest.signal == OscillatorSignal.OVERBOUGHT
    assert latest.strength == Strength.STRONG


@pytest.mark.parametrize(
    "value, signal, strength",
    [
        (15, OscillatorSignal.OVERSOLD, Strength.STRONG),
        (25, OscillatorSignal.OVERSOLD, Strength.MODERATE),
        (30, OscillatorSignal.OVERSOLD, Strength.MODERATE),
        (50, OscillatorSignal.NEUTRAL, Strength.WEAK),
        (70, OscillatorSignal.OVERBOUGHT, Strength.MODERATE),
        (85, OscillatorSignal.OVERBOUGHT, Strength.STRONG),
    ],
)
def test_rsi_classification(value, signal, strength):
    assert RSICalculator.classify_signal(value) == signal
    assert RSICalculator.classify_strength(value) == strength


def test_rsi_rejects_non_positive_period():
    with pytest.raises(ValidationError):
        RSICalculator(period=0)


# =============================================================================
# MACD
# =============================================================================


def test_macd_warm_up(walk):
    calc = MACDCalculator()
    result = calc.calculate(walk)

    assert calc.offset == 33
    assert calc.minimum_required == 34
    assert len(result) == len(walk) - 33
    assert result.values[0].crossover == Crossover.NONE


def test_macd_histogram_is_difference(walk):
    for r in MACDCalculator().calculate(walk).values:
        assert r.histogram == pytest.approx(r.macd - r.signal)


def test_macd_rising_series_is_bullish(rising):
    assert MACDCalculator().latest(rising).trend == TrendDirection.BULLISH


def test_macd_detects_crossovers_on_oscillating_prices():
    crossovers = {r.crossover for r in MACDCalculator().calculate(sine_series()).values}

    assert Crossover.BULLISH_CROSSOVER in crossovers
    assert Crossover.BEARISH_CROSSOVER in crossovers


def test_macd_fast_must_be_below_slow():
    with pytest.raises(ValidationError):
        MACDCalculator(fast_period=26, slow_period=12)


# =============================================================================
# STOCHASTIC
# =============================================================================


def test_stochastic_warm_up_and_range(walk):
    calc = StochasticCalculator()
    result = calc.calculate(walk)

    assert calc.offset == 17
    assert len(result) == len(walk) - 17
    for r in result.values:
        assert 0 <= r.k_percent <= 100
        assert 0 <= r.d_percent <= 100


def test_stochastic_rising_is_overbought(rising):
    latest = StochasticCalculator().latest(rising)

    assert latest.signal == OscillatorSignal.OVERBOUGHT
    assert latest.position == ZonePosition.EXTREME_OVERBOUGHT


def test_stochastic_falling_is_oversold(falling):
    latest = StochasticCalculator().latest(falling)

    assert latest.signal == OscillatorSignal.OVERSOLD
    assert latest.position == ZonePosition.EXTREME_OVERSOLD


def test_stochastic_flat_is_neutral(flat):
    latest = StochasticCalculator().latest(flat)

    assert latest.k_percent == pytest.approx(50)
    assert latest.signal == OscillatorSignal.NEUTRAL


def test_stochastic_crossovers_on_oscillating_prices():
    crossovers = {r.crossover for r in StochasticCalculator().calculate(sine_series()).values}
    assert Crossover.BULLISH_CROSSOVER in crossovers


# =============================================================================
# WILLIAMS %R
# =============================================================================


def test_williams_r_warm_up_and_range(walk):
    result = WilliamsRCalculator().calculate(walk)

    assert result.offset == 13
    assert len(result) == len(walk) - 13
    assert all(-100 <= r.williams_r <= 0 for r in result.values)


def test_williams_r_trend_extremes(rising, falling):
    top = WilliamsRCalculator().latest(rising)
    bottom = WilliamsRCalculator().latest(falling)

    assert top.signal == OscillatorSignal.OVERBOUGHT
    assert top.position == ZonePosition.EXTREME_OVERBOUGHT
    assert bottom.signal == OscillatorSignal.OVERSOLD
    assert bottom.position == ZonePosition.EXTREME_OVERSOLD


def test_williams_r_trend_strength_needs_two_periods():
    result = WilliamsRCalculator(period=14).calculate(flat_series(40))

    # values[i] belongs to bar 13 + i; 28 closes are available from bar 27
    assert result.values[13].trend_strength == Strength.WEAK
    assert result.values[14].trend_strength == Strength.STRONG
    assert result.latest().williams_r == -50


def test_williams_r_zero_price_series():
    result = WilliamsRCalculator(period=14).calculate(flat_series(40, price=0.0))

    latest = result.latest()
    assert latest.williams_r == -50
    assert latest.trend_strength == Strength.STRONG


@pytest.mark.parametrize(
    "recent, expected",
    [
        ([-90, -75, -55], Reversal.STRONG_REVERSAL),
        ([-10, -25, -45], Reversal.STRONG_REVERSAL),
        ([-85, -95, -50], Reversal.WEAK_REVERSAL),
        ([-75, -60, -45], Reversal.WEAK_REVERSAL),
        ([-50, -52, -48], Reversal.NO_REVERSAL),
    ],
)
def test_williams_r_reversal(recent, expected):
    assert WilliamsRCalculator._reversal(np.array(recent, dtype=float)) == expected


def test_williams_r_momentum_halves():
    assert (
        WilliamsRCalculator._momentum(np.array([-90.0, -90.0, -90.0, -50.0, -50.0, -50.0]))
        == TrendDirection.BULLISH
    )
    assert (
        WilliamsRCalculator._momentum(np.array([-20.0, -20.0, -20.0, -60.0, -60.0, -60.0]))
        == TrendDirection.BEARISH
    )
    assert WilliamsRCalculator._momentum(np.array([-50.0, -50.0])) == TrendDirection.NEUTRAL


# =============================================================================
# STOCHASTIC RSI / AWESOME OSCILLATOR
# =============================================================================


def test_stochastic_rsi_warm_up(walk):
    calc = StochasticRSICalculator()
    result = calc.calculate(walk)

    assert calc.offset == 31
    assert len(result) == len(walk) - 31
    assert all(0 <= r.stoch_rsi <= 100 for r in result.values)


def test_stochastic_rsi_flat_rsi_is_fifty(flat):
    latest = StochasticRSICalculator().latest(flat)

    assert latest.stoch_rsi == 50
    assert latest.signal == OscillatorSignal.NEUTRAL


def test_awesome_oscillator(rising):
    calc = AwesomeOscillatorCalculator()
    result = calc.calculate(rising)

    assert calc.offset == 33
    assert len(result) == len(rising) - 33
    assert result.latest().trend == TrendDirection.BULLISH


def test_calculators_are_idempotent(walk):
    for calc in (
        RSICalculator(),
        MACDCalculator(),
        StochasticCalculator(),
        WilliamsRCalculator(),
        StochasticRSICalculator(),
        AwesomeOscillatorCalculator(),
    ):
        assert calc.calculate(walk) == calc.calculate(walk)


def test_macd_short_series_raises():
    with pytest.raises(InsufficientDataError):
        MACDCalculator().calculate(rising_series(33))
