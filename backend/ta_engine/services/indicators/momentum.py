"""
Momentum Calculators

RSI, MACD, Stochastic, Williams %R, Stochastic RSI, Awesome Oscillator.
"""

import numpy as np

from ta_engine.schemas.market import OHLCVData
from ta_engine.schemas.indicators import (
    AwesomeOscillatorResult,
    Crossover,
    MACDResult,
    MomentumChange,
    OscillatorSignal,
    Reversal,
    RSIResult,
    StochasticResult,
    StochasticRSIResult,
    Strength,
    TrendDirection,
    WilliamsRResult,
    ZonePosition,
)
from ta_engine.services.base import ValidationError
from ta_engine.services.indicators.interface import IndicatorCalculator
from ta_engine.services.indicators.calculations import (
    awesome_oscillator,
    detect_crossover,
    detect_divergence,
    macd,
    rsi,
    stochastic,
    stochastic_rsi,
    trailing_window,
    williams_r,
)

# Trailing window used for divergence checks
DIVERGENCE_LOOKBACK = 10


def _sign_trend(value: float) -> TrendDirection:
    if value > 0:
        return TrendDirection.BULLISH
    if value < 0:
        return TrendDirection.BEARISH
    return TrendDirection.NEUTRAL


# =============================================================================
# RSI
# =============================================================================


class RSICalculator(IndicatorCalculator):
    """Relative Strength Index (Wilder)."""

    name = "RSI"

    def __init__(self, period: int = 14):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return self.period

    def _compute(self, data: OHLCVData) -> list[RSIResult]:
        rsi_values, rs_values = rsi(data.closes, self.period)

        return [
            RSIResult(
                rsi=float(rsi_values[i]),
                rs=float(rs_values[i]),
                signal=self.classify_signal(rsi_values[i]),
                strength=self.classify_strength(rsi_values[i]),
            )
            for i in range(self.offset, len(data.closes))
        ]

    @staticmethod
    def classify_signal(value: float) -> OscillatorSignal:
        if value <= 30:
            return OscillatorSignal.OVERSOLD
        if value >= 70:
            return OscillatorSignal.OVERBOUGHT
        return OscillatorSignal.NEUTRAL

    @staticmethod
    def classify_strength(value: float) -> Strength:
        if value <= 20 or value >= 80:
            return Strength.STRONG
        if value <= 30 or value >= 70:
            return Strength.MODERATE
        return Strength.WEAK


# =============================================================================
# MACD
# =============================================================================


class MACDCalculator(IndicatorCalculator):
    """Moving Average Convergence Divergence."""

    name = "MACD"

    def __init__(self, fast_period: int = 12, slow_period: int = 26, signal_period: int = 9):
        self._require_period(
            fast_period=fast_period, slow_period=slow_period, signal_period=signal_period
        )
        if fast_period >= slow_period:
            raise ValidationError(
                self.name, f"fast_period ({fast_period}) must be below slow_period ({slow_period})"
            )
        self.fast_period = fast_period
        self.slow_period = slow_period
        self.signal_period = signal_period

    @property
    def offset(self) -> int:
        return self.slow_period - 1 + self.signal_period - 1

    def _compute(self, data: OHLCVData) -> list[MACDResult]:
        macd_line, signal_line, histogram = macd(
            data.closes, self.fast_period, self.slow_period, self.signal_period
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            crossover = Crossover.NONE
            if i > self.offset:
                crossover = detect_crossover(
                    macd_line[i - 1], signal_line[i - 1], macd_line[i], signal_line[i]
                )
            results.append(
                MACDResult(
                    macd=float(macd_line[i]),
                    signal=float(signal_line[i]),
                    histogram=float(histogram[i]),
                    trend=_sign_trend(macd_line[i]),
                    crossover=crossover,
                )
            )
        return results


# =============================================================================
# STOCHASTIC
# =============================================================================


class StochasticCalculator(IndicatorCalculator):
    """Slow stochastic oscillator (%K smoothed by `slowing`, %D over %K)."""

    name = "STOCHASTIC"

    def __init__(self, k_period: int = 14, d_period: int = 3, slowing: int = 3):
        self._require_period(k_period=k_period, d_period=d_period, slowing=slowing)
        self.k_period = k_period
        self.d_period = d_period
        self.slowing = slowing

    @property
    def offset(self) -> int:
        return self.k_period - 1 + self.slowing - 1 + self.d_period - 1

    def _compute(self, data: OHLCVData) -> list[StochasticResult]:
        k, d = stochastic(
            data.highs, data.lows, data.closes, self.k_period, self.d_period, self.slowing
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            crossover = Crossover.NONE
            if i > self.offset:
                crossover = detect_crossover(k[i - 1], d[i - 1], k[i], d[i])

            results.append(
                StochasticResult(
                    k_percent=float(k[i]),
                    d_percent=float(d[i]),
                    signal=self._signal(k[i], d[i]),
                    crossover=crossover,
                    position=self._position(k[i]),
                    divergence=detect_divergence(
                        trailing_window(data.closes, i, DIVERGENCE_LOOKBACK),
                        trailing_window(k, i, DIVERGENCE_LOOKBACK),
                        DIVERGENCE_LOOKBACK,
                    ),
                    momentum=self._momentum(trailing_window(k, i, 3)),
                )
            )
        return results

    @staticmethod
    def _signal(k: float, d: float) -> OscillatorSignal:
        average = (k + d) / 2
        if average <= 20:
            return OscillatorSignal.OVERSOLD
        if average >= 80:
            return OscillatorSignal.OVERBOUGHT
        return OscillatorSignal.NEUTRAL

    @staticmethod
    def _position(k: float) -> ZonePosition:
        if k <= 10:
            return ZonePosition.EXTREME_OVERSOLD
        if k <= 20:
            return ZonePosition.OVERSOLD
        if k >= 90:
            return ZonePosition.EXTREME_OVERBOUGHT
        if k >= 80:
            return ZonePosition.OVERBOUGHT
        return ZonePosition.NEUTRAL

    @staticmethod
    def _momentum(recent_k: np.ndarray) -> MomentumChange:
        if len(recent_k) < 3 or np.isnan(recent_k).any():
            return MomentumChange.STABLE
        change = recent_k[-1] - recent_k[0]
        if change > 5:
            return MomentumChange.INCREASING
        if change < -5:
            return MomentumChange.DECREASING
        return MomentumChange.STABLE


# =============================================================================
# WILLIAMS %R
# =============================================================================


class WilliamsRCalculator(IndicatorCalculator):
    """Williams %R with reversal, momentum and trend-strength analysis."""

    name = "WILLIAMS_R"

    def __init__(self, period: int = 14):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return self.period - 1

    def _compute(self, data: OHLCVData) -> list[WilliamsRResult]:
        wr = williams_r(data.highs, data.lows, data.closes, self.period)

        results = []
        for i in range(self.offset, len(data.closes)):
            history = wr[self.offset : i + 1]
            results.append(
                WilliamsRResult(
                    williams_r=float(wr[i]),
                    signal=self._signal(wr[i]),
                    position=self._position(wr[i]),
                    momentum=self._momentum(history[-6:]),
                    reversal_signal=self._reversal(history[-3:]),
                    trend_strength=self._trend_strength(history, data.closes[: i + 1]),
                    divergence=detect_divergence(
                        data.closes[: i + 1][-DIVERGENCE_LOOKBACK:],
                        history[-DIVERGENCE_LOOKBACK:],
                        DIVERGENCE_LOOKBACK,
                    ),
                )
            )
        return results

    @staticmethod
    def _signal(value: float) -> OscillatorSignal:
        if value <= -80:
            return OscillatorSignal.OVERSOLD
        if value >= -20:
            return OscillatorSignal.OVERBOUGHT
        return OscillatorSignal.NEUTRAL

    @staticmethod
    def _position(value: float) -> ZonePosition:
        if value <= -90:
            return ZonePosition.EXTREME_OVERSOLD
        if value <= -80:
            return ZonePosition.OVERSOLD
        if value >= -10:
            return ZonePosition.EXTREME_OVERBOUGHT
        if value >= -20:
            return ZonePosition.OVERBOUGHT
        return ZonePosition.NEUTRAL

    @staticmethod
    def _momentum(recent: np.ndarray) -> TrendDirection:
        """Compare the older and newer halves of the last 6 values."""
        if len(recent) < 6:
            return TrendDirection.NEUTRAL
        first_avg = float(np.mean(recent[:3]))
        second_avg = float(np.mean(recent[3:]))
        if second_avg > first_avg + 10:
            return TrendDirection.BULLISH
        if second_avg < first_avg - 10:
            return TrendDirection.BEARISH
        return TrendDirection.NEUTRAL

    @staticmethod
    def _reversal(recent: np.ndarray) -> Reversal:
        if len(recent) < 3:
            return Reversal.NO_REVERSAL
        oldest, middle, newest = recent

        # Climbing out of oversold
        if oldest <= -80 and middle <= -70 and newest >= -60 and oldest <= middle <= newest:
            return Reversal.STRONG_REVERSAL
        # Falling out of overbought
        if oldest >= -20 and middle >= -30 and newest <= -40 and oldest >= middle >= newest:
            return Reversal.STRONG_REVERSAL
        if (oldest <= -70 and newest >= -50) or (oldest >= -30 and newest <= -50):
            return Reversal.WEAK_REVERSAL
        return Reversal.NO_REVERSAL

    def _trend_strength(self, history: np.ndarray, closes: np.ndarray) -> Strength:
        if len(closes) < self.period * 2:
            return Strength.WEAK

        std = float(np.std(history[-10:]))

        recent_prices = closes[-self.period :]
        price_range = float(np.max(recent_prices) - np.min(recent_prices))
        mean_price = float(np.mean(recent_prices))
        price_volatility = price_range / abs(mean_price) * 100 if mean_price else 0.0

        if std > 20 or price_volatility > 15:
            return Strength.WEAK
        if std < 10 and price_volatility < 5:
            return Strength.STRONG
        return Strength.MODERATE


# =============================================================================
# STOCHASTIC RSI
# =============================================================================


class StochasticRSICalculator(IndicatorCalculator):
    """Stochastic oscillator applied to RSI values."""

    name = "STOCHASTIC_RSI"

    def __init__(
        self,
        rsi_period: int = 14,
        stochastic_period: int = 14,
        k_period: int = 3,
        d_period: int = 3,
    ):
        self._require_period(
            rsi_period=rsi_period,
            stochastic_period=stochastic_period,
            k_period=k_period,
            d_period=d_period,
        )
        self.rsi_period = rsi_period
        self.stochastic_period = stochastic_period
        self.k_period = k_period
        self.d_period = d_period

    @property
    def offset(self) -> int:
        return self.rsi_period + self.stochastic_period - 1 + self.k_period - 1 + self.d_period - 1

    def _compute(self, data: OHLCVData) -> list[StochasticRSIResult]:
        stoch, k, d = stochastic_rsi(
            data.closes, self.rsi_period, self.stochastic_period, self.k_period, self.d_period
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            if stoch[i] > 80:
                signal = OscillatorSignal.OVERBOUGHT
            elif stoch[i] < 20:
                signal = OscillatorSignal.OVERSOLD
            else:
                signal = OscillatorSignal.NEUTRAL
            results.append(
                StochasticRSIResult(
                    stoch_rsi=float(stoch[i]), k=float(k[i]), d=float(d[i]), signal=signal
                )
            )
        return results


# =============================================================================
# AWESOME OSCILLATOR
# =============================================================================


class AwesomeOscillatorCalculator(IndicatorCalculator):
    name = "AWESOME_OSCILLATOR"

    def __init__(self, fast_period: int = 5, slow_period: int = 34):
        self._require_period(fast_period=fast_period, slow_period=slow_period)
        if fast_period >= slow_period:
            raise ValidationError(
                self.name, f"fast_period ({fast_period}) must be below slow_period ({slow_period})"
            )
        self.fast_period = fast_period
        self.slow_period = slow_period

    @property
    def offset(self) -> int:
        return self.slow_period - 1

    def _compute(self, data: OHLCVData) -> list[AwesomeOscillatorResult]:
        ao = awesome_oscillator(data.highs, data.lows, self.fast_period, self.slow_period)

        results = []
        for i in range(self.offset, len(data.closes)):
            momentum = MomentumChange.STABLE
            if i > self.offset:
                if ao[i] > ao[i - 1]:
                    momentum = MomentumChange.INCREASING
                elif ao[i] < ao[i - 1]:
                    momentum = MomentumChange.DECREASING
            results.append(
                AwesomeOscillatorResult(ao=float(ao[i]), trend=_sign_trend(ao[i]), momentum=momentum)
            )
        return results
