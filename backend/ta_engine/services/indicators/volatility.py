"""
Volatility Calculators

Bollinger Bands, ATR, Keltner Channel.
"""

import numpy as np

from ta_engine.schemas.market import OHLCVData
from ta_engine.schemas.indicators import (
    ATRResult,
    BandPosition,
    BollingerBandsResult,
    BollingerSignal,
    KeltnerChannelResult,
    OscillatorSignal,
    SqueezeStatus,
    VolatilityLevel,
    VolatilityZone,
)
from ta_engine.services.indicators.interface import IndicatorCalculator
from ta_engine.services.indicators.calculations import (
    atr,
    bollinger_bands,
    keltner_channel,
    true_range,
)

# Band width (% of middle) below which the bands are in a squeeze
SQUEEZE_WIDTH = 5


# =============================================================================
# BOLLINGER BANDS
# =============================================================================


class BollingerBandsCalculator(IndicatorCalculator):
    """Bollinger Bands with squeeze and volatility classification."""

    name = "BOLLINGER_BANDS"

    def __init__(self, period: int = 20, std_dev: float = 2.0):
        self._require_period(period=period)
        self._require_positive(std_dev=std_dev)
        self.period = period
        self.std_dev = std_dev

    @property
    def offset(self) -> int:
        return self.period - 1

    def _compute(self, data: OHLCVData) -> list[BollingerBandsResult]:
        upper, middle, lower, width, percent_b = bollinger_bands(
            data.closes, self.period, self.std_dev
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            close = data.closes[i]
            results.append(
                BollingerBandsResult(
                    middle=float(middle[i]),
                    upper=float(upper[i]),
                    lower=float(lower[i]),
                    width=float(width[i]),
                    percent_b=float(percent_b[i]),
                    signal=self._signal(close, upper[i], lower[i], width[i], percent_b[i]),
                    position=self._position(close, upper[i], lower[i], middle[i]),
                    volatility=self.classify_volatility(width[i]),
                    squeeze_status=self._squeeze_status(width, i),
                )
            )
        return results

    @staticmethod
    def _signal(
        close: float, upper: float, lower: float, width: float, percent_b: float
    ) -> BollingerSignal:
        if width < SQUEEZE_WIDTH:
            return BollingerSignal.SQUEEZE
        if close > upper or percent_b > 1:
            return BollingerSignal.OVERBOUGHT
        if close < lower or percent_b < 0:
            return BollingerSignal.OVERSOLD
        return BollingerSignal.NEUTRAL

    @staticmethod
    def _position(close: float, upper: float, lower: float, middle: float) -> BandPosition:
        if close > upper:
            return BandPosition.ABOVE_UPPER
        if close < lower:
            return BandPosition.BELOW_LOWER
        if abs(close - middle) < (upper - lower) * 0.1:
            return BandPosition.AT_MIDDLE
        return BandPosition.BETWEEN_BANDS

    @staticmethod
    def classify_volatility(width: float) -> VolatilityLevel:
        if width > 15:
            return VolatilityLevel.HIGH
        if width > 8:
            return VolatilityLevel.MEDIUM
        return VolatilityLevel.LOW

    def _squeeze_status(self, width: np.ndarray, index: int) -> SqueezeStatus:
        """Compare the current width with the mean of the previous `period` widths."""
        start = index - self.period
        if start < self.offset:
            return SqueezeStatus.NORMAL

        average_width = float(np.mean(width[start:index]))
        current = float(width[index])
        if average_width == 0:
            return SqueezeStatus.NORMAL

        ratio = current / average_width
        if ratio < 0.7 and current < 6:
            return SqueezeStatus.IN_SQUEEZE
        if ratio < 0.8 and current < 8:
            return SqueezeStatus.ENTERING_SQUEEZE
        if ratio > 1.3 and current > 10:
            return SqueezeStatus.EXITING_SQUEEZE
        return SqueezeStatus.NORMAL


# =============================================================================
# ATR
# =============================================================================


class ATRCalculator(IndicatorCalculator):
    """Average True Range (Wilder)."""

    name = "ATR"

    def __init__(self, period: int = 14):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return self.period

    def _compute(self, data: OHLCVData) -> list[ATRResult]:
        atr_values = atr(data.highs, data.lows, data.closes, self.period)
        tr = true_range(data.highs, data.lows, data.closes)

        results = []
        for i in range(self.offset, len(data.closes)):
            close = data.closes[i]
            atr_percent = float(atr_values[i] / abs(close) * 100) if close else 0.0
            results.append(
                ATRResult(
                    atr=float(atr_values[i]),
                    true_range=float(tr[i]),
                    atr_percent=atr_percent,
                    volatility_zone=self.classify_zone(atr_percent),
                )
            )
        return results

    @staticmethod
    def classify_zone(atr_percent: float) -> VolatilityZone:
        if atr_percent < 1:
            return VolatilityZone.LOW
        if atr_percent < 2.5:
            return VolatilityZone.NORMAL
        if atr_percent < 4:
            return VolatilityZone.HIGH
        return VolatilityZone.EXTREME


# =============================================================================
# KELTNER CHANNEL
# =============================================================================


class KeltnerChannelCalculator(IndicatorCalculator):
    name = "KELTNER_CHANNEL"

    def __init__(self, period: int = 20, multiplier: float = 2.0, atr_period: int = 10):
        self._require_period(period=period, atr_period=atr_period)
        self._require_positive(multiplier=multiplier)
        self.period = period
        self.multiplier = multiplier
        self.atr_period = atr_period

    @property
    def offset(self) -> int:
        return max(self.period - 1, self.atr_period)

    def _compute(self, data: OHLCVData) -> list[KeltnerChannelResult]:
        upper, middle, lower = keltner_channel(
            data.highs, data.lows, data.closes, self.period, self.multiplier, self.atr_period
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            if data.closes[i] > upper[i]:
                signal = OscillatorSignal.OVERBOUGHT
            elif data.closes[i] < lower[i]:
                signal = OscillatorSignal.OVERSOLD
            else:
                signal = OscillatorSignal.NEUTRAL
            results.append(
                KeltnerChannelResult(
                    middle=float(middle[i]),
                    upper=float(upper[i]),
                    lower=float(lower[i]),
                    signal=signal,
                )
            )
        return results
