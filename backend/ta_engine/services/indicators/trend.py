"""
Trend Calculators

Moving Average, ADX, Ichimoku Cloud, Parabolic SAR.
"""

import numpy as np

from ta_engine.schemas.market import OHLCVData
from ta_engine.schemas.indicators import (
    ADXResult,
    ADXTrend,
    CloudPosition,
    IchimokuResult,
    MAPosition,
    MATrend,
    MovingAverageResult,
    ParabolicSARResult,
    TrendDirection,
)
from ta_engine.services.base import ValidationError
from ta_engine.services.indicators.interface import IndicatorCalculator
from ta_engine.services.indicators.calculations import (
    adx,
    ema,
    ichimoku,
    parabolic_sar,
    sma,
)

# Close within 0.1% of the EMA counts as AT_MA
MA_POSITION_TOLERANCE = 0.001
# Number of EMA values used for the slope
MA_SLOPE_WINDOW = 5
# Slope threshold in percent per bar
MA_SLOPE_THRESHOLD = 0.1

ADX_TREND_THRESHOLD = 25


# =============================================================================
# MOVING AVERAGE
# =============================================================================


class MovingAverageCalculator(IndicatorCalculator):
    """SMA and EMA over one period, with position and EMA-slope trend."""

    name = "MA"

    def __init__(self, period: int = 20):
        self._require_period(period=period)
        self.period = period
        self.name = f"MA{period}"

    @property
    def offset(self) -> int:
        return self.period - 1

    def _compute(self, data: OHLCVData) -> list[MovingAverageResult]:
        sma_values = sma(data.closes, self.period)
        ema_values = ema(data.closes, self.period)

        results = []
        for i in range(self.offset, len(data.closes)):
            results.append(
                MovingAverageResult(
                    period=self.period,
                    sma=float(sma_values[i]),
                    ema=float(ema_values[i]),
                    position=self._position(data.closes[i], ema_values[i]),
                    trend=self._trend(ema_values[self.offset : i + 1][-MA_SLOPE_WINDOW:]),
                )
            )
        return results

    @staticmethod
    def _position(close: float, ema_value: float) -> MAPosition:
        tolerance = abs(close) * MA_POSITION_TOLERANCE
        if close > ema_value + tolerance:
            return MAPosition.ABOVE
        if close < ema_value - tolerance:
            return MAPosition.BELOW
        return MAPosition.AT_MA

    @staticmethod
    def _trend(recent_ema: np.ndarray) -> MATrend:
        if len(recent_ema) < MA_SLOPE_WINDOW or recent_ema[0] == 0:
            return MATrend.SIDEWAYS

        slope = (recent_ema[-1] - recent_ema[0]) / (MA_SLOPE_WINDOW - 1)
        slope_percent = slope / recent_ema[0] * 100

        if slope_percent > MA_SLOPE_THRESHOLD:
            return MATrend.UPTREND
        if slope_percent < -MA_SLOPE_THRESHOLD:
            return MATrend.DOWNTREND
        return MATrend.SIDEWAYS


# =============================================================================
# ADX
# =============================================================================


class ADXCalculator(IndicatorCalculator):
    """Average Directional Index."""

    name = "ADX"

    def __init__(self, period: int = 14):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return 2 * self.period - 1

    def _compute(self, data: OHLCVData) -> list[ADXResult]:
        adx_values, plus_di, minus_di = adx(data.highs, data.lows, data.closes, self.period)

        results = []
        for i in range(self.offset, len(data.closes)):
            if plus_di[i] > minus_di[i]:
                direction = TrendDirection.BULLISH
            elif plus_di[i] < minus_di[i]:
                direction = TrendDirection.BEARISH
            else:
                direction = TrendDirection.NEUTRAL

            trend = ADXTrend.NO_TREND
            if adx_values[i] > ADX_TREND_THRESHOLD:
                trend = ADXTrend.STRONG if plus_di[i] > minus_di[i] else ADXTrend.WEAK

            results.append(
                ADXResult(
                    adx=float(adx_values[i]),
                    plus_di=float(plus_di[i]),
                    minus_di=float(minus_di[i]),
                    trend=trend,
                    direction=direction,
                )
            )
        return results


# =============================================================================
# ICHIMOKU CLOUD
# =============================================================================


class IchimokuCalculator(IndicatorCalculator):
    name = "ICHIMOKU"

    def __init__(
        self,
        conversion_period: int = 9,
        base_period: int = 26,
        span_period: int = 52,
        displacement: int = 26,
    ):
        self._require_period(
            conversion_period=conversion_period,
            base_period=base_period,
            span_period=span_period,
            displacement=displacement,
        )
        self.conversion_period = conversion_period
        self.base_period = base_period
        self.span_period = span_period
        self.displacement = displacement

    @property
    def offset(self) -> int:
        longest = max(self.conversion_period, self.base_period, self.span_period)
        return longest - 1 + self.displacement

    def _compute(self, data: OHLCVData) -> list[IchimokuResult]:
        conversion, base, span_a, span_b = ichimoku(
            data.highs,
            data.lows,
            self.conversion_period,
            self.base_period,
            self.span_period,
            self.displacement,
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            if span_a[i] > span_b[i]:
                signal = TrendDirection.BULLISH
            elif span_a[i] < span_b[i]:
                signal = TrendDirection.BEARISH
            else:
                signal = TrendDirection.NEUTRAL

            cloud_top = max(span_a[i], span_b[i])
            cloud_bottom = min(span_a[i], span_b[i])
            if data.closes[i] > cloud_top:
                cloud_position = CloudPosition.ABOVE_CLOUD
            elif data.closes[i] < cloud_bottom:
                cloud_position = CloudPosition.BELOW_CLOUD
            else:
                cloud_position = CloudPosition.IN_CLOUD

            results.append(
                IchimokuResult(
                    conversion=float(conversion[i]),
                    base=float(base[i]),
                    span_a=float(span_a[i]),
                    span_b=float(span_b[i]),
                    signal=signal,
                    cloud_position=cloud_position,
                )
            )
        return results


# =============================================================================
# PARABOLIC SAR
# =============================================================================


class ParabolicSARCalculator(IndicatorCalculator):
    name = "PARABOLIC_SAR"

    def __init__(self, step: float = 0.02, max_step: float = 0.2):
        self._require_positive(step=step, max_step=max_step)
        if step > max_step:
            raise ValidationError(self.name, f"step ({step}) must not exceed max_step ({max_step})")
        self.step = step
        self.max_step = max_step

    @property
    def offset(self) -> int:
        return 1

    def _compute(self, data: OHLCVData) -> list[ParabolicSARResult]:
        sar, uptrend = parabolic_sar(data.highs, data.lows, self.step, self.max_step)

        return [
            ParabolicSARResult(
                psar=float(sar[i]),
                trend=TrendDirection.BULLISH if uptrend[i] else TrendDirection.BEARISH,
                reversal=bool(uptrend[i] != uptrend[i - 1]),
            )
            for i in range(self.offset, len(data.closes))
        ]
