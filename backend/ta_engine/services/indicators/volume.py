"""
Volume Calculators

OBV, MFI, CMF, VWAP, Force Index.
"""

from ta_engine.schemas.market import OHLCVData
from ta_engine.schemas.indicators import (
    CMFResult,
    FlowType,
    ForceIndexResult,
    MFIResult,
    MoneyFlow,
    OBVResult,
    OBVTrend,
    OscillatorSignal,
    Pressure,
    SignalType,
    Strength,
    TrendDirection,
    VolumeProfile,
    VWAPPosition,
    VWAPResult,
)
from ta_engine.services.indicators.interface import IndicatorCalculator
from ta_engine.services.indicators.calculations import (
    cmf,
    detect_divergence,
    force_index,
    mfi,
    obv,
    trailing_window,
    vwap,
)

DIVERGENCE_LOOKBACK = 10


# =============================================================================
# OBV
# =============================================================================


class OBVCalculator(IndicatorCalculator):
    """On-Balance Volume."""

    name = "OBV"

    @property
    def offset(self) -> int:
        return 1

    def _compute(self, data: OHLCVData) -> list[OBVResult]:
        obv_values = obv(data.closes, data.volumes)

        results = []
        for i in range(self.offset, len(data.closes)):
            delta = obv_values[i] - obv_values[i - 1]
            if delta > 0:
                trend, signal = OBVTrend.RISING, SignalType.BUY
            elif delta < 0:
                trend, signal = OBVTrend.FALLING, SignalType.SELL
            else:
                trend, signal = OBVTrend.SIDEWAYS, SignalType.HOLD

            magnitude = abs(obv_values[i])
            if magnitude > 100000:
                strength = Strength.STRONG
            elif magnitude > 50000:
                strength = Strength.MODERATE
            else:
                strength = Strength.WEAK

            results.append(
                OBVResult(
                    obv=float(obv_values[i]),
                    trend=trend,
                    signal=signal,
                    strength=strength,
                    divergence=detect_divergence(
                        trailing_window(data.closes, i, DIVERGENCE_LOOKBACK),
                        trailing_window(obv_values, i, DIVERGENCE_LOOKBACK),
                        DIVERGENCE_LOOKBACK,
                    ),
                )
            )
        return results


# =============================================================================
# MFI
# =============================================================================


class MFICalculator(IndicatorCalculator):
    """Money Flow Index."""

    name = "MFI"

    def __init__(self, period: int = 14):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return self.period

    def _compute(self, data: OHLCVData) -> list[MFIResult]:
        mfi_values, pos_sums, neg_sums = mfi(
            data.highs, data.lows, data.closes, data.volumes, self.period
        )

        results = []
        for i in range(self.offset, len(data.closes)):
            value = mfi_values[i]

            if value > 80:
                signal = OscillatorSignal.OVERBOUGHT
            elif value < 20:
                signal = OscillatorSignal.OVERSOLD
            else:
                signal = OscillatorSignal.NEUTRAL

            if value > 90 or value < 10:
                strength = Strength.STRONG
            elif value > 80 or value < 20:
                strength = Strength.MODERATE
            else:
                strength = Strength.WEAK

            if pos_sums[i] > neg_sums[i]:
                money_flow = MoneyFlow.POSITIVE
            elif pos_sums[i] < neg_sums[i]:
                money_flow = MoneyFlow.NEGATIVE
            else:
                money_flow = MoneyFlow.BALANCED

            results.append(
                MFIResult(
                    mfi=float(value),
                    signal=signal,
                    strength=strength,
                    divergence=detect_divergence(
                        trailing_window(data.closes, i, DIVERGENCE_LOOKBACK),
                        trailing_window(mfi_values, i, DIVERGENCE_LOOKBACK),
                        DIVERGENCE_LOOKBACK,
                    ),
                    money_flow=money_flow,
                )
            )
        return results


# =============================================================================
# CMF
# =============================================================================


class CMFCalculator(IndicatorCalculator):
    """Chaikin Money Flow."""

    name = "CMF"

    def __init__(self, period: int = 20):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return self.period - 1

    def _compute(self, data: OHLCVData) -> list[CMFResult]:
        cmf_values = cmf(data.highs, data.lows, data.closes, data.volumes, self.period)

        results = []
        for i in range(self.offset, len(data.closes)):
            value = cmf_values[i]

            if value > 0.1:
                flow_type = FlowType.ACCUMULATION
            elif value < -0.1:
                flow_type = FlowType.DISTRIBUTION
            else:
                flow_type = FlowType.NEUTRAL

            if abs(value) > 0.2:
                strength = Strength.STRONG
            elif abs(value) > 0.1:
                strength = Strength.MODERATE
            else:
                strength = Strength.WEAK

            if value > 0.05:
                pressure = Pressure.BUYING_PRESSURE
            elif value < -0.05:
                pressure = Pressure.SELLING_PRESSURE
            else:
                pressure = Pressure.BALANCED

            results.append(
                CMFResult(
                    cmf=float(value),
                    flow_type=flow_type,
                    strength=strength,
                    divergence=detect_divergence(
                        trailing_window(data.closes, i, DIVERGENCE_LOOKBACK),
                        trailing_window(cmf_values, i, DIVERGENCE_LOOKBACK),
                        DIVERGENCE_LOOKBACK,
                    ),
                    pressure=pressure,
                )
            )
        return results


# =============================================================================
# VWAP
# =============================================================================


class VWAPCalculator(IndicatorCalculator):
    """Cumulative VWAP anchored at the first bar of the series."""

    name = "VWAP"

    @property
    def offset(self) -> int:
        return 0

    def _compute(self, data: OHLCVData) -> list[VWAPResult]:
        vwap_values = vwap(data.highs, data.lows, data.closes, data.volumes)

        results = []
        cumulative_volume = 0.0
        for i in range(len(data.closes)):
            cumulative_volume += data.volumes[i]
            close = data.closes[i]
            value = vwap_values[i]

            distance_percent = float((close - value) / value * 100) if value else 0.0

            if close > value:
                position = VWAPPosition.ABOVE
            elif close < value:
                position = VWAPPosition.BELOW
            else:
                position = VWAPPosition.AT_VWAP

            if distance_percent > 1:
                bias = TrendDirection.BULLISH
            elif distance_percent < -1:
                bias = TrendDirection.BEARISH
            else:
                bias = TrendDirection.NEUTRAL

            average_volume = cumulative_volume / (i + 1)
            if data.volumes[i] > average_volume * 1.5:
                volume_profile = VolumeProfile.HIGH_VOLUME_AREA
            elif data.volumes[i] < average_volume * 0.5:
                volume_profile = VolumeProfile.LOW_VOLUME_AREA
            else:
                volume_profile = VolumeProfile.AVERAGE_VOLUME

            results.append(
                VWAPResult(
                    vwap=float(value),
                    position=position,
                    bias=bias,
                    distance_percent=distance_percent,
                    volume_profile=volume_profile,
                )
            )
        return results


# =============================================================================
# FORCE INDEX
# =============================================================================


class ForceIndexCalculator(IndicatorCalculator):
    name = "FORCE_INDEX"

    def __init__(self, period: int = 1):
        self._require_period(period=period)
        self.period = period

    @property
    def offset(self) -> int:
        return self.period

    def _compute(self, data: OHLCVData) -> list[ForceIndexResult]:
        fi = force_index(data.closes, data.volumes, self.period)

        results = []
        for i in range(self.offset, len(data.closes)):
            if fi[i] > 0:
                trend = TrendDirection.BULLISH
            elif fi[i] < 0:
                trend = TrendDirection.BEARISH
            else:
                trend = TrendDirection.NEUTRAL
            results.append(ForceIndexResult(force_index=float(fi[i]), trend=trend))
        return results
