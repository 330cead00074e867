"""
CONTRACT 2: Indicator Engine

Input: PriceSeries (chronological OHLCV bars)
Output: IndicatorResultSeries / CompositeAnalysis

This module describes the results of ALL indicator calculations.
Pure Python/NumPy - deterministic, no I/O.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from ta_engine.schemas.market import PriceBar


# =============================================================================
# ENUMS
# =============================================================================


class OscillatorSignal(str, Enum):
    OVERSOLD = "OVERSOLD"
    OVERBOUGHT = "OVERBOUGHT"
    NEUTRAL = "NEUTRAL"


class BollingerSignal(str, Enum):
    OVERSOLD = "OVERSOLD"
    OVERBOUGHT = "OVERBOUGHT"
    NEUTRAL = "NEUTRAL"
    SQUEEZE = "SQUEEZE"


class Strength(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"


class TrendDirection(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class Crossover(str, Enum):
    BULLISH_CROSSOVER = "BULLISH_CROSSOVER"
    BEARISH_CROSSOVER = "BEARISH_CROSSOVER"
    NONE = "NONE"


class Divergence(str, Enum):
    BULLISH_DIVERGENCE = "BULLISH_DIVERGENCE"
    BEARISH_DIVERGENCE = "BEARISH_DIVERGENCE"
    NO_DIVERGENCE = "NO_DIVERGENCE"


class MATrend(str, Enum):
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    SIDEWAYS = "SIDEWAYS"


class MAPosition(str, Enum):
    ABOVE = "ABOVE"
    BELOW = "BELOW"
    AT_MA = "AT_MA"


class ZonePosition(str, Enum):
    EXTREME_OVERSOLD = "EXTREME_OVERSOLD"
    OVERSOLD = "OVERSOLD"
    NEUTRAL = "NEUTRAL"
    OVERBOUGHT = "OVERBOUGHT"
    EXTREME_OVERBOUGHT = "EXTREME_OVERBOUGHT"


class MomentumChange(str, Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


class Reversal(str, Enum):
    STRONG_REVERSAL = "STRONG_REVERSAL"
    WEAK_REVERSAL = "WEAK_REVERSAL"
    NO_REVERSAL = "NO_REVERSAL"


class BandPosition(str, Enum):
    ABOVE_UPPER = "ABOVE_UPPER"
    BETWEEN_BANDS = "BETWEEN_BANDS"
    BELOW_LOWER = "BELOW_LOWER"
    AT_MIDDLE = "AT_MIDDLE"


class VolatilityLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SqueezeStatus(str, Enum):
    ENTERING_SQUEEZE = "ENTERING_SQUEEZE"
    IN_SQUEEZE = "IN_SQUEEZE"
    EXITING_SQUEEZE = "EXITING_SQUEEZE"
    NORMAL = "NORMAL"


class VolatilityZone(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class VWAPPosition(str, Enum):
    ABOVE = "ABOVE"
    BELOW = "BELOW"
    AT_VWAP = "AT_VWAP"


class VolumeProfile(str, Enum):
    HIGH_VOLUME_AREA = "HIGH_VOLUME_AREA"
    LOW_VOLUME_AREA = "LOW_VOLUME_AREA"
    AVERAGE_VOLUME = "AVERAGE_VOLUME"


class OBVTrend(str, Enum):
    RISING = "RISING"
    FALLING = "FALLING"
    SIDEWAYS = "SIDEWAYS"


class SignalType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class MoneyFlow(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    BALANCED = "BALANCED"


class FlowType(str, Enum):
    ACCUMULATION = "ACCUMULATION"
    DISTRIBUTION = "DISTRIBUTION"
    NEUTRAL = "NEUTRAL"


class Pressure(str, Enum):
    BUYING_PRESSURE = "BUYING_PRESSURE"
    SELLING_PRESSURE = "SELLING_PRESSURE"
    BALANCED = "BALANCED"


class ADXTrend(str, Enum):
    STRONG = "STRONG"
    WEAK = "WEAK"
    NO_TREND = "NO_TREND"


class CloudPosition(str, Enum):
    ABOVE_CLOUD = "ABOVE_CLOUD"
    BELOW_CLOUD = "BELOW_CLOUD"
    IN_CLOUD = "IN_CLOUD"


class OverallSignal(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    NEUTRAL = "NEUTRAL"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


class OutputMode(str, Enum):
    SUMMARY = "summary"
    FULL_DATA = "full_data"


# =============================================================================
# OUTPUT: Momentum Results
# =============================================================================


class RSIResult(BaseModel):
    """Relative Strength Index at one bar."""

    rsi: float = Field(..., ge=0, le=100)
    rs: float = Field(..., ge=0, description="Average gain / average loss (100 when loss is 0)")
    signal: OscillatorSignal
    strength: Strength


class MACDResult(BaseModel):
    """MACD line, signal line and histogram at one bar."""

    macd: float
    signal: float
    histogram: float
    trend: TrendDirection
    crossover: Crossover


class StochasticResult(BaseModel):
    """Slow stochastic oscillator at one bar."""

    k_percent: float = Field(..., ge=0, le=100)
    d_percent: float = Field(..., ge=0, le=100)
    signal: OscillatorSignal
    crossover: Crossover
    position: ZonePosition
    divergence: Divergence
    momentum: MomentumChange


class WilliamsRResult(BaseModel):
    """Williams %R at one bar."""

    williams_r: float = Field(..., ge=-100, le=0)
    signal: OscillatorSignal
    position: ZonePosition
    momentum: TrendDirection
    reversal_signal: Reversal
    trend_strength: Strength
    divergence: Divergence


class StochasticRSIResult(BaseModel):
    """Stochastic applied to RSI values."""

    stoch_rsi: float = Field(..., ge=0, le=100)
    k: float = Field(..., ge=0, le=100)
    d: float = Field(..., ge=0, le=100)
    signal: OscillatorSignal


class AwesomeOscillatorResult(BaseModel):
    ao: float
    trend: TrendDirection
    momentum: MomentumChange


# =============================================================================
# OUTPUT: Trend Results
# =============================================================================


class MovingAverageResult(BaseModel):
    """SMA/EMA pair for one period."""

    period: int = Field(..., ge=1)
    sma: float
    ema: float
    position: MAPosition
    trend: MATrend


class ADXResult(BaseModel):
    """Average Directional Index with directional indicators."""

    adx: float = Field(..., ge=0, le=100)
    plus_di: float = Field(..., ge=0)
    minus_di: float = Field(..., ge=0)
    trend: ADXTrend
    direction: TrendDirection


class IchimokuResult(BaseModel):
    """Ichimoku lines; span values are those projected onto this bar."""

    conversion: float
    base: float
    span_a: float
    span_b: float
    signal: TrendDirection
    cloud_position: CloudPosition


class ParabolicSARResult(BaseModel):
    psar: float
    trend: TrendDirection
    reversal: bool


# =============================================================================
# OUTPUT: Volatility Results
# =============================================================================


class BollingerBandsResult(BaseModel):
    """Bollinger Bands at one bar."""

    middle: float
    upper: float
    lower: float
    width: float = Field(..., description="Band width as % of middle")
    percent_b: float = Field(..., description="Price position within bands (0-1)")
    signal: BollingerSignal
    position: BandPosition
    volatility: VolatilityLevel
    squeeze_status: SqueezeStatus


class ATRResult(BaseModel):
    """Average True Range at one bar."""

    atr: float = Field(..., ge=0)
    true_range: float = Field(..., ge=0)
    atr_percent: float = Field(..., ge=0, description="ATR as % of close")
    volatility_zone: VolatilityZone


class KeltnerChannelResult(BaseModel):
    middle: float
    upper: float
    lower: float
    signal: OscillatorSignal


# =============================================================================
# OUTPUT: Volume Results
# =============================================================================


class OBVResult(BaseModel):
    """On-Balance Volume at one bar."""

    obv: float
    trend: OBVTrend
    signal: SignalType
    strength: Strength
    divergence: Divergence


class MFIResult(BaseModel):
    """Money Flow Index at one bar."""

    mfi: float = Field(..., ge=0, le=100)
    signal: OscillatorSignal
    strength: Strength
    divergence: Divergence
    money_flow: MoneyFlow


class CMFResult(BaseModel):
    """Chaikin Money Flow at one bar."""

    cmf: float
    flow_type: FlowType
    strength: Strength
    divergence: Divergence
    pressure: Pressure


class VWAPResult(BaseModel):
    """Cumulative VWAP from series start."""

    vwap: float
    position: VWAPPosition
    bias: TrendDirection
    distance_percent: float
    volume_profile: VolumeProfile


class ForceIndexResult(BaseModel):
    force_index: float
    trend: TrendDirection


IndicatorResult = Union[
    RSIResult,
    MACDResult,
    StochasticResult,
    WilliamsRResult,
    StochasticRSIResult,
    AwesomeOscillatorResult,
    MovingAverageResult,
    ADXResult,
    IchimokuResult,
    ParabolicSARResult,
    BollingerBandsResult,
    ATRResult,
    KeltnerChannelResult,
    OBVResult,
    MFIResult,
    CMFResult,
    VWAPResult,
    ForceIndexResult,
]


# =============================================================================
# OUTPUT: IndicatorResultSeries
# =============================================================================


class IndicatorResultSeries(BaseModel):
    """
    Results aligned to the input series.

    values[i] belongs to series[offset + i].
    """

    indicator: str
    offset: int = Field(..., ge=0)
    values: list[Any] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)

    def latest(self) -> Any:
        """Last computed value."""
        return self.values[-1]

    def only_latest(self) -> "IndicatorResultSeries":
        """Copy holding just the last value, re-aligned to the last bar."""
        return IndicatorResultSeries(
            indicator=self.indicator,
            offset=self.offset + len(self.values) - 1,
            values=self.values[-1:],
        )


# =============================================================================
# OUTPUT: CompositeAnalysis
# =============================================================================


class MovingAverages(BaseModel):
    ma20: MovingAverageResult
    ma50: MovingAverageResult
    ma200: MovingAverageResult


class CompositeAnalysis(BaseModel):
    """
    Complete technical analysis for one symbol.
    Returned by: Indicator Service
    Consumed by: API layer
    """

    symbol: str
    timestamp: Optional[datetime] = None
    current_price: float

    # Latest value per battery indicator
    rsi: RSIResult
    macd: MACDResult
    moving_averages: MovingAverages
    vwap: VWAPResult
    obv: OBVResult
    mfi: MFIResult
    cmf: CMFResult
    bollinger_bands: BollingerBandsResult
    stochastic: StochasticResult
    williams_r: WilliamsRResult

    # Scoring
    score: int
    max_score: int
    normalized_score: float = Field(..., ge=-1, le=1)
    overall_signal: OverallSignal
    confidence: int = Field(..., ge=0, le=100)
    volume_confirmation: bool
    volatility_level: VolatilityLevel

    output_mode: OutputMode = OutputMode.SUMMARY
    history: Optional[dict[str, IndicatorResultSeries]] = None


# =============================================================================
# API REQUEST BODIES
# =============================================================================


class CalculateRequest(BaseModel):
    """Calculate named indicators over caller-supplied bars."""

    indicators: list[str] = Field(..., min_length=1)
    bars: list[PriceBar] = Field(..., min_length=1)
    params: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Parameter overrides keyed by indicator name"
    )
    latest_only: bool = False


class AnalyzeRequest(BaseModel):
    """Run the composite analysis over caller-supplied bars."""

    symbol: str = Field(..., min_length=1)
    bars: list[PriceBar] = Field(..., min_length=1)
    output_mode: OutputMode = OutputMode.SUMMARY
