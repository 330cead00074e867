"""
Technical Analysis Service Implementation

Runs the indicator battery over a PriceSeries and merges the latest
values into one weighted verdict.
Pure Python/NumPy calculations, no I/O.
"""

import logging
import math
from typing import Any, Optional

from ta_engine.schemas.market import PriceSeries
from ta_engine.schemas.indicators import (
    AnalyzeRequest,
    BollingerBandsResult,
    BollingerSignal,
    CMFResult,
    CompositeAnalysis,
    Crossover,
    Divergence,
    FlowType,
    IndicatorResultSeries,
    MACDResult,
    MAPosition,
    MATrend,
    MFIResult,
    MoneyFlow,
    MovingAverageResult,
    MovingAverages,
    OBVResult,
    OscillatorSignal,
    OutputMode,
    OverallSignal,
    Reversal,
    RSIResult,
    SignalType,
    StochasticResult,
    Strength,
    TrendDirection,
    VolumeProfile,
    VWAPResult,
    WilliamsRResult,
)
from ta_engine.services.base import InsufficientDataError
from ta_engine.services.indicators.interface import TechnicalAnalysisServiceInterface
from ta_engine.services.indicators.registry import IndicatorRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# SCORING CONSTANTS
# =============================================================================

MIN_ANALYSIS_BARS = 200

# Registry names run by analyze(), in scoring order
ANALYSIS_BATTERY = [
    "RSI",
    "MACD",
    "MA20",
    "MA50",
    "MA200",
    "VWAP",
    "OBV",
    "MFI",
    "CMF",
    "BOLLINGER_BANDS",
    "STOCHASTIC",
    "WILLIAMS_R",
]

# Maximum absolute contribution per indicator
INDICATOR_WEIGHTS = {
    "RSI": 2,
    "MACD": 3,
    "MOVING_AVERAGES": 3,
    "VWAP": 1,
    "OBV": 1,
    "MFI": 1,
    "CMF": 1,
    "BOLLINGER_BANDS": 2,
    "STOCHASTIC": 2,
    "WILLIAMS_R": 2,
}
MAX_SCORE = sum(INDICATOR_WEIGHTS.values())

STRONG_THRESHOLD = 0.6
SIGNAL_THRESHOLD = 0.2

VOLUME_CONFIRMATION_BOOST = 1.2
CONTRADICTION_PENALTY = 0.8
OSCILLATOR_CONFIRMATION_BOOST = 1.15
MIN_OSCILLATOR_CONFIRMATIONS = 3


# =============================================================================
# SCORING RULES
# =============================================================================


def score_rsi(rsi: RSIResult) -> int:
    if rsi.signal == OscillatorSignal.OVERSOLD:
        return 2 if rsi.strength == Strength.STRONG else 1
    if rsi.signal == OscillatorSignal.OVERBOUGHT:
        return -2 if rsi.strength == Strength.STRONG else -1
    return 0


def score_macd(macd: MACDResult) -> int:
    if macd.crossover == Crossover.BULLISH_CROSSOVER:
        return 3
    if macd.crossover == Crossover.BEARISH_CROSSOVER:
        return -3
    if macd.trend == TrendDirection.BULLISH:
        return 1
    if macd.trend == TrendDirection.BEARISH:
        return -1
    return 0


def score_moving_average(ma: MovingAverageResult) -> int:
    if ma.position == MAPosition.ABOVE and ma.trend == MATrend.UPTREND:
        return 1
    if ma.position == MAPosition.BELOW and ma.trend == MATrend.DOWNTREND:
        return -1
    return 0


def score_vwap(vwap: VWAPResult) -> int:
    if vwap.volume_profile != VolumeProfile.HIGH_VOLUME_AREA:
        return 0
    if vwap.bias == TrendDirection.BULLISH:
        return 1
    if vwap.bias == TrendDirection.BEARISH:
        return -1
    return 0


def score_obv(obv: OBVResult) -> int:
    if obv.signal == SignalType.BUY or obv.divergence == Divergence.BULLISH_DIVERGENCE:
        return 1
    if obv.signal == SignalType.SELL or obv.divergence == Divergence.BEARISH_DIVERGENCE:
        return -1
    return 0


def score_mfi(mfi: MFIResult) -> int:
    if mfi.signal == OscillatorSignal.OVERSOLD and mfi.money_flow == MoneyFlow.POSITIVE:
        return 1
    if mfi.signal == OscillatorSignal.OVERBOUGHT and mfi.money_flow == MoneyFlow.NEGATIVE:
        return -1
    return 0


def score_cmf(cmf: CMFResult) -> int:
    if cmf.strength == Strength.WEAK:
        return 0
    if cmf.flow_type == FlowType.ACCUMULATION:
        return 1
    if cmf.flow_type == FlowType.DISTRIBUTION:
        return -1
    return 0


def score_bollinger(bb: BollingerBandsResult) -> int:
    if bb.signal == BollingerSignal.OVERSOLD:
        return 2
    if bb.signal == BollingerSignal.OVERBOUGHT:
        return -2
    if bb.signal == BollingerSignal.SQUEEZE:
        return 0
    if bb.percent_b < 0.2:
        return 1
    if bb.percent_b > 0.8:
        return -1
    return 0


def score_stochastic(stoch: StochasticResult) -> int:
    oversold = stoch.signal == OscillatorSignal.OVERSOLD
    overbought = stoch.signal == OscillatorSignal.OVERBOUGHT

    if stoch.crossover == Crossover.BULLISH_CROSSOVER and oversold:
        return 2
    if stoch.crossover == Crossover.BEARISH_CROSSOVER and overbought:
        return -2
    if (
        oversold
        or stoch.crossover == Crossover.BULLISH_CROSSOVER
        or stoch.divergence == Divergence.BULLISH_DIVERGENCE
    ):
        return 1
    if (
        overbought
        or stoch.crossover == Crossover.BEARISH_CROSSOVER
        or stoch.divergence == Divergence.BEARISH_DIVERGENCE
    ):
        return -1
    return 0


def score_williams_r(wr: WilliamsRResult) -> int:
    score = 0
    reversing = wr.reversal_signal == Reversal.STRONG_REVERSAL

    if wr.signal == OscillatorSignal.OVERSOLD:
        score += 1
    elif wr.signal == OscillatorSignal.OVERBOUGHT:
        score -= 1

    if wr.divergence == Divergence.BULLISH_DIVERGENCE or (
        reversing and wr.momentum == TrendDirection.BULLISH
    ):
        score += 1
    elif wr.divergence == Divergence.BEARISH_DIVERGENCE or (
        reversing and wr.momentum == TrendDirection.BEARISH
    ):
        score -= 1

    return max(-2, min(2, score))


def classify_overall_signal(normalized_score: float) -> OverallSignal:
    if normalized_score >= STRONG_THRESHOLD:
        return OverallSignal.STRONG_BUY
    if normalized_score >= SIGNAL_THRESHOLD:
        return OverallSignal.BUY
    if normalized_score <= -STRONG_THRESHOLD:
        return OverallSignal.STRONG_SELL
    if normalized_score <= -SIGNAL_THRESHOLD:
        return OverallSignal.SELL
    return OverallSignal.NEUTRAL


def check_volume_confirmation(
    vwap: VWAPResult, obv: OBVResult, mfi: MFIResult, cmf: CMFResult, score: int
) -> bool:
    """All four volume indicators agree with the direction of the score."""
    if score > 0:
        return (
            vwap.bias == TrendDirection.BULLISH
            and obv.signal == SignalType.BUY
            and mfi.money_flow == MoneyFlow.POSITIVE
            and cmf.flow_type == FlowType.ACCUMULATION
        )
    if score < 0:
        return (
            vwap.bias == TrendDirection.BEARISH
            and obv.signal == SignalType.SELL
            and mfi.money_flow == MoneyFlow.NEGATIVE
            and cmf.flow_type == FlowType.DISTRIBUTION
        )
    return False


def _oscillator_readings(
    rsi: RSIResult, stoch: StochasticResult, wr: WilliamsRResult, bb: BollingerBandsResult
) -> list[OscillatorSignal]:
    bb_reading = OscillatorSignal.NEUTRAL
    if bb.signal == BollingerSignal.OVERSOLD:
        bb_reading = OscillatorSignal.OVERSOLD
    elif bb.signal == BollingerSignal.OVERBOUGHT:
        bb_reading = OscillatorSignal.OVERBOUGHT
    return [rsi.signal, stoch.signal, wr.signal, bb_reading]


def has_contradiction(
    rsi: RSIResult, stoch: StochasticResult, wr: WilliamsRResult, bb: BollingerBandsResult
) -> bool:
    """At least one oscillator oversold while another is overbought."""
    readings = _oscillator_readings(rsi, stoch, wr, bb)
    return OscillatorSignal.OVERSOLD in readings and OscillatorSignal.OVERBOUGHT in readings


def count_confirmations(
    rsi: RSIResult,
    stoch: StochasticResult,
    wr: WilliamsRResult,
    bb: BollingerBandsResult,
    score: int,
) -> int:
    """Oscillators whose reading or divergence matches the score direction."""
    if score == 0:
        return 0

    if score > 0:
        wanted, divergence = OscillatorSignal.OVERSOLD, Divergence.BULLISH_DIVERGENCE
    else:
        wanted, divergence = OscillatorSignal.OVERBOUGHT, Divergence.BEARISH_DIVERGENCE

    rsi_reading, stoch_reading, wr_reading, bb_reading = _oscillator_readings(rsi, stoch, wr, bb)
    return sum(
        [
            rsi_reading == wanted,
            stoch_reading == wanted or stoch.divergence == divergence,
            wr_reading == wanted or wr.divergence == divergence,
            bb_reading == wanted,
        ]
    )


def compute_confidence(
    normalized_score: float,
    volume_confirmation: bool,
    contradictory: bool,
    confirmations: int,
) -> int:
    confidence = abs(normalized_score) * 100
    if volume_confirmation:
        confidence = min(confidence * VOLUME_CONFIRMATION_BOOST, 100)
    if contradictory:
        confidence *= CONTRADICTION_PENALTY
    if confirmations >= MIN_OSCILLATOR_CONFIRMATIONS:
        confidence = min(confidence * OSCILLATOR_CONFIRMATION_BOOST, 100)
    # Half rounds up
    return int(math.floor(confidence + 0.5))


# =============================================================================
# SERVICE
# =============================================================================


class TechnicalAnalysisService(TechnicalAnalysisServiceInterface):
    """
    Technical Analysis Service.

    Builds calculators through the registry it is given, so two services
    never share mutable state.
    """

    def __init__(self, registry: Optional[IndicatorRegistry] = None):
        self.registry = registry or IndicatorRegistry()

    @property
    def name(self) -> str:
        return "TechnicalAnalysisService"

    async def execute(self, input_data: AnalyzeRequest) -> CompositeAnalysis:
        """Analyze the bars carried by the request."""
        series = PriceSeries.from_bars(input_data.bars, symbol=input_data.symbol)
        return self.analyze(series, input_data.symbol, input_data.output_mode)

    def analyze(
        self,
        series: PriceSeries,
        symbol: str,
        output_mode: OutputMode = OutputMode.SUMMARY,
    ) -> CompositeAnalysis:
        if len(series) < MIN_ANALYSIS_BARS:
            raise InsufficientDataError(
                self.name,
                required=MIN_ANALYSIS_BARS,
                available=len(series),
                indicator="Composite analysis",
            )

        logger.info(f"Analyzing {symbol}: {len(series)} bars, mode={output_mode.value}")

        calculators = self.registry.create_many(ANALYSIS_BATTERY)
        history = {name: calc.calculate(series) for name, calc in calculators.items()}
        latest = {name: results.latest() for name, results in history.items()}

        rsi = latest["RSI"]
        macd = latest["MACD"]
        vwap = latest["VWAP"]
        obv = latest["OBV"]
        mfi = latest["MFI"]
        cmf = latest["CMF"]
        bb = latest["BOLLINGER_BANDS"]
        stoch = latest["STOCHASTIC"]
        wr = latest["WILLIAMS_R"]
        moving_averages = MovingAverages(
            ma20=latest["MA20"], ma50=latest["MA50"], ma200=latest["MA200"]
        )

        breakdown = {
            "RSI": score_rsi(rsi),
            "MACD": score_macd(macd),
            "MOVING_AVERAGES": sum(
                score_moving_average(ma)
                for ma in (moving_averages.ma20, moving_averages.ma50, moving_averages.ma200)
            ),
            "VWAP": score_vwap(vwap),
            "OBV": score_obv(obv),
            "MFI": score_mfi(mfi),
            "CMF": score_cmf(cmf),
            "BOLLINGER_BANDS": score_bollinger(bb),
            "STOCHASTIC": score_stochastic(stoch),
            "WILLIAMS_R": score_williams_r(wr),
        }
        score = sum(breakdown.values())
        normalized_score = score / MAX_SCORE
        logger.debug(f"{symbol} score breakdown: {breakdown} -> {score}/{MAX_SCORE}")

        volume_confirmation = check_volume_confirmation(vwap, obv, mfi, cmf, score)
        contradictory = has_contradiction(rsi, stoch, wr, bb)
        confirmations = count_confirmations(rsi, stoch, wr, bb, score)
        confidence = compute_confidence(
            normalized_score, volume_confirmation, contradictory, confirmations
        )
        overall_signal = classify_overall_signal(normalized_score)

        logger.info(
            f"{symbol}: {overall_signal.value} (score={score}, confidence={confidence}, "
            f"volume_confirmation={volume_confirmation})"
        )

        return CompositeAnalysis(
            symbol=symbol,
            current_price=series.last_close,
            rsi=rsi,
            macd=macd,
            moving_averages=moving_averages,
            vwap=vwap,
            obv=obv,
            mfi=mfi,
            cmf=cmf,
            bollinger_bands=bb,
            stochastic=stoch,
            williams_r=wr,
            score=score,
            max_score=MAX_SCORE,
            normalized_score=normalized_score,
            overall_signal=overall_signal,
            confidence=confidence,
            volume_confirmation=volume_confirmation,
            volatility_level=bb.volatility,
            output_mode=output_mode,
            history=history if output_mode == OutputMode.FULL_DATA else None,
        )

    def calculate(
        self,
        names: list[str],
        series: PriceSeries,
        params: Optional[dict[str, dict[str, Any]]] = None,
    ) -> dict[str, IndicatorResultSeries]:
        calculators = self.registry.create_many(names, params)
        return {name: calc.calculate(series) for name, calc in calculators.items()}

    def calculate_one(
        self,
        name: str,
        series: PriceSeries,
        params: Optional[dict[str, Any]] = None,
    ) -> IndicatorResultSeries:
        return self.registry.create(name, params).calculate(series)

    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        return True


# Singleton instance
_service_instance: Optional[TechnicalAnalysisService] = None


def get_indicator_service() -> TechnicalAnalysisService:
    """Get or create indicator service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = TechnicalAnalysisService()
    return _service_instance
