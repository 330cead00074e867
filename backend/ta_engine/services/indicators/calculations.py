"""
Technical Indicator Calculations

Pure Python/NumPy implementations of technical indicators.
All math is deterministic.

Every function returns arrays the same length as its input, NaN-padded
until enough history exists for a value to be defined.
"""

import numpy as np

from ta_engine.schemas.indicators import Crossover, Divergence


# =============================================================================
# ROLLING PRIMITIVES
# =============================================================================


def _first_valid_index(data: np.ndarray) -> int:
    valid = np.flatnonzero(~np.isnan(data))
    return int(valid[0]) if len(valid) > 0 else len(data)


def sma(data: np.ndarray, period: int) -> np.ndarray:
    """Simple Moving Average. A window containing NaN yields NaN."""
    result = np.full(len(data), np.nan)
    if len(data) < period:
        return result

    for i in range(period - 1, len(data)):
        result[i] = np.mean(data[i - period + 1 : i + 1])
    return result


def ema(data: np.ndarray, period: int) -> np.ndarray:
    """
    Exponential Moving Average.

    Leading NaNs are skipped. The seed is the simple mean of the first
    `period` defined values, placed on the last bar of that window.
    """
    result = np.full(len(data), np.nan)
    start = _first_valid_index(data)
    if len(data) - start < period:
        return result

    multiplier = 2 / (period + 1)

    # Start with SMA
    seed = start + period - 1
    result[seed] = np.mean(data[start : seed + 1])

    for i in range(seed + 1, len(data)):
        result[i] = (data[i] - result[i - 1]) * multiplier + result[i - 1]

    return result


def wilder_smooth(data: np.ndarray, period: int) -> np.ndarray:
    """Wilder's smoothing: avg = (avg * (period - 1) + value) / period."""
    result = np.full(len(data), np.nan)
    start = _first_valid_index(data)
    if len(data) - start < period:
        return result

    seed = start + period - 1
    result[seed] = np.mean(data[start : seed + 1])

    for i in range(seed + 1, len(data)):
        result[i] = (result[i - 1] * (period - 1) + data[i]) / period

    return result


def rolling_max(data: np.ndarray, period: int) -> np.ndarray:
    result = np.full(len(data), np.nan)
    for i in range(period - 1, len(data)):
        result[i] = np.max(data[i - period + 1 : i + 1])
    return result


def rolling_min(data: np.ndarray, period: int) -> np.ndarray:
    result = np.full(len(data), np.nan)
    for i in range(period - 1, len(data)):
        result[i] = np.min(data[i - period + 1 : i + 1])
    return result


def rolling_std(data: np.ndarray, period: int) -> np.ndarray:
    """Population standard deviation over a trailing window."""
    result = np.full(len(data), np.nan)
    for i in range(period - 1, len(data)):
        result[i] = np.std(data[i - period + 1 : i + 1])
    return result


def typical_price(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    return (highs + lows + closes) / 3


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """True Range. Undefined on the first bar (no previous close)."""
    tr = np.full(len(closes), np.nan)

    for i in range(1, len(closes)):
        tr[i] = max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )

    return tr


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


def rsi(closes: np.ndarray, period: int = 14) -> tuple[np.ndarray, np.ndarray]:
    """
    Relative Strength Index.

    Returns: (rsi, rs). When the average loss is zero, rs = 100 and rsi = 100.
    """
    rsi_values = np.full(len(closes), np.nan)
    rs_values = np.full(len(closes), np.nan)
    if len(closes) < period + 1:
        return rsi_values, rs_values

    # Calculate price changes
    deltas = np.diff(closes)

    # Separate gains and losses
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    # First average
    avg_gain = np.mean(gains[:period])
    avg_loss = np.mean(losses[:period])

    for i in range(period, len(closes)):
        if i > period:
            # Smoothed averages
            avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period

        if avg_loss == 0:
            rs_values[i] = 100
            rsi_values[i] = 100
        else:
            rs_values[i] = avg_gain / avg_loss
            rsi_values[i] = 100 - (100 / (1 + rs_values[i]))

    return rsi_values, rs_values


def macd(
    closes: np.ndarray,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    MACD (Moving Average Convergence Divergence).

    Returns: (macd_line, signal_line, histogram)
    """
    fast_ema = ema(closes, fast_period)
    slow_ema = ema(closes, slow_period)

    macd_line = fast_ema - slow_ema

    # Signal line is EMA of MACD line, seeded from its first defined values
    signal_line = ema(macd_line, signal_period)

    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def stochastic(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    k_period: int = 14,
    d_period: int = 3,
    slowing: int = 3,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Stochastic Oscillator.

    Raw %K is 50 when the window range is zero.
    Returns: (k, d)
    """
    raw_k = np.full(len(closes), np.nan)
    highest = rolling_max(highs, k_period)
    lowest = rolling_min(lows, k_period)

    for i in range(k_period - 1, len(closes)):
        if highest[i] == lowest[i]:
            raw_k[i] = 50
        else:
            raw_k[i] = ((closes[i] - lowest[i]) / (highest[i] - lowest[i])) * 100

    k = sma(raw_k, slowing) if slowing > 1 else raw_k
    d = sma(k, d_period)

    return k, d


def williams_r(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> np.ndarray:
    """Williams %R. -50 when the window range is zero."""
    result = np.full(len(closes), np.nan)
    highest = rolling_max(highs, period)
    lowest = rolling_min(lows, period)

    for i in range(period - 1, len(closes)):
        if highest[i] == lowest[i]:
            result[i] = -50
        else:
            result[i] = ((highest[i] - closes[i]) / (highest[i] - lowest[i])) * -100

    return result


def stochastic_rsi(
    closes: np.ndarray,
    rsi_period: int = 14,
    stochastic_period: int = 14,
    k_period: int = 3,
    d_period: int = 3,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Stochastic RSI.

    Returns: (stoch_rsi, k, d). Zero RSI range yields 50.
    """
    rsi_values, _ = rsi(closes, rsi_period)
    highest = rolling_max(rsi_values, stochastic_period)
    lowest = rolling_min(rsi_values, stochastic_period)

    stoch = np.full(len(closes), np.nan)
    for i in range(len(closes)):
        if np.isnan(highest[i]) or np.isnan(lowest[i]):
            continue
        if highest[i] == lowest[i]:
            stoch[i] = 50
        else:
            stoch[i] = (rsi_values[i] - lowest[i]) / (highest[i] - lowest[i]) * 100

    k = sma(stoch, k_period)
    d = sma(k, d_period)

    return stoch, k, d


def awesome_oscillator(
    highs: np.ndarray, lows: np.ndarray, fast_period: int = 5, slow_period: int = 34
) -> np.ndarray:
    """Awesome Oscillator: SMA(fast) - SMA(slow) of the median price."""
    median = (highs + lows) / 2
    return sma(median, fast_period) - sma(median, slow_period)


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def atr(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> np.ndarray:
    """Average True Range (Wilder), first defined at bar `period`."""
    return wilder_smooth(true_range(highs, lows, closes), period)


def bollinger_bands(
    closes: np.ndarray, period: int = 20, std_dev: float = 2.0
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Bollinger Bands.

    Returns: (upper, middle, lower, width, percent_b)
    width is (upper - lower) / |middle| * 100, or 0 when the middle band is 0.
    %B is 0.5 on a zero-width band.
    """
    middle = sma(closes, period)
    std = rolling_std(closes, period)

    upper = middle + (std_dev * std)
    lower = middle - (std_dev * std)

    with np.errstate(divide="ignore", invalid="ignore"):
        width = (upper - lower) / np.abs(middle) * 100
        percent_b = (closes - lower) / (upper - lower)

    flat = (upper - lower) == 0
    percent_b[flat] = 0.5
    width[middle == 0] = 0.0

    return upper, middle, lower, width, percent_b


def keltner_channel(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    period: int = 20,
    multiplier: float = 2.0,
    atr_period: int = 10,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Keltner Channel with an SMA middle line.

    Returns: (upper, middle, lower)
    """
    middle = sma(closes, period)
    atr_values = atr(highs, lows, closes, atr_period)

    upper = middle + multiplier * atr_values
    lower = middle - multiplier * atr_values

    return upper, middle, lower


# =============================================================================
# VOLUME INDICATORS
# =============================================================================


def vwap(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, volumes: np.ndarray
) -> np.ndarray:
    """Cumulative Volume Weighted Average Price from series start."""
    tp = typical_price(highs, lows, closes)
    cumulative_tpv = np.cumsum(tp * volumes)
    cumulative_volume = np.cumsum(volumes)

    # Fall back to typical price while no volume has traded
    with np.errstate(divide="ignore", invalid="ignore"):
        result = cumulative_tpv / cumulative_volume
    result[cumulative_volume == 0] = tp[cumulative_volume == 0]

    return result


def obv(closes: np.ndarray, volumes: np.ndarray) -> np.ndarray:
    """On-Balance Volume, starting from 0 on the first bar."""
    result = np.zeros(len(closes))

    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            result[i] = result[i - 1] + volumes[i]
        elif closes[i] < closes[i - 1]:
            result[i] = result[i - 1] - volumes[i]
        else:
            result[i] = result[i - 1]

    return result


def mfi(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    volumes: np.ndarray,
    period: int = 14,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Money Flow Index.

    Returns: (mfi, positive_flow_sum, negative_flow_sum) per bar.
    Zero negative flow yields 100, or 50 when both flows are zero.
    """
    tp = typical_price(highs, lows, closes)
    raw_money_flow = tp * volumes

    pos_flow = np.zeros(len(closes))
    neg_flow = np.zeros(len(closes))

    for i in range(1, len(closes)):
        if tp[i] > tp[i - 1]:
            pos_flow[i] = raw_money_flow[i]
        elif tp[i] < tp[i - 1]:
            neg_flow[i] = raw_money_flow[i]

    result = np.full(len(closes), np.nan)
    pos_sums = np.full(len(closes), np.nan)
    neg_sums = np.full(len(closes), np.nan)

    for i in range(period, len(closes)):
        pos_sum = np.sum(pos_flow[i - period + 1 : i + 1])
        neg_sum = np.sum(neg_flow[i - period + 1 : i + 1])
        pos_sums[i] = pos_sum
        neg_sums[i] = neg_sum

        if neg_sum == 0:
            result[i] = 50 if pos_sum == 0 else 100
        else:
            money_ratio = pos_sum / neg_sum
            result[i] = 100 - (100 / (1 + money_ratio))

    return result, pos_sums, neg_sums


def cmf(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    volumes: np.ndarray,
    period: int = 20,
) -> np.ndarray:
    """
    Chaikin Money Flow.

    Zero-range bars contribute a multiplier of 0; a window with no volume yields 0.
    """
    ranges = highs - lows
    with np.errstate(divide="ignore", invalid="ignore"):
        multiplier = ((closes - lows) - (highs - closes)) / ranges
    multiplier[ranges == 0] = 0.0
    flow_volume = multiplier * volumes

    result = np.full(len(closes), np.nan)
    for i in range(period - 1, len(closes)):
        volume_sum = np.sum(volumes[i - period + 1 : i + 1])
        if volume_sum == 0:
            result[i] = 0.0
        else:
            result[i] = np.sum(flow_volume[i - period + 1 : i + 1]) / volume_sum

    return result


def force_index(closes: np.ndarray, volumes: np.ndarray, period: int = 1) -> np.ndarray:
    """Force Index: EMA(period) of price change times volume."""
    raw = np.full(len(closes), np.nan)
    raw[1:] = np.diff(closes) * volumes[1:]
    return ema(raw, period)


# =============================================================================
# TREND INDICATORS
# =============================================================================


def adx(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Average Directional Index (Wilder).

    Returns: (adx, plus_di, minus_di). DI lines start at bar `period`,
    ADX at bar `2 * period - 1`.
    """
    plus_dm = np.full(len(closes), np.nan)
    minus_dm = np.full(len(closes), np.nan)

    for i in range(1, len(closes)):
        up_move = highs[i] - highs[i - 1]
        down_move = lows[i - 1] - lows[i]

        plus_dm[i] = up_move if up_move > down_move and up_move > 0 else 0.0
        minus_dm[i] = down_move if down_move > up_move and down_move > 0 else 0.0

    tr = true_range(highs, lows, closes)

    smoothed_plus_dm = wilder_smooth(plus_dm, period)
    smoothed_minus_dm = wilder_smooth(minus_dm, period)
    smoothed_tr = wilder_smooth(tr, period)

    with np.errstate(divide="ignore", invalid="ignore"):
        plus_di = 100 * (smoothed_plus_dm / smoothed_tr)
        minus_di = 100 * (smoothed_minus_dm / smoothed_tr)

    # Flat market: no true range means no directional movement
    flat = smoothed_tr == 0
    plus_di[flat] = 0.0
    minus_di[flat] = 0.0

    with np.errstate(divide="ignore", invalid="ignore"):
        dx = 100 * np.abs(plus_di - minus_di) / (plus_di + minus_di)
    dx[(plus_di + minus_di) == 0] = 0.0

    adx_result = wilder_smooth(dx, period)

    return adx_result, plus_di, minus_di


def ichimoku(
    highs: np.ndarray,
    lows: np.ndarray,
    conversion_period: int = 9,
    base_period: int = 26,
    span_period: int = 52,
    displacement: int = 26,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Ichimoku Cloud.

    Returns: (conversion, base, span_a, span_b). Spans are shifted forward
    by `displacement`, so span values at bar i were computed at i - displacement.
    """
    conversion = (rolling_max(highs, conversion_period) + rolling_min(lows, conversion_period)) / 2
    base = (rolling_max(highs, base_period) + rolling_min(lows, base_period)) / 2
    raw_span_a = (conversion + base) / 2
    raw_span_b = (rolling_max(highs, span_period) + rolling_min(lows, span_period)) / 2

    span_a = np.full(len(highs), np.nan)
    span_b = np.full(len(highs), np.nan)
    if len(highs) > displacement:
        span_a[displacement:] = raw_span_a[: len(highs) - displacement]
        span_b[displacement:] = raw_span_b[: len(highs) - displacement]

    return conversion, base, span_a, span_b


def parabolic_sar(
    highs: np.ndarray, lows: np.ndarray, step: float = 0.02, max_step: float = 0.2
) -> tuple[np.ndarray, np.ndarray]:
    """
    Parabolic SAR (Wilder stop-and-reverse).

    Starts in an uptrend with SAR at the first low.
    Returns: (sar, uptrend) where uptrend is a boolean array.
    """
    sar = np.full(len(highs), np.nan)
    uptrend = np.zeros(len(highs), dtype=bool)
    if len(highs) < 2:
        return sar, uptrend

    is_up = True
    af = step
    ep = highs[0]
    sar[0] = lows[0]
    uptrend[0] = True

    for i in range(1, len(highs)):
        current = sar[i - 1] + af * (ep - sar[i - 1])

        if is_up:
            # SAR may not move into the prior two bars' range
            current = min(current, lows[i - 1], lows[i - 2] if i >= 2 else lows[i - 1])
            if lows[i] < current:
                is_up = False
                current = ep
                ep = lows[i]
                af = step
            elif highs[i] > ep:
                ep = highs[i]
                af = min(af + step, max_step)
        else:
            current = max(current, highs[i - 1], highs[i - 2] if i >= 2 else highs[i - 1])
            if highs[i] > current:
                is_up = True
                current = ep
                ep = highs[i]
                af = step
            elif lows[i] < ep:
                ep = lows[i]
                af = min(af + step, max_step)

        sar[i] = current
        uptrend[i] = is_up

    return sar, uptrend


# =============================================================================
# SIGNAL UTILITIES
# =============================================================================


def trailing_window(values: np.ndarray, end: int, length: int) -> np.ndarray:
    """Up to `length` values ending at index `end` (inclusive)."""
    start = max(0, end - length + 1)
    return values[start : end + 1]


def detect_crossover(prev_a: float, prev_b: float, a: float, b: float) -> Crossover:
    """Classify the transition of line a against line b between two bars."""
    if np.isnan(prev_a) or np.isnan(prev_b):
        return Crossover.NONE
    if prev_a <= prev_b and a > b:
        return Crossover.BULLISH_CROSSOVER
    if prev_a >= prev_b and a < b:
        return Crossover.BEARISH_CROSSOVER
    return Crossover.NONE


def find_local_extrema(values: np.ndarray, kind: str) -> list[tuple[int, float]]:
    """
    Strict 3-point local extrema.

    kind: 'high' or 'low'
    Returns: list of (index, value), oldest first.
    """
    if kind not in ("high", "low"):
        raise ValueError(f"Unknown extrema kind: {kind}")

    extrema = []
    for i in range(1, len(values) - 1):
        current, prev, nxt = values[i], values[i - 1], values[i + 1]
        if kind == "high" and current > prev and current > nxt:
            extrema.append((i, float(current)))
        elif kind == "low" and current < prev and current < nxt:
            extrema.append((i, float(current)))
    return extrema


def detect_divergence(
    prices: np.ndarray, indicator: np.ndarray, lookback: int = 10
) -> Divergence:
    """
    Detect bullish or bearish divergence over the trailing `lookback` values.

    Bullish: price makes a lower low while the indicator makes a higher low.
    Bearish: price makes a higher high while the indicator makes a lower high.
    """
    if len(prices) < lookback or len(indicator) < lookback:
        return Divergence.NO_DIVERGENCE

    recent_prices = prices[-lookback:]
    recent_indicator = indicator[-lookback:]
    if np.isnan(recent_prices).any() or np.isnan(recent_indicator).any():
        return Divergence.NO_DIVERGENCE

    price_lows = find_local_extrema(recent_prices, "low")
    indicator_lows = find_local_extrema(recent_indicator, "low")
    if len(price_lows) >= 2 and len(indicator_lows) >= 2:
        if price_lows[-1][1] < price_lows[-2][1] and indicator_lows[-1][1] > indicator_lows[-2][1]:
            return Divergence.BULLISH_DIVERGENCE

    price_highs = find_local_extrema(recent_prices, "high")
    indicator_highs = find_local_extrema(recent_indicator, "high")
    if len(price_highs) >= 2 and len(indicator_highs) >= 2:
        if price_highs[-1][1] > price_highs[-2][1] and indicator_highs[-1][1] < indicator_highs[-2][1]:
            return Divergence.BEARISH_DIVERGENCE

    return Divergence.NO_DIVERGENCE
