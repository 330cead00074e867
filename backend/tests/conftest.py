import pytest
from datetime import datetime, timedelta, timezone

import numpy as np

from ta_engine.schemas.market import Interval, PriceBar, PriceSeries

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_series(closes, spread=0.5, volumes=None, symbol="TESTUSDT"):
    """Bars around the given closes: open at the previous close, wicks `spread` beyond the body."""
    bars = []
    previous = closes[0]
    for i, close in enumerate(closes):
        open_ = previous
        bars.append(
            PriceBar(
                timestamp=START + timedelta(days=i),
                open=open_,
                high=max(open_, close) + spread,
                low=min(open_, close) - spread,
                close=close,
                volume=1000.0 if volumes is None else volumes[i],
            )
        )
        previous = close
    return PriceSeries.from_bars(bars, symbol=symbol, interval=Interval.D1)


def rising_series(n, start=100.0, step=1.0):
    return build_series([start + i * step for i in range(n)])


def falling_series(n, start=1000.0, step=1.0):
    return build_series([start - i * step for i in range(n)])


def flat_series(n, price=100.0, volume=1000.0):
    bars = [
        PriceBar(
            timestamp=START + timedelta(days=i),
            open=price,
            high=price,
            low=price,
            close=price,
            volume=volume,
        )
        for i in range(n)
    ]
    return PriceSeries.from_bars(bars, symbol="FLATUSDT", interval=Interval.D1)


def random_walk_series(n, seed=42, start=100.0):
    rng = np.random.default_rng(seed)
    closes = [start]
    for _ in range(n - 1):
        closes.append(closes[-1] * (1 + rng.normal(0, 0.015)))
    volumes = rng.uniform(500, 1500, size=n)

    bars = []
    previous = closes[0]
    for i, close in enumerate(closes):
        open_ = previous
        top = max(open_, close)
        bottom = min(open_, close)
        bars.append(
            PriceBar(
                timestamp=START + timedelta(days=i),
                open=open_,
                high=top * (1 + rng.uniform(0, 0.01)),
                low=bottom * (1 - rng.uniform(0, 0.01)),
                close=close,
                volume=float(volumes[i]),
            )
        )
        previous = close
    return PriceSeries.from_bars(bars, symbol="WALKUSDT", interval=Interval.D1)


@pytest.fixture
def rising():
    return rising_series(250)


@pytest.fixture
def falling():
    return falling_series(250)


@pytest.fixture
def flat():
    return flat_series(250)


@pytest.fixture
def walk():
    return random_walk_series(300)
