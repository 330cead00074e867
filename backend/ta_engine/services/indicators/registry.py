"""
Indicator Registry

Maps indicator names (case-insensitive, with aliases) to calculator
constructors. A registry is a plain value: build one and pass it to the
service that needs it.
"""

import inspect
import logging
from functools import partial
from typing import Any, Callable, Optional

from ta_engine.services.base import UnknownIndicatorError, ValidationError
from ta_engine.services.indicators.interface import IndicatorCalculator
from ta_engine.services.indicators.momentum import (
    AwesomeOscillatorCalculator,
    MACDCalculator,
    RSICalculator,
    StochasticCalculator,
    StochasticRSICalculator,
    WilliamsRCalculator,
)
from ta_engine.services.indicators.trend import (
    ADXCalculator,
    IchimokuCalculator,
    MovingAverageCalculator,
    ParabolicSARCalculator,
)
from ta_engine.services.indicators.volatility import (
    ATRCalculator,
    BollingerBandsCalculator,
    KeltnerChannelCalculator,
)
from ta_engine.services.indicators.volume import (
    CMFCalculator,
    ForceIndexCalculator,
    MFICalculator,
    OBVCalculator,
    VWAPCalculator,
)

logger = logging.getLogger(__name__)

CalculatorFactory = Callable[..., IndicatorCalculator]

DEFAULT_FACTORIES: dict[str, CalculatorFactory] = {
    "RSI": RSICalculator,
    "MACD": MACDCalculator,
    "MA": MovingAverageCalculator,
    "MA20": partial(MovingAverageCalculator, period=20),
    "MA50": partial(MovingAverageCalculator, period=50),
    "MA200": partial(MovingAverageCalculator, period=200),
    "BOLLINGER_BANDS": BollingerBandsCalculator,
    "STOCHASTIC": StochasticCalculator,
    "WILLIAMS_R": WilliamsRCalculator,
    "OBV": OBVCalculator,
    "MFI": MFICalculator,
    "CMF": CMFCalculator,
    "VWAP": VWAPCalculator,
    "ATR": ATRCalculator,
    "ADX": ADXCalculator,
    "ICHIMOKU": IchimokuCalculator,
    "PARABOLIC_SAR": ParabolicSARCalculator,
    "STOCHASTIC_RSI": StochasticRSICalculator,
    "AWESOME_OSCILLATOR": AwesomeOscillatorCalculator,
    "FORCE_INDEX": ForceIndexCalculator,
    "KELTNER_CHANNEL": KeltnerChannelCalculator,
}

DEFAULT_ALIASES: dict[str, str] = {
    "BB": "BOLLINGER_BANDS",
    "BOLLINGER": "BOLLINGER_BANDS",
    "STOCH": "STOCHASTIC",
    "WILLIAMS": "WILLIAMS_R",
    "PSAR": "PARABOLIC_SAR",
    "STOCHRSI": "STOCHASTIC_RSI",
    "AO": "AWESOME_OSCILLATOR",
    "FI": "FORCE_INDEX",
    "KELTNER": "KELTNER_CHANNEL",
    "SMA": "MA",
    "EMA": "MA",
}


def _accepted_params(factory: CalculatorFactory) -> set[str]:
    return {
        name
        for name, param in inspect.signature(factory).parameters.items()
        if param.kind in (param.POSITIONAL_OR_KEYWORD, param.KEYWORD_ONLY)
    }


class IndicatorRegistry:
    """Name -> constructor table for indicator calculators."""

    service_name = "IndicatorRegistry"

    def __init__(
        self,
        factories: Optional[dict[str, CalculatorFactory]] = None,
        aliases: Optional[dict[str, str]] = None,
    ):
        source = DEFAULT_FACTORIES if factories is None else factories
        self._factories = {name.upper(): factory for name, factory in source.items()}

        alias_source = DEFAULT_ALIASES if aliases is None else aliases
        self._aliases = {
            alias.upper(): target.upper()
            for alias, target in alias_source.items()
            if target.upper() in self._factories
        }

    def resolve(self, name: str) -> str:
        """Canonical name for `name` or its alias."""
        key = (name or "").strip().upper()
        key = self._aliases.get(key, key)
        if key not in self._factories:
            raise UnknownIndicatorError(self.service_name, name, self.list_available())
        return key

    def create(self, name: str, params: Optional[dict[str, Any]] = None) -> IndicatorCalculator:
        """
        Build a calculator.

        Raises:
            UnknownIndicatorError: name not registered
            ValidationError: unknown or invalid parameters
        """
        key = self.resolve(name)
        factory = self._factories[key]
        params = dict(params or {})

        unknown = set(params) - _accepted_params(factory)
        if unknown:
            raise ValidationError(
                self.service_name,
                f"Unknown parameters for {key}: {sorted(unknown)}",
                {"indicator": key, "unknown": sorted(unknown)},
            )

        try:
            calculator = factory(**params)
        except TypeError as e:
            raise ValidationError(
                self.service_name, f"Invalid parameters for {key}: {e}", {"indicator": key}
            ) from e

        logger.debug(f"Created {calculator!r} for {name} with params {params}")
        return calculator

    def create_many(
        self,
        names: list[str],
        params_by_name: Optional[dict[str, dict[str, Any]]] = None,
    ) -> dict[str, IndicatorCalculator]:
        """Build several calculators; fails on the first unknown name."""
        params_by_name = params_by_name or {}
        calculators = {}
        for name in names:
            calculators[name] = self.create(name, self._params_for(name, params_by_name))
        return calculators

    def _params_for(self, name: str, params_by_name: dict[str, dict[str, Any]]) -> dict[str, Any]:
        if name in params_by_name:
            return params_by_name[name]
        wanted = name.upper()
        for key, value in params_by_name.items():
            if key.upper() == wanted:
                return value
        return {}

    def list_available(self) -> list[str]:
        return list(self._factories)

    def list_aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    def __contains__(self, name: str) -> bool:
        key = (name or "").strip().upper()
        return self._aliases.get(key, key) in self._factories
