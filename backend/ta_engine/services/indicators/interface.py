"""
Indicator Engine Service Interface

Defines the contract for the indicator calculation layer:
    - IndicatorCalculator: one indicator family over a PriceSeries
    - TechnicalAnalysisServiceInterface: composite analysis over a battery of calculators
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ta_engine.services.base import BaseService, InsufficientDataError, ValidationError
from ta_engine.schemas.market import OHLCVData, PriceSeries
from ta_engine.schemas.indicators import (
    AnalyzeRequest,
    CompositeAnalysis,
    IndicatorResultSeries,
    OutputMode,
)


class IndicatorCalculator(ABC):
    """
    Indicator Calculator Contract.

    INPUT: PriceSeries (oldest bar first)

    OUTPUT: IndicatorResultSeries
        - values[i] corresponds to series[offset + i]
        - len(values) == len(series) - offset

    Raises InsufficientDataError when len(series) < minimum_required.
    """

    name: str = "INDICATOR"

    @property
    @abstractmethod
    def offset(self) -> int:
        """Index of the first bar with a fully defined result."""
        pass

    @property
    def minimum_required(self) -> int:
        return self.offset + 1

    def calculate(self, series: PriceSeries) -> IndicatorResultSeries:
        """Compute the full aligned result sequence."""
        if len(series) < self.minimum_required:
            raise InsufficientDataError(
                self.name, required=self.minimum_required, available=len(series)
            )

        values = self._compute(series.to_arrays())
        return IndicatorResultSeries(indicator=self.name, offset=self.offset, values=values)

    def latest(self, series: PriceSeries) -> Any:
        """Result for the last bar only."""
        return self.calculate(series).latest()

    @abstractmethod
    def _compute(self, data: OHLCVData) -> list:
        """Build one result per bar from `offset` to the end."""
        pass

    def _require_positive(self, **params: float) -> None:
        for key, value in params.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValidationError(self.name, f"{key} must be positive, got {value!r}")

    def _require_period(self, **params: int) -> None:
        """Window lengths index into arrays, so they must be whole bar counts."""
        for key, value in params.items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(self.name, f"{key} must be an integer, got {value!r}")
        self._require_positive(**params)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name} offset={self.offset}>"


class TechnicalAnalysisServiceInterface(BaseService[AnalyzeRequest, CompositeAnalysis]):
    """
    Technical Analysis Service Contract.

    INPUT: AnalyzeRequest
        - symbol, bars, output_mode

    OUTPUT: CompositeAnalysis
        - latest value of each battery indicator
        - overall_signal, confidence, volume_confirmation, volatility_level
    """

    @property
    def name(self) -> str:
        return "TechnicalAnalysisService"

    @abstractmethod
    async def execute(self, input_data: AnalyzeRequest) -> CompositeAnalysis:
        """Analyze caller-supplied bars."""
        pass

    @abstractmethod
    def analyze(
        self,
        series: PriceSeries,
        symbol: str,
        output_mode: OutputMode = OutputMode.SUMMARY,
    ) -> CompositeAnalysis:
        """
        Run the full indicator battery and score it.

        Args:
            series: At least 200 bars
            symbol: Symbol the bars belong to
            output_mode: summary, or full_data to attach every result sequence

        Returns:
            Composite analysis with overall signal and confidence
        """
        pass

    @abstractmethod
    def calculate(
        self,
        names: list[str],
        series: PriceSeries,
        params: Optional[dict[str, dict[str, Any]]] = None,
    ) -> dict[str, IndicatorResultSeries]:
        """Calculate named indicators, keyed by the requested name."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        pass
