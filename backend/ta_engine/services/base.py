"""
Service Contracts and Errors

Services take a validated request model and return a response model.
Failures surface as ServiceError subclasses; the API layer maps each
subclass to an HTTP status.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for the market data and analysis services.

    InputT is the request model (KlineRequest, AnalyzeRequest),
    OutputT what execute() hands back (PriceSeries, CompositeAnalysis).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name used in logs and error payloads."""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """
        Run the service on one request.

        Raises:
            ServiceError: On invalid input, short series or exchange failures
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass


# =============================================================================
# ERRORS
# =============================================================================


class ServiceError(Exception):
    """Base exception carrying the failing service and structured details."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class ValidationError(ServiceError):
    """Bad indicator parameters or request arguments."""
    pass


class ExternalAPIError(ServiceError):
    """Exchange request failed or returned an unexpected payload."""
    pass


class RateLimitError(ExternalAPIError):
    """Exchange request weight exceeded (HTTP 429/418)."""
    pass


class InsufficientDataError(ServiceError):
    """Series shorter than an indicator's minimum history."""

    def __init__(self, service_name: str, required: int, available: int, indicator: str = None):
        subject = indicator or service_name
        super().__init__(
            service_name,
            f"{subject} requires at least {required} bars, got {available}",
            {"indicator": subject, "required": required, "available": available},
        )
        self.required = required
        self.available = available


class UnknownIndicatorError(ServiceError):
    """Indicator name not present in the registry."""

    def __init__(self, service_name: str, name: str, available: list[str]):
        super().__init__(
            service_name,
            f"Unknown indicator: {name}",
            {"name": name, "available": available},
        )
        self.name = name
