"""Stateful OpenMetrics scrape validation"""
from .errors import (
    ConfigurationError,
    CounterValueDecreaseError,
    DuplicateLabelSetError,
    ErrorLevel,
    InternalValidatorError,
    MetricDisappearedError,
    MetricTypeChangeError,
    RuleViolation,
    TimestampDecreaseError,
    ValidationErrors,
)
from .loop import Loop, ScrapeResult
from .state import LastScrape, SeriesState

__all__ = [
    "ConfigurationError",
    "CounterValueDecreaseError",
    "DuplicateLabelSetError",
    "ErrorLevel",
    "InternalValidatorError",
    "LastScrape",
    "Loop",
    "MetricDisappearedError",
    "MetricTypeChangeError",
    "RuleViolation",
    "ScrapeResult",
    "SeriesState",
    "TimestampDecreaseError",
    "ValidationErrors",
]
