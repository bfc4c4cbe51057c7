"""OpenMetrics text exposition parsing"""
from .errors import ParseError
from .models import Label, LabelSet, MetricFamily, MetricSet, MetricType, Sample, SeriesKey
from .parser import parse_metric_set

__all__ = [
    "Label",
    "LabelSet",
    "MetricFamily",
    "MetricSet",
    "MetricType",
    "ParseError",
    "Sample",
    "SeriesKey",
    "parse_metric_set",
]
