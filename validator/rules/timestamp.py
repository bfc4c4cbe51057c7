"""Timestamp ordering within a payload and across scrapes"""
from typing import Dict, List, Optional

from exposition.models import MetricSet, Sample, SeriesKey
from validator.errors import RuleViolation, TimestampDecreaseError
from validator.state import LastScrape
from .base import BaseRule, RuleScope


class TimestampInSetRule(BaseRule):
    """Repeated samples of one series must have non-decreasing timestamps"""

    def __init__(self):
        super().__init__("timestamp_decrease_in_set", "Timestamps must not decrease within a payload")

    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        violations = []
        latest: Dict[SeriesKey, float] = {}
        for sample in metric_set.samples():
            if sample.timestamp is None:
                continue
            key = sample.series_key
            previous = latest.get(key)
            if previous is not None and sample.timestamp < previous:
                violations.append(TimestampDecreaseError(
                    sample.family_name,
                    sample.labels,
                    sample.line_number,
                    previous=previous,
                    current=sample.timestamp,
                ))
                continue
            latest[key] = sample.timestamp
        return violations


class TimestampAcrossSetsRule(BaseRule):
    """The latest timestamp of a series must not go back between scrapes"""

    scope = RuleScope.CROSS_SET

    def __init__(self):
        super().__init__("timestamp_decrease_across_sets", "Timestamps must not decrease between scrapes")

    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        latest: Dict[SeriesKey, float] = {}
        first_sample: Dict[SeriesKey, Sample] = {}
        for sample in metric_set.samples():
            if sample.timestamp is None:
                continue
            key = sample.series_key
            first_sample.setdefault(key, sample)
            if key not in latest or sample.timestamp > latest[key]:
                latest[key] = sample.timestamp

        violations = []
        for key, timestamp in latest.items():
            previous = last_scrape.get_series(key)
            if previous is None or previous.last_timestamp is None:
                continue
            if timestamp < previous.last_timestamp:
                sample = first_sample[key]
                violations.append(TimestampDecreaseError(
                    sample.family_name,
                    sample.labels,
                    sample.line_number,
                    previous=previous.last_timestamp,
                    current=timestamp,
                ))
        return violations
