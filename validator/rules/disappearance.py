"""Metric families should persist between scrapes"""
from typing import List, Optional

from exposition.models import MetricSet
from validator.errors import ErrorLevel, MetricDisappearedError, RuleViolation
from validator.state import LastScrape
from .base import BaseRule, RuleScope


class MetricDisappearanceRule(BaseRule):
    scope = RuleScope.CROSS_SET
    level = ErrorLevel.SHOULD

    def __init__(self):
        super().__init__("metric_disappeared", "Metric families should not disappear between scrapes")

    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        return [
            MetricDisappearedError(name)
            for name in last_scrape.family_names
            if name not in metric_set
        ]
