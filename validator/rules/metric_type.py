"""Metric family type stability across scrapes"""
from typing import List, Optional

from exposition.models import MetricSet
from validator.errors import MetricTypeChangeError, RuleViolation
from validator.state import LastScrape
from .base import BaseRule, RuleScope


class MetricTypeStabilityRule(BaseRule):
    """A family keeps its type from one scrape to the next"""

    scope = RuleScope.CROSS_SET

    def __init__(self):
        super().__init__("metric_type_change", "Metric family types must not change between scrapes")

    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        violations = []
        for family in metric_set:
            previous_kind = last_scrape.family_kind.get(family.name)
            if previous_kind is None or previous_kind == family.kind:
                continue
            line_number = family.samples[0].line_number if family.samples else 0
            violations.append(MetricTypeChangeError(
                family.name,
                line_number=line_number,
                previous=previous_kind.value,
                current=family.kind.value,
            ))
        return violations
