"""Counter monotonicity across scrapes"""
from typing import List, Optional

from exposition.models import MetricSet
from validator.errors import CounterValueDecreaseError, RuleViolation
from validator.state import LastScrape, is_counter_total
from .base import BaseRule, RuleScope


def is_counter_decrease(previous: float, current: float) -> bool:
    """A drop to exactly zero is a reset; any other drop is a decrease"""
    return current < previous and current != 0


class CounterDecreaseRule(BaseRule):
    """Counter totals must not go down between scrapes"""

    scope = RuleScope.CROSS_SET

    def __init__(self):
        super().__init__("counter_value_decrease", "Counter totals must not decrease between scrapes")

    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        violations = []
        checked = set()
        for sample in metric_set.samples():
            key = sample.series_key
            family = metric_set.get_family(sample.family_name)
            if key in checked or not is_counter_total(family.kind, key):
                continue
            checked.add(key)

            previous = last_scrape.get_series(key)
            if previous is None or previous.last_value is None:
                continue
            if is_counter_decrease(previous.last_value, sample.value):
                violations.append(CounterValueDecreaseError(
                    sample.family_name,
                    sample.labels,
                    sample.line_number,
                    previous=previous.last_value,
                    current=sample.value,
                ))
        return violations
