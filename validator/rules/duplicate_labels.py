"""Label sets shared between families within one payload"""
import math
from typing import Dict, List, Optional, Set, Tuple

from exposition.models import LabelSet, MetricSet
from validator.errors import DuplicateLabelSetError, ErrorLevel, RuleViolation
from validator.state import LastScrape
from .base import BaseRule


class DuplicateLabelSetRule(BaseRule):
    """Two families should not expose the same label set with the same value.

    Such samples only differ by their family name, which usually means one
    metric is exported twice under different names.
    """

    level = ErrorLevel.SHOULD

    def __init__(self):
        super().__init__("duplicate_label_set", "Families should not share identical label sets and values")

    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        violations = []
        owners: Dict[Tuple[LabelSet, object], str] = {}
        reported: Set[Tuple[LabelSet, object, str]] = set()

        for sample in metric_set.samples():
            # NaN never equals itself, so compare it by name
            value = "NaN" if math.isnan(sample.value) else sample.value
            token = (sample.labels, value)
            owner = owners.setdefault(token, sample.family_name)
            if owner == sample.family_name or (token + (sample.family_name,)) in reported:
                continue
            reported.add(token + (sample.family_name,))
            violations.append(DuplicateLabelSetError(
                sample.family_name,
                sample.labels,
                sample.line_number,
                other_family=owner,
                value=sample.value,
            ))
        return violations
