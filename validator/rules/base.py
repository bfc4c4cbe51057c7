"""Base class for validation rules"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from exposition.models import MetricSet
from validator.errors import ErrorLevel, RuleViolation
from validator.state import LastScrape


class RuleScope(Enum):
    """Whether a rule looks at one payload or compares against the previous scrape"""
    PER_SET = "per_set"
    CROSS_SET = "cross_set"


class BaseRule(ABC):
    """Base class for all validation rules"""

    scope = RuleScope.PER_SET
    level = ErrorLevel.MUST

    def __init__(self, name: str = "", help_text: str = ""):
        self._name = name
        self._help_text = help_text

    @abstractmethod
    def check(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        """Return the violations found in ``metric_set``, in payload order"""
        pass

    @property
    def name(self) -> str:
        return self._name

    @property
    def help_text(self) -> str:
        return self._help_text or f"{self.name} rule"

    def applies(self, last_scrape: Optional[LastScrape]) -> bool:
        """Cross-set rules only run once there is a previous scrape"""
        if self.scope == RuleScope.CROSS_SET:
            return last_scrape is not None
        return True
