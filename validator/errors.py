"""Error taxonomy for scrape validation"""
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from exposition.errors import ParseError
from exposition.models import LabelSet


class ErrorLevel(Enum):
    """Rule strata, also used to select which strata a loop reports"""
    MUST = "must"
    SHOULD = "should"

    def includes(self, level: "ErrorLevel") -> bool:
        """Whether violations at ``level`` are reported when running at this level"""
        if self == ErrorLevel.SHOULD:
            return True
        return level == ErrorLevel.MUST

    @classmethod
    def parse(cls, value) -> "ErrorLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"invalid error level {value!r}, expected must or should") from None


class ConfigurationError(Exception):
    """Invalid configuration, fatal at startup"""


class InternalValidatorError(ParseError):
    """Unexpected failure inside the validator, treated like a parse error"""

    kind = "internal"

    def __init__(self, message: str):
        super().__init__(f"internal validator error: {message}")


class RuleViolation(Exception):
    """A single rule violation found in a scrape.

    ``str()`` is the canonical message; the offending series and values are
    kept on the instance for diagnostics.
    """

    kind = "violation"
    level = ErrorLevel.MUST
    message = ""

    def __init__(
        self,
        family_name: str,
        labels: Optional[LabelSet] = None,
        line_number: int = 0,
        **detail: Any,
    ):
        super().__init__(self.message)
        self.family_name = family_name
        self.labels = labels if labels is not None else LabelSet()
        self.line_number = line_number
        self.detail: Dict[str, Any] = detail

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "level": self.level.value,
            "message": str(self),
            "family": self.family_name,
            "labels": self.labels.as_dict(),
            "line": self.line_number,
            "detail": self.detail,
        }


class CounterValueDecreaseError(RuleViolation):
    kind = "counter_value_decrease"
    message = "counter value must not decrease"


class TimestampDecreaseError(RuleViolation):
    kind = "timestamp_decrease"
    message = "timestamp must not decrease"


class MetricTypeChangeError(RuleViolation):
    kind = "metric_type_change"
    message = "metric type must not change"


class MetricDisappearedError(RuleViolation):
    kind = "metric_disappeared"
    level = ErrorLevel.SHOULD
    message = "metric should not disappear"


class DuplicateLabelSetError(RuleViolation):
    kind = "duplicate_label_set"
    level = ErrorLevel.SHOULD
    message = "duplicate label set across families"


class ValidationErrors(Exception):
    """All rule violations reported for one scrape, in report order"""

    def __init__(self, violations: Iterable[RuleViolation]):
        self.violations: List[RuleViolation] = list(violations)
        super().__init__(str(self))

    def __str__(self) -> str:
        return "\n".join(str(violation) for violation in self.violations)

    def __iter__(self) -> Iterator[RuleViolation]:
        return iter(self.violations)

    def __len__(self) -> int:
        return len(self.violations)

    @property
    def must(self) -> List[RuleViolation]:
        return [v for v in self.violations if v.level == ErrorLevel.MUST]

    @property
    def should(self) -> List[RuleViolation]:
        return [v for v in self.violations if v.level == ErrorLevel.SHOULD]
