"""Stateful validation loop over successive scrapes of one target"""
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from exposition.errors import ParseError
from exposition.models import MetricSet
from exposition.parser import parse_metric_set
from logging_config import get_logger
from validator.errors import ErrorLevel, InternalValidatorError, RuleViolation, ValidationErrors
from validator.rules import RuleRegistry
from validator.state import LastScrape


logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class ScrapeResult:
    """Outcome of validating one payload"""
    target: str
    metric_set: MetricSet
    scraped_at: float
    violations: List[RuleViolation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def error(self) -> Optional[ValidationErrors]:
        """All violations as one aggregated error, or None"""
        if not self.violations:
            return None
        return ValidationErrors(self.violations)

    def raise_for_violations(self) -> None:
        if self.violations:
            raise ValidationErrors(self.violations)


class Loop:
    """Validates successive payloads from one target.

    The loop starts cold, with no previous scrape. Every payload that
    parses becomes the baseline for cross-scrape rules on the next call,
    even when it violated rules. A payload that fails to parse leaves the
    baseline untouched.

    Only one payload may be validated at a time per loop; separate targets
    need separate loops.
    """

    def __init__(
        self,
        target: str = "",
        error_level: Union[ErrorLevel, str] = ErrorLevel.MUST,
        clock: Clock = time.time,
        require_type: bool = False,
        registry: Optional[RuleRegistry] = None,
    ):
        self.target = target
        self.error_level = ErrorLevel.parse(error_level)
        self.clock = clock
        self.require_type = require_type
        self.registry = registry or RuleRegistry()
        self._last_scrape: Optional[LastScrape] = None
        self.scrape_count = 0

    def with_error_level(self, level: Union[ErrorLevel, str]) -> "Loop":
        self.error_level = ErrorLevel.parse(level)
        return self

    def with_clock(self, clock: Clock) -> "Loop":
        self.clock = clock
        return self

    @property
    def state(self) -> Optional[LastScrape]:
        return self._last_scrape

    @property
    def is_warm(self) -> bool:
        return self._last_scrape is not None

    def reset(self) -> None:
        """Forget the previous scrape"""
        self._last_scrape = None

    def parse_and_validate(self, payload: Union[bytes, str], now: Optional[float] = None) -> ScrapeResult:
        """Parse ``payload``, apply all rules, and record it as the new baseline.

        Raises ParseError when the payload cannot be parsed. Rule violations
        at the configured level are returned on the result.
        """
        if now is None:
            now = self.clock()

        try:
            metric_set = parse_metric_set(payload, require_type=self.require_type)
        except ParseError as e:
            logger.warning(
                "Payload rejected",
                target=self.target,
                error=str(e),
                error_kind=e.kind,
                line=e.line_number,
                event_type="parse_error",
            )
            raise
        except Exception as e:
            raise InternalValidatorError(f"parser failed: {e}") from e

        found = self.registry.run_all(metric_set, self._last_scrape)
        violations = [v for v in found if self.error_level.includes(v.level)]

        self._last_scrape = LastScrape.from_metric_set(metric_set, scraped_at=now)
        self.scrape_count += 1

        logger.debug(
            "Payload validated",
            target=self.target,
            families=len(metric_set),
            violations=len(violations),
            suppressed=len(found) - len(violations),
            event_type="validation_complete",
        )
        return ScrapeResult(
            target=self.target,
            metric_set=metric_set,
            scraped_at=now,
            violations=violations,
        )
