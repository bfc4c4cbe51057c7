"""Rule registry for discovering rules and running them over a scrape"""
import importlib
import inspect
import pkgutil
from typing import Dict, List, Optional

from exposition.models import MetricSet
from logging_config import get_logger
from validator.errors import InternalValidatorError, RuleViolation
from validator.state import LastScrape
from .base import BaseRule, RuleScope


logger = get_logger(__name__)

_SKIPPED_MODULES = (".base", ".registry")


def _report_order(violation: RuleViolation):
    # Violations without a sample line (e.g. a vanished family) go last
    return (violation.line_number == 0, violation.line_number)


class RuleRegistry:
    """Central registry for all validation rules"""

    def __init__(self, auto_discover: bool = True):
        self.rules: Dict[str, BaseRule] = {}
        if auto_discover:
            self.auto_discover_rules()

    def auto_discover_rules(self):
        """Discover and register every rule class in the rules package"""
        from validator import rules

        for _, modname, _ in sorted(pkgutil.iter_modules(rules.__path__, rules.__name__ + ".")):
            if modname.endswith(_SKIPPED_MODULES):
                continue

            module = importlib.import_module(modname)
            for attr_name in dir(module):
                attr = getattr(module, attr_name)
                if (isinstance(attr, type) and
                        issubclass(attr, BaseRule) and
                        attr.__module__ == module.__name__ and
                        not inspect.isabstract(attr)):
                    self.register_rule(attr())

    def register_rule(self, rule: BaseRule):
        """Register a new rule"""
        if not isinstance(rule, BaseRule):
            raise ValueError("Rule must inherit from BaseRule")

        self.rules[rule.name] = rule
        logger.debug("Registered rule", rule=rule.name, level=rule.level.value, event_type="rule_registered")

    def get_rule(self, name: str) -> Optional[BaseRule]:
        return self.rules.get(name)

    def list_rules(self) -> List[str]:
        return list(self.rules.keys())

    def run_all(self, metric_set: MetricSet, last_scrape: Optional[LastScrape]) -> List[RuleViolation]:
        """Run every rule, returning per-set violations before cross-set ones.

        Within each group violations follow payload order. Any unexpected
        exception from a rule is raised as InternalValidatorError.
        """
        groups: Dict[RuleScope, List[RuleViolation]] = {RuleScope.PER_SET: [], RuleScope.CROSS_SET: []}

        for name, rule in self.rules.items():
            if not rule.applies(last_scrape):
                continue
            try:
                groups[rule.scope].extend(rule.check(metric_set, last_scrape))
            except Exception as e:
                logger.error("Rule failed", rule=name, error=str(e), event_type="rule_error", exc_info=True)
                raise InternalValidatorError(f"rule {name} failed: {e}") from e

        return (sorted(groups[RuleScope.PER_SET], key=_report_order) +
                sorted(groups[RuleScope.CROSS_SET], key=_report_order))

    def get_rule_status(self) -> Dict[str, Dict]:
        """Get status information for all rules"""
        return {
            name: {
                "level": rule.level.value,
                "scope": rule.scope.value,
                "class": rule.__class__.__name__,
                "help": rule.help_text,
            }
            for name, rule in self.rules.items()
        }
