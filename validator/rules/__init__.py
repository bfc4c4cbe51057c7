"""Validation rules applied to each scrape"""
from .base import BaseRule, RuleScope
from .registry import RuleRegistry

__all__ = ["BaseRule", "RuleRegistry", "RuleScope"]
