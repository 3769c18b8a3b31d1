"""
Policy module for confcheck.

This module holds everything that knows about rules:

    - queries: Classify rule names into warning/failure/exception/ignored
    - base: The narrow RuleEngine interface the aggregator depends on
    - loader: The bundled engine, which runs Python rule modules

Rule severity is carried by the rule name alone (deny_*, warn_*,
violation_*), so classification is pure string matching.
"""

from confcheck.policy.base import CompiledPolicy, RuleEngine
from confcheck.policy.loader import PythonPolicy, PythonRuleEngine
from confcheck.policy.queries import (
    classify,
    is_exception,
    is_failure,
    is_warning,
    strip_rule_prefix,
)

__all__ = [
    "CompiledPolicy",
    "RuleEngine",
    "PythonPolicy",
    "PythonRuleEngine",
    "classify",
    "is_exception",
    "is_failure",
    "is_warning",
    "strip_rule_prefix",
]
