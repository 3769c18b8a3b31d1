"""
Rule name classification.

The rule engine has no severity field, so the category of a rule is read
from its name:

    warn, warn_<anything>                       -> warning
    deny, deny_<anything>, violation[_<...>]    -> failure
    exception                                   -> exception
    everything else                             -> ignored

The warning and failure prefixes differ, so no name can be both.
"""

import re

from confcheck.schema import Category


WARN_QUERY = re.compile(r"warn(_.+)?")
FAIL_QUERY = re.compile(r"(deny|violation)(_.+)?")
EXCEPTION_RULE = "exception"

_RULE_PREFIX = re.compile(r"^(deny|violation|warn)_")


def is_warning(name: str) -> bool:
    """Whether a rule name is a warning rule."""
    return WARN_QUERY.fullmatch(name) is not None


def is_failure(name: str) -> bool:
    """Whether a rule name is a failure rule."""
    return FAIL_QUERY.fullmatch(name) is not None


def is_exception(name: str) -> bool:
    """Whether a rule name is the exception rule."""
    return name == EXCEPTION_RULE


def classify(name: str) -> Category:
    """Classify a rule name into exactly one category."""
    if is_warning(name):
        return Category.WARNING
    if is_failure(name):
        return Category.FAILURE
    if is_exception(name):
        return Category.EXCEPTION
    return Category.IGNORED


def strip_rule_prefix(name: str) -> str:
    """
    Remove the category prefix from a rule name.

    Exception rules may list the names they except without the prefix, so
    `deny_run_as_root` is excepted by `run_as_root`. Bare `deny`, `warn`
    and `violation` have no suffix and are returned unchanged.
    """
    return _RULE_PREFIX.sub("", name, count=1)
