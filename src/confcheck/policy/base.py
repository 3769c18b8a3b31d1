"""
Base classes for confcheck rule engines.

The aggregator never looks inside a rule language. It talks to a rule
engine through two operations:

    compile(sources) -> CompiledPolicy
    query(policy, namespace, rule, document, store, cancel) -> list of values

This keeps classification and aggregation independent of the engine, so
the bundled Python engine can be swapped for another evaluator.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from confcheck.errors import EvaluationCancelledError


class CompiledPolicy(ABC):
    """
    An opaque, immutable compiled rule set.

    Implementations expose just enough structure for the aggregator to
    decide what to query: the namespaces present and the rule names defined
    in each one.
    """

    @property
    @abstractmethod
    def namespaces(self) -> list[str]:
        """Namespaces defined by the policy, in first-seen order."""
        ...

    @abstractmethod
    def rule_names(self, namespace: str) -> list[str]:
        """Rule names defined in a namespace, in definition order."""
        ...

    @property
    @abstractmethod
    def sources(self) -> list[str]:
        """The rule files this policy was compiled from."""
        ...


class RuleEngine(ABC):
    """
    Abstract base class for rule engines.

    Implementations:
        - PythonRuleEngine: Rule files are Python modules

    Contract:
        - compile() raises CompilationError for any invalid source
        - query() returns the raw values a rule produced for one document;
          an empty list means the rule did not fire
        - query() raises EvaluationError when a rule fails and
          EvaluationCancelledError once cancel is set
        - Neither operation keeps state between calls
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the engine's name for logging."""
        ...

    @abstractmethod
    def compile(self, sources: Sequence[str | Path]) -> CompiledPolicy:
        """
        Compile rule sources into a policy.

        Args:
            sources: Rule files and/or directories of rule files

        Returns:
            CompiledPolicy ready to be queried

        Raises:
            CompilationError: If any source cannot be compiled
        """
        ...

    @abstractmethod
    def query(
        self,
        policy: CompiledPolicy,
        namespace: str,
        rule: str,
        document: Any,
        store: Mapping[str, Any],
        cancel: threading.Event | None = None,
    ) -> list[Any]:
        """
        Evaluate one rule against one document.

        Args:
            policy: Policy returned by compile()
            namespace: Namespace the rule lives in
            rule: Rule name
            document: Decoded document (read-only)
            store: Per-evaluation data store (read-only)
            cancel: Event set by the caller to abort the evaluation

        Returns:
            Raw values produced by the rule, in order

        Raises:
            EvaluationError: If the rule fails
            EvaluationCancelledError: If cancel is set
        """
        ...


def check_cancelled(
    cancel: threading.Event | None,
    rule: str = "",
    namespace: str = "",
) -> None:
    """Raise EvaluationCancelledError if the caller asked to stop."""
    if cancel is not None and cancel.is_set():
        raise EvaluationCancelledError(rule=rule, namespace=namespace)
