"""
Result aggregation for confcheck.

TestRun is the orchestration layer that evaluates documents against a
compiled policy and classifies what the rules report. It coordinates:
- Rule Engine: Runs a rule against a document
- Query Classifier: Decides what each rule name means
- ResultSet: Collects the classified outcomes

Evaluation Flow (per document, then per namespace):
    1. List the namespace's rules and classify them by name
    2. Query the `exception` rule for the names it excepts
    3. For each warning/failure rule:
        a. If excepted (by full name or by name without its prefix):
           record an exception and skip the rule
        b. Otherwise query it: every message is a warning/failure,
           no message at all is a success
    4. Record exception entries that matched no rule

Exception records: `rule` is the excepted rule, or the entry itself when
it matched no rule. `metadata["exception"]` always holds the entry exactly
as the exception rule produced it.

Rules receive a deep copy of the document and a read-only deep copy of
the data store on every query, so nothing a rule changes is seen by later
queries or by the caller.
    5. Concatenate buckets in document order, then namespace order

Any compilation or evaluation error aborts the whole run; partial results
are discarded.
"""

import copy
import logging
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

from confcheck.errors import (
    EvaluationError,
    EvaluationTimeoutError,
    RuleOutputError,
)
from confcheck.policy.base import CompiledPolicy, RuleEngine, check_cancelled
from confcheck.policy.loader import PythonRuleEngine
from confcheck.policy.queries import EXCEPTION_RULE, classify, strip_rule_prefix
from confcheck.schema import DEFAULT_NAMESPACE, Category, CheckResult, ResultSet

logger = logging.getLogger(__name__)


class TestRun:
    """
    Evaluates documents against a compiled policy.

    A TestRun holds only read-only configuration. Every call to
    get_result() builds its own result buckets and every query gets its own
    copies of the document and data store, so the same TestRun can be
    reused and always gives the same answer for the same input.

    Usage:
        run = TestRun.from_paths(["policy/"])
        results = run.get_result(documents, ["main"])
        if results.failures:
            ...

    Attributes:
        policy: The compiled policy to evaluate
        engine: Rule engine that compiled the policy
        data: Extra data exposed to rules (copied per evaluation)
        timeout_seconds: Optional deadline for a whole evaluation
    """

    __test__ = False

    def __init__(
        self,
        policy: CompiledPolicy,
        engine: RuleEngine | None = None,
        data: Mapping[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        """
        Initialize the run.

        Args:
            policy: Compiled policy, as returned by engine.compile()
            engine: Rule engine for queries (defaults to PythonRuleEngine)
            data: Extra data exposed to rules as `data`
            timeout_seconds: Deadline for each get_result() call
        """
        self.policy = policy
        self.engine = engine or PythonRuleEngine()
        self.data = dict(data or {})
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_paths(
        cls,
        sources: Sequence[str | Path],
        engine: RuleEngine | None = None,
        data: Mapping[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> "TestRun":
        """
        Compile rule sources and build a run for them.

        Raises:
            CompilationError: If the sources cannot be compiled
        """
        engine = engine or PythonRuleEngine()
        policy = engine.compile(sources)
        return cls(policy, engine=engine, data=data, timeout_seconds=timeout_seconds)

    def get_result(
        self,
        documents: Sequence[Any],
        namespaces: Sequence[str] | None = None,
        all_namespaces: bool = False,
        filenames: Sequence[str | None] | None = None,
        cancel: threading.Event | None = None,
    ) -> ResultSet:
        """
        Evaluate every document in every namespace.

        Args:
            documents: Decoded documents, evaluated independently and in order
            namespaces: Namespaces to query; empty or None means ["main"]
            all_namespaces: Query every namespace in the policy instead
            filenames: Source file for each document, recorded on results
            cancel: Event the caller sets to abort the evaluation

        Returns:
            ResultSet with successes, failures, warnings and exceptions

        Raises:
            EvaluationError: If any rule fails, times out or is cancelled
        """
        if isinstance(documents, (str, bytes, Mapping)):
            msg = "documents must be a sequence of documents"
            raise TypeError(msg)
        if filenames is not None and len(filenames) != len(documents):
            msg = "filenames must have one entry per document"
            raise ValueError(msg)

        if all_namespaces:
            selected = self.policy.namespaces
        else:
            selected = list(namespaces or []) or [DEFAULT_NAMESPACE]

        deadline = (
            time.monotonic() + self.timeout_seconds
            if self.timeout_seconds is not None
            else None
        )

        buckets: list[ResultSet] = []
        for index, document in enumerate(documents):
            filename = filenames[index] if filenames is not None else None
            for namespace in selected:
                try:
                    bucket = self._evaluate(
                        document=document,
                        index=index,
                        filename=filename,
                        namespace=namespace,
                        store=self.data,
                        cancel=cancel,
                        deadline=deadline,
                    )
                except EvaluationError as e:
                    if e.document_index is not None:
                        raise
                    raise replace(
                        e,
                        message="",
                        document_index=index,
                        context=dict(e.context),
                    ) from e
                logger.debug(
                    "Document %d in %s: %s",
                    index,
                    namespace,
                    bucket.counts(),
                )
                buckets.append(bucket)

        return ResultSet.concat(buckets)

    def _evaluate(
        self,
        document: Any,
        index: int,
        filename: str | None,
        namespace: str,
        store: Mapping[str, Any],
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> ResultSet:
        """Evaluate one document in one namespace and reconcile exceptions."""

        def record(rule: str, message: str | None = None, metadata: dict[str, Any] | None = None) -> CheckResult:
            return CheckResult(
                rule=rule,
                message=message,
                metadata=metadata or {},
                namespace=namespace,
                document_index=index,
                filename=filename,
                document=document,
            )

        def run_query(rule: str) -> list[Any]:
            check_cancelled(cancel, rule=rule, namespace=namespace)
            if deadline is not None and time.monotonic() >= deadline:
                raise EvaluationTimeoutError(
                    rule=rule,
                    namespace=namespace,
                    timeout_seconds=self.timeout_seconds or 0,
                )
            return self.engine.query(
                self.policy,
                namespace,
                rule,
                copy.deepcopy(document),
                MappingProxyType(copy.deepcopy(store)),
                cancel,
            )

        rule_names = self.policy.rule_names(namespace)

        excepted: list[str] = []
        if EXCEPTION_RULE in rule_names:
            for value in run_query(EXCEPTION_RULE):
                for name in _exception_names(value, namespace, index):
                    if name not in excepted:
                        excepted.append(name)

        successes: list[CheckResult] = []
        failures: list[CheckResult] = []
        warnings: list[CheckResult] = []
        exceptions: list[CheckResult] = []
        matched: set[str] = set()

        for rule in rule_names:
            category = classify(rule)
            if category is Category.IGNORED:
                logger.debug("Ignoring rule %s.%s", namespace, rule)
                continue
            if category is Category.EXCEPTION:
                continue

            entry = _matching_exception(rule, excepted)
            if entry is not None:
                matched.add(entry)
                exceptions.append(record(rule, metadata={"exception": entry}))
                continue

            target = warnings if category is Category.WARNING else failures
            values = run_query(rule)
            if not values:
                successes.append(record(rule))
            for value in values:
                message, metadata = _parse_rule_value(value, rule, namespace, index)
                target.append(record(rule, message, metadata))

        for entry in excepted:
            if entry not in matched:
                exceptions.append(record(entry, metadata={"exception": entry}))

        return ResultSet(
            successes=successes,
            failures=failures,
            warnings=warnings,
            exceptions=exceptions,
        )


def combine_documents(
    documents: Sequence[Any],
    filenames: Sequence[str],
) -> list[Any]:
    """
    Wrap every document into a single combined document.

    The combined document is a list of {"path": ..., "contents": ...}
    entries, so one rule can compare documents from different files.
    """
    return [
        [
            {"path": filename, "contents": document}
            for filename, document in zip(filenames, documents, strict=True)
        ]
    ]


def _matching_exception(rule: str, excepted: list[str]) -> str | None:
    """The exception entry that names rule, in full or without its prefix."""
    if rule in excepted:
        return rule
    short_name = strip_rule_prefix(rule)
    if short_name != rule and short_name in excepted:
        return short_name
    return None


def _parse_rule_value(
    value: Any,
    rule: str,
    namespace: str,
    index: int,
) -> tuple[str, dict[str, Any]]:
    """Split a rule value into its message and metadata."""
    if isinstance(value, str):
        return value, {}
    if isinstance(value, Mapping):
        if "msg" not in value:
            raise RuleOutputError(
                rule=rule,
                namespace=namespace,
                document_index=index,
                underlying_error="rule result missing 'msg' field",
                value=value,
            )
        if not isinstance(value["msg"], str):
            raise RuleOutputError(
                rule=rule,
                namespace=namespace,
                document_index=index,
                underlying_error="'msg' field must be a string",
                value=value,
            )
        return value["msg"], {k: v for k, v in value.items() if k != "msg"}
    raise RuleOutputError(
        rule=rule,
        namespace=namespace,
        document_index=index,
        underlying_error=f"unsupported value type {type(value).__name__}",
        value=value,
    )


def _exception_names(value: Any, namespace: str, index: int) -> list[str]:
    """Rule names listed by one value of the exception rule."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)) and all(
        isinstance(name, str) for name in value
    ):
        return sorted(value) if isinstance(value, (set, frozenset)) else list(value)
    raise RuleOutputError(
        rule=EXCEPTION_RULE,
        namespace=namespace,
        document_index=index,
        underlying_error="exception values must be rule names or lists of rule names",
        value=value,
    )
