"""
Python rule engine.

Rule files are plain Python modules:

    package = "main"

    def deny_latest_tag(input):
        for container in input["spec"]["containers"]:
            if container["image"].endswith(":latest"):
                yield f"{container['name']} uses the latest tag"

    def exception(input):
        if input["metadata"]["name"] == "legacy":
            yield ["latest_tag"]

Conventions:
    - `package` names the namespace (default "main"); files may share one
    - Every public function defined in the module is a rule
    - A rule takes `input`, and optionally `data` (the per-run data store)
    - A rule returns None, a single value, or an iterable of values
    - A rule defined in several files keeps every body; their values are
      concatenated in file order

Design Decisions:
    - Files are loaded in sorted order so compiled policies are reproducible
    - Modules are executed under private names and never added to
      sys.modules, so two compilations never share state
"""

import importlib.util
import inspect
import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any

from confcheck.errors import (
    CompilationError,
    ConfcheckError,
    EvaluationError,
    NoRulesFoundError,
)
from confcheck.policy.base import CompiledPolicy, RuleEngine, check_cancelled
from confcheck.schema import DEFAULT_NAMESPACE

logger = logging.getLogger(__name__)

RULE_FILE_SUFFIX = ".py"


@dataclass(frozen=True)
class RuleBody:
    """
    One definition of a rule.

    Attributes:
        function: The rule function
        source: Rule file the function was defined in
        takes_data: Whether the function accepts the data store
    """

    function: Callable[..., Any]
    source: str
    takes_data: bool

    def __call__(self, document: Any, store: Mapping[str, Any]) -> Any:
        if self.takes_data:
            return self.function(document, store)
        return self.function(document)


class PythonPolicy(CompiledPolicy):
    """Compiled policy made of Python rule functions grouped by namespace."""

    def __init__(
        self,
        rules: dict[str, dict[str, list[RuleBody]]],
        sources: list[str],
    ) -> None:
        self._rules = {
            namespace: {name: tuple(bodies) for name, bodies in by_name.items()}
            for namespace, by_name in rules.items()
        }
        self._sources = list(sources)

    @property
    def namespaces(self) -> list[str]:
        return list(self._rules)

    def rule_names(self, namespace: str) -> list[str]:
        return list(self._rules.get(namespace, {}))

    @property
    def sources(self) -> list[str]:
        return list(self._sources)

    def bodies(self, namespace: str, rule: str) -> tuple[RuleBody, ...]:
        """Every definition of a rule, in file order."""
        return self._rules.get(namespace, {}).get(rule, ())


class PythonRuleEngine(RuleEngine):
    """
    Rule engine that executes Python rule modules.

    Usage:
        engine = PythonRuleEngine()
        policy = engine.compile(["policy/"])
        values = engine.query(policy, "main", "deny", document, {})
    """

    @property
    def name(self) -> str:
        return "python"

    def compile(self, sources: Sequence[str | Path]) -> PythonPolicy:
        """
        Load every rule file found in sources.

        Raises:
            CompilationError: If a file is missing, fails to import, or
                defines an invalid package or rule
            NoRulesFoundError: If sources contain no rule files
        """
        files = self._collect_rule_files(sources)
        if not files:
            raise NoRulesFoundError(sources=[str(s) for s in sources])

        rules: dict[str, dict[str, list[RuleBody]]] = {}
        for index, path in enumerate(files):
            module = self._load_module(path, index)
            namespace = self._module_namespace(module, path)
            by_name = rules.setdefault(namespace, {})

            count = 0
            for rule_name, function in self._module_rules(module):
                by_name.setdefault(rule_name, []).append(
                    RuleBody(
                        function=function,
                        source=str(path),
                        takes_data=self._takes_data(function, rule_name, path),
                    )
                )
                count += 1
            logger.debug("Loaded %d rules from %s into %s", count, path, namespace)

        logger.info("Compiled %d rule files", len(files))
        return PythonPolicy(rules, [str(f) for f in files])

    def query(
        self,
        policy: CompiledPolicy,
        namespace: str,
        rule: str,
        document: Any,
        store: Mapping[str, Any],
        cancel: threading.Event | None = None,
    ) -> list[Any]:
        """Run every body of a rule and collect the values produced."""
        if not isinstance(policy, PythonPolicy):
            msg = f"PythonRuleEngine cannot query {type(policy).__name__}"
            raise TypeError(msg)

        values: list[Any] = []
        for body in policy.bodies(namespace, rule):
            check_cancelled(cancel, rule=rule, namespace=namespace)
            try:
                values.extend(_as_values(body(document, store)))
            except ConfcheckError:
                raise
            except Exception as e:
                raise EvaluationError(
                    rule=rule,
                    namespace=namespace,
                    underlying_error=f"{type(e).__name__}: {e} ({body.source})",
                ) from e
        return values

    # =========================================================================
    # Loading
    # =========================================================================

    def _collect_rule_files(self, sources: Sequence[str | Path]) -> list[Path]:
        """Expand files and directories into an ordered list of rule files."""
        files: list[Path] = []
        for source in sources:
            path = Path(source)
            if path.is_dir():
                files.extend(
                    sorted(
                        p
                        for p in path.rglob(f"*{RULE_FILE_SUFFIX}")
                        if p.is_file() and not _is_private(p.relative_to(path))
                    )
                )
            elif path.is_file():
                if path.suffix != RULE_FILE_SUFFIX:
                    raise CompilationError(
                        rule_file=str(path),
                        underlying_error=f"rule files must end in {RULE_FILE_SUFFIX}",
                    )
                files.append(path)
            else:
                raise CompilationError(
                    rule_file=str(path),
                    underlying_error="no such file or directory",
                )
        return files

    def _load_module(self, path: Path, index: int) -> ModuleType:
        """Execute a rule file as an anonymous module."""
        module_name = f"_confcheck_rules_{index}_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise CompilationError(
                rule_file=str(path),
                underlying_error="cannot create a module loader",
            )

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise CompilationError(
                rule_file=str(path),
                underlying_error=f"{type(e).__name__}: {e}",
            ) from e
        return module

    def _module_namespace(self, module: ModuleType, path: Path) -> str:
        namespace = getattr(module, "package", DEFAULT_NAMESPACE)
        if not isinstance(namespace, str) or not namespace:
            raise CompilationError(
                rule_file=str(path),
                underlying_error="'package' must be a non-empty string",
            )
        return namespace

    def _module_rules(self, module: ModuleType) -> Iterable[tuple[str, Callable[..., Any]]]:
        """Public functions defined in the module itself, in definition order."""
        for name, value in vars(module).items():
            if name.startswith("_") or not inspect.isfunction(value):
                continue
            if value.__module__ != module.__name__:
                continue
            yield name, value

    def _takes_data(self, function: Callable[..., Any], rule: str, path: Path) -> bool:
        params = [
            p
            for p in inspect.signature(function).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if not params:
            raise CompilationError(
                rule_file=str(path),
                underlying_error=f"rule {rule!r} must accept an input argument",
            )
        return len(params) > 1


def _is_private(relative: Path) -> bool:
    """Whether any part of a path starts with an underscore or a dot."""
    return any(part.startswith(("_", ".")) for part in relative.parts)


def _as_values(produced: Any) -> list[Any]:
    """Normalize a rule's return value into a list of values."""
    if produced is None:
        return []
    if isinstance(produced, (str, bytes, Mapping)):
        return [produced]
    if isinstance(produced, Iterable):
        return list(produced)
    return [produced]
