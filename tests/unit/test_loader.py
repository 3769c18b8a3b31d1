"""
Unit tests for the Python rule engine.

Tests cover:
- Compiling rule files and directories
- Namespaces and incremental rules
- Compilation errors
- Querying rules, data access and cancellation
"""

import threading
from pathlib import Path

import pytest

from confcheck.errors import (
    CompilationError,
    EvaluationCancelledError,
    EvaluationError,
    NoRulesFoundError,
)
from confcheck.policy import PythonPolicy, PythonRuleEngine


@pytest.fixture
def engine() -> PythonRuleEngine:
    """Create a rule engine."""
    return PythonRuleEngine()


# =============================================================================
# Compilation
# =============================================================================


class TestCompile:
    """Tests for PythonRuleEngine.compile."""

    def test_compile_directory(self, engine: PythonRuleEngine, policies_dir: Path) -> None:
        """All rule files in a directory are loaded."""
        policy = engine.compile([policies_dir / "exceptions"])
        assert isinstance(policy, PythonPolicy)
        assert policy.namespaces == ["main"]
        assert set(policy.rule_names("main")) == {"deny_run_as_root", "exception"}
        assert len(policy.sources) == 2

    def test_private_helpers_are_not_rules(
        self,
        engine: PythonRuleEngine,
        policies_dir: Path,
    ) -> None:
        """Underscore functions and module constants are not rules."""
        policy = engine.compile([policies_dir / "kubernetes" / "deny.py"])
        assert policy.rule_names("main") == ["deny"]

    def test_imported_functions_are_not_rules(self, engine: PythonRuleEngine, write_file) -> None:
        """Functions imported from elsewhere are not rules."""
        path = write_file(
            "policy/imports.py",
            """
            from os.path import join

            def warn_x(input):
                return None
            """,
        )
        policy = engine.compile([path])
        assert policy.rule_names("main") == ["warn_x"]

    def test_rules_keep_definition_order(self, engine: PythonRuleEngine, write_file) -> None:
        """Rules are listed in the order they are defined."""
        path = write_file(
            "policy/order.py",
            """
            def warn_b(input):
                pass

            def deny_a(input):
                pass

            def helper(input):
                pass
            """,
        )
        assert engine.compile([path]).rule_names("main") == ["warn_b", "deny_a", "helper"]

    def test_package_sets_namespace(self, engine: PythonRuleEngine, write_file) -> None:
        """The package variable names the namespace."""
        write_file("policy/a.py", 'package = "kubernetes.admission"\ndef deny(input):\n    pass\n')
        root = write_file("policy/b.py", "def warn(input):\n    pass\n").parent
        policy = engine.compile([root])
        assert policy.namespaces == ["kubernetes.admission", "main"]
        assert policy.rule_names("kubernetes.admission") == ["deny"]
        assert policy.rule_names("main") == ["warn"]
        assert policy.rule_names("missing") == []

    def test_files_load_in_sorted_order(self, engine: PythonRuleEngine, write_file) -> None:
        """Files in a directory are compiled in sorted order."""
        write_file("policy/b.py", "def deny_b(input):\n    pass\n")
        write_file("policy/a.py", "def deny_a(input):\n    pass\n")
        root = write_file("policy/nested/c.py", "def deny_c(input):\n    pass\n").parent.parent
        policy = engine.compile([root])
        assert policy.rule_names("main") == ["deny_a", "deny_b", "deny_c"]

    def test_private_files_skipped(self, engine: PythonRuleEngine, write_file) -> None:
        """Files and directories starting with _ or . are skipped."""
        write_file("policy/_helpers.py", "def deny_hidden(input):\n    pass\n")
        write_file("policy/.cache/x.py", "def deny_cached(input):\n    pass\n")
        root = write_file("policy/rules.py", "def deny(input):\n    pass\n").parent
        assert engine.compile([root]).rule_names("main") == ["deny"]

    def test_incremental_rules(self, engine: PythonRuleEngine, write_file) -> None:
        """A rule defined in several files keeps every body."""
        write_file("policy/a.py", "def deny(input):\n    yield 'from a'\n")
        root = write_file("policy/b.py", "def deny(input):\n    yield 'from b'\n").parent
        policy = engine.compile([root])
        assert policy.rule_names("main") == ["deny"]
        assert len(policy.bodies("main", "deny")) == 2
        assert engine.query(policy, "main", "deny", {}, {}) == ["from a", "from b"]

    def test_missing_source(self, engine: PythonRuleEngine, temp_dir: Path) -> None:
        """A missing source raises CompilationError naming it."""
        missing = temp_dir / "nope"
        with pytest.raises(CompilationError) as exc_info:
            engine.compile([missing])
        assert exc_info.value.rule_file == str(missing)

    def test_empty_directory(self, engine: PythonRuleEngine, temp_dir: Path) -> None:
        """A directory without rule files raises NoRulesFoundError."""
        with pytest.raises(NoRulesFoundError):
            engine.compile([temp_dir])

    def test_wrong_extension(self, engine: PythonRuleEngine, write_file) -> None:
        """Explicit non-Python files are rejected."""
        path = write_file("policy/deny.rego", "package main\n")
        with pytest.raises(CompilationError):
            engine.compile([path])

    def test_syntax_error(self, engine: PythonRuleEngine, write_file) -> None:
        """Syntax errors are reported with the offending file."""
        path = write_file("policy/broken.py", "def deny(input)\n    pass\n")
        with pytest.raises(CompilationError) as exc_info:
            engine.compile([path])
        assert exc_info.value.rule_file == str(path)
        assert "SyntaxError" in exc_info.value.underlying_error

    def test_module_raises(self, engine: PythonRuleEngine, write_file) -> None:
        """Errors raised while loading a module are compilation errors."""
        path = write_file("policy/raises.py", "raise RuntimeError('nope')\n")
        with pytest.raises(CompilationError) as exc_info:
            engine.compile([path])
        assert "RuntimeError: nope" in exc_info.value.underlying_error

    def test_invalid_package(self, engine: PythonRuleEngine, write_file) -> None:
        """package must be a non-empty string."""
        path = write_file("policy/pkg.py", "package = 42\ndef deny(input):\n    pass\n")
        with pytest.raises(CompilationError):
            engine.compile([path])

    def test_rule_without_input(self, engine: PythonRuleEngine, write_file) -> None:
        """A rule must accept the input document."""
        path = write_file("policy/noargs.py", "def deny():\n    pass\n")
        with pytest.raises(CompilationError) as exc_info:
            engine.compile([path])
        assert "'deny'" in exc_info.value.underlying_error

    def test_compilations_are_isolated(self, engine: PythonRuleEngine, write_file) -> None:
        """Module state is not shared between compilations."""
        path = write_file(
            "policy/counter.py",
            """
            CALLS = []

            def deny(input):
                CALLS.append(1)
                yield f"call {len(CALLS)}"
            """,
        )
        first = engine.compile([path])
        second = engine.compile([path])
        assert engine.query(first, "main", "deny", {}, {}) == ["call 1"]
        assert engine.query(second, "main", "deny", {}, {}) == ["call 1"]


# =============================================================================
# Queries
# =============================================================================


class TestQuery:
    """Tests for PythonRuleEngine.query."""

    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ("return None", []),
            ("return 'single'", ["single"]),
            ("return {'msg': 'm', 'id': 1}", [{"msg": "m", "id": 1}]),
            ("return ['a', 'b']", ["a", "b"]),
            ("yield 'gen'", ["gen"]),
            ("return []", []),
        ],
    )
    def test_return_shapes(
        self,
        engine: PythonRuleEngine,
        write_file,
        body: str,
        expected: list,
    ) -> None:
        """Rules may return None, a value, or an iterable of values."""
        path = write_file("policy/shape.py", f"def deny(input):\n    {body}\n")
        policy = engine.compile([path])
        assert engine.query(policy, "main", "deny", {}, {}) == expected

    def test_rule_receives_document(self, engine: PythonRuleEngine, policies_dir: Path) -> None:
        """The document is passed as the input argument."""
        policy = engine.compile([policies_dir / "kubernetes"])
        values = engine.query(policy, "main", "deny", {"kind": "Deployment"}, {})
        assert len(values) == 2
        assert engine.query(policy, "main", "deny", {"kind": "Service"}, {}) == []

    def test_rule_receives_data(self, engine: PythonRuleEngine, write_file) -> None:
        """Rules with a second parameter receive the data store."""
        path = write_file(
            "policy/data.py",
            """
            def deny(input, data):
                if input["image"].split("/")[0] not in data["registries"]:
                    yield "untrusted registry"
            """,
        )
        policy = engine.compile([path])
        store = {"registries": ["docker.io"]}
        assert engine.query(policy, "main", "deny", {"image": "quay.io/x"}, store) == [
            "untrusted registry"
        ]
        assert engine.query(policy, "main", "deny", {"image": "docker.io/x"}, store) == []

    def test_unknown_rule(self, engine: PythonRuleEngine, policies_dir: Path) -> None:
        """Querying a rule that does not exist returns nothing."""
        policy = engine.compile([policies_dir / "docker"])
        assert engine.query(policy, "main", "warn", [], {}) == []
        assert engine.query(policy, "other", "deny", [], {}) == []

    def test_rule_error(self, engine: PythonRuleEngine, write_file) -> None:
        """An exception inside a rule becomes an EvaluationError."""
        path = write_file("policy/err.py", "def deny(input):\n    return input['missing']\n")
        policy = engine.compile([path])
        with pytest.raises(EvaluationError) as exc_info:
            engine.query(policy, "main", "deny", {}, {})
        assert exc_info.value.rule == "deny"
        assert exc_info.value.namespace == "main"
        assert "KeyError" in exc_info.value.underlying_error
        assert str(path) in exc_info.value.underlying_error

    def test_generator_error(self, engine: PythonRuleEngine, write_file) -> None:
        """Errors raised lazily by generator rules are caught too."""
        path = write_file(
            "policy/gen.py",
            "def deny(input):\n    yield 'ok'\n    raise ValueError('late')\n",
        )
        policy = engine.compile([path])
        with pytest.raises(EvaluationError):
            engine.query(policy, "main", "deny", {}, {})

    def test_cancelled(self, engine: PythonRuleEngine, policies_dir: Path) -> None:
        """A set cancel event stops the query."""
        policy = engine.compile([policies_dir / "docker"])
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(EvaluationCancelledError):
            engine.query(policy, "main", "deny", [], {}, cancel)

    def test_foreign_policy_rejected(self, engine: PythonRuleEngine) -> None:
        """Only policies compiled by this engine can be queried."""
        with pytest.raises(TypeError):
            engine.query(object(), "main", "deny", {}, {})  # type: ignore[arg-type]
