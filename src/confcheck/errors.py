"""
Exception hierarchy for confcheck.

All confcheck exceptions inherit from ConfcheckError, allowing callers to
catch every confcheck-specific failure with a single except clause.

Exception Categories:
    - CompilationError: Policy source could not be loaded
    - EvaluationError: A rule failed while being evaluated
    - DiscoveryError: Input files could not be discovered
    - ConfigError: Configuration or input files could not be read

Every fatal error carries enough context (rule file, rule, namespace,
document index or path) to report the failure precisely. Nothing is retried:
compilation and evaluation are deterministic.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Compilation errors: 1xxx
ERROR_COMPILATION = 1001
ERROR_COMPILATION_NO_RULES = 1002

# Evaluation errors: 2xxx
ERROR_EVALUATION = 2001
ERROR_EVALUATION_RULE_OUTPUT = 2002
ERROR_EVALUATION_CANCELLED = 2003
ERROR_EVALUATION_TIMEOUT = 2004

# Discovery errors: 3xxx
ERROR_DISCOVERY_TRAVERSAL = 3001
ERROR_DISCOVERY_PATTERN = 3002

# Config errors: 4xxx
ERROR_CONFIG_LOAD = 4001
ERROR_CONFIG_UNSUPPORTED_INPUT = 4002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ConfcheckError(Exception):
    """
    Base exception for all confcheck errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Compilation Errors
# =============================================================================


@dataclass
class CompilationError(ConfcheckError):
    """
    Raised when policy sources cannot be compiled.

    Compilation happens before any document is evaluated, so this error
    always aborts the run before it starts.

    Attributes:
        rule_file: The offending rule file (if a single file is to blame)
        underlying_error: Text of the original exception
    """

    rule_file: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to compile {self.rule_file}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_COMPILATION
        self.context.update({
            "rule_file": self.rule_file,
            "underlying_error": self.underlying_error,
        })


@dataclass
class NoRulesFoundError(CompilationError):
    """Raised when the policy sources contain no rule files."""

    sources: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No rule files found in: {', '.join(self.sources)}"
        if self.code == 0:
            self.code = ERROR_COMPILATION_NO_RULES
        if not self.suggestion:
            self.suggestion = "Point --policy at a directory containing *.py rule files"
        super().__post_init__()
        self.context["sources"] = self.sources


# =============================================================================
# Evaluation Errors
# =============================================================================


@dataclass
class EvaluationError(ConfcheckError):
    """
    Raised when the rule engine fails mid-query.

    Evaluation errors abort the whole run; no partial result set is returned.

    Attributes:
        rule: Name of the rule being evaluated
        namespace: Namespace the rule was queried in
        document_index: Position of the document in the input
        underlying_error: Text of the original exception
    """

    rule: str = ""
    namespace: str = ""
    document_index: int | None = None
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Rule {self.namespace}.{self.rule} failed on document "
                f"{self.document_index}: {self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_EVALUATION
        self.context.update({
            "rule": self.rule,
            "namespace": self.namespace,
            "document_index": self.document_index,
            "underlying_error": self.underlying_error,
        })


@dataclass
class RuleOutputError(EvaluationError):
    """Raised when a rule produces a value of an unsupported shape."""

    value: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Rule {self.namespace}.{self.rule} produced an invalid value: "
                f"{self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_EVALUATION_RULE_OUTPUT
        if not self.suggestion:
            self.suggestion = "Rules must produce strings or dicts with a string 'msg' key"
        super().__post_init__()
        self.context["value"] = repr(self.value)


@dataclass
class EvaluationCancelledError(EvaluationError):
    """Raised when the caller cancels an evaluation in progress."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Evaluation cancelled"
        if self.code == 0:
            self.code = ERROR_EVALUATION_CANCELLED
        super().__post_init__()


@dataclass
class EvaluationTimeoutError(EvaluationError):
    """Raised when an evaluation exceeds its deadline."""

    timeout_seconds: float = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Evaluation timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_EVALUATION_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase timeout_seconds in the configuration"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


# =============================================================================
# Discovery Errors
# =============================================================================


@dataclass
class DiscoveryError(ConfcheckError):
    """
    Base class for file discovery errors.

    Attributes:
        root: The directory being discovered
    """

    root: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["root"] = self.root


@dataclass
class TraversalError(DiscoveryError):
    """
    Raised when the directory walk hits filesystem errors.

    All errors seen during the walk are reported together.
    """

    paths: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot walk {self.root}: {'; '.join(self.errors)}"
        if self.code == 0:
            self.code = ERROR_DISCOVERY_TRAVERSAL
        super().__post_init__()
        self.context.update({
            "paths": self.paths,
            "errors": self.errors,
        })


@dataclass
class IgnorePatternError(DiscoveryError):
    """Raised when the exclusion pattern is not a valid regular expression."""

    pattern: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid ignore pattern {self.pattern!r}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_DISCOVERY_PATTERN
        super().__post_init__()
        self.context.update({
            "pattern": self.pattern,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(ConfcheckError):
    """
    Base class for configuration and input loading errors.

    Attributes:
        path: The file that could not be loaded
    """

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["path"] = self.path


@dataclass
class ConfigLoadError(ConfigError):
    """Raised when a config, data or input file cannot be parsed."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_LOAD
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class UnsupportedInputError(ConfigError):
    """Raised when an input file has no known decoder."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unsupported input file: {self.path}"
        if self.code == 0:
            self.code = ERROR_CONFIG_UNSUPPORTED_INPUT
        if not self.suggestion:
            self.suggestion = "Only .yaml, .yml and .json inputs are supported"
        super().__post_init__()
