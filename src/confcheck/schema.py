"""
Schema definitions for confcheck.

This module defines the Pydantic models used throughout confcheck:
- Category: How a rule name is classified
- CheckResult: One finding (or success) for one rule on one document
- ResultSet: The four classified lists produced by an evaluation
- CheckConfig: Settings for the `confcheck test` command

Design Decisions:
    - Result models are frozen; a ResultSet never changes once built
    - Config models forbid unknown keys so typos fail loudly
    - The source document travels with each result but is not serialized
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from confcheck.errors import ConfigLoadError, UnsupportedInputError


DEFAULT_NAMESPACE = "main"


# =============================================================================
# Enums
# =============================================================================


class Category(str, Enum):
    """Category a rule name falls into, derived from its name alone."""

    WARNING = "warning"
    FAILURE = "failure"
    EXCEPTION = "exception"
    IGNORED = "ignored"


# =============================================================================
# Result Models
# =============================================================================


class CheckResult(BaseModel):
    """
    A single classified outcome.

    Attributes:
        rule: Name of the rule that produced this result
        message: Human-readable message (None for successes and exceptions)
        metadata: Extra keys a rule returned alongside its message
        namespace: Namespace the rule was queried in
        document_index: Position of the source document in the input
        filename: File the document came from, when known
        document: The source document itself (not serialized)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rule: str = Field(..., description="Rule name")
    message: str | None = Field(default=None, description="Finding message")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra data returned by the rule",
    )
    namespace: str = Field(default=DEFAULT_NAMESPACE, description="Policy namespace")
    document_index: int = Field(default=0, description="Input document position", ge=0)
    filename: str | None = Field(default=None, description="Source file, if known")
    document: Any = Field(default=None, exclude=True, repr=False)


class ResultSet(BaseModel):
    """
    Classified results of one evaluation.

    Each list preserves document order, then namespace order within a
    document, then rule definition order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    successes: list[CheckResult] = Field(default_factory=list)
    failures: list[CheckResult] = Field(default_factory=list)
    warnings: list[CheckResult] = Field(default_factory=list)
    exceptions: list[CheckResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        """Whether no failures were found."""
        return not self.failures

    def counts(self) -> dict[str, int]:
        """Number of results per category."""
        return {
            "successes": len(self.successes),
            "failures": len(self.failures),
            "warnings": len(self.warnings),
            "exceptions": len(self.exceptions),
        }

    def exit_code(self, fail_on_warn: bool = False) -> int:
        """
        Process exit code for this result set.

        Without fail_on_warn: 1 if anything failed, else 0.
        With fail_on_warn: 2 for failures, 1 for warnings only, else 0.
        """
        if fail_on_warn:
            if self.failures:
                return 2
            if self.warnings:
                return 1
            return 0
        return 1 if self.failures else 0

    @classmethod
    def concat(cls, result_sets: list["ResultSet"]) -> "ResultSet":
        """Concatenate result sets in order, without deduplication."""
        return cls(
            successes=[r for rs in result_sets for r in rs.successes],
            failures=[r for rs in result_sets for r in rs.failures],
            warnings=[r for rs in result_sets for r in rs.warnings],
            exceptions=[r for rs in result_sets for r in rs.exceptions],
        )


# =============================================================================
# Config Models
# =============================================================================


class CheckConfig(BaseModel):
    """
    Settings for a `confcheck test` invocation.

    Attributes:
        policy: Rule files or directories to compile
        namespaces: Namespaces to query, in order
        all_namespaces: Query every namespace found in the policy instead
        combine: Evaluate all inputs as a single combined document
        fail_on_warn: Make warnings affect the exit code
        ignore: Exclusion pattern applied when discovering input directories
        data: Extra YAML/JSON files exposed to rules as `data`
        timeout_seconds: Optional deadline for the whole evaluation
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    policy: list[str] = Field(
        default_factory=lambda: ["policy"],
        description="Rule files or directories",
    )
    namespaces: list[str] = Field(
        default_factory=lambda: [DEFAULT_NAMESPACE],
        description="Namespaces to query",
    )
    all_namespaces: bool = Field(default=False, description="Query every namespace")
    combine: bool = Field(default=False, description="Combine inputs into one document")
    fail_on_warn: bool = Field(default=False, description="Warnings affect exit code")
    ignore: str = Field(default="", description="Exclusion pattern for discovery")
    data: list[str] = Field(default_factory=list, description="Data files for rules")
    timeout_seconds: float | None = Field(
        default=None,
        description="Deadline for the whole evaluation",
        gt=0,
    )


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> CheckConfig:
    """
    Load a CheckConfig from a YAML file.

    Raises:
        ConfigLoadError: If the file cannot be read or does not match the schema
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
        return CheckConfig.model_validate(data or {})
    except (OSError, yaml.YAMLError, ValidationError) as e:
        raise ConfigLoadError(path=str(path), underlying_error=str(e)) from e


def load_config_from_string(content: str) -> CheckConfig:
    """Load a CheckConfig from a YAML string."""
    data = yaml.safe_load(content)
    return CheckConfig.model_validate(data or {})


def load_documents(path: Path | str) -> list[Any]:
    """
    Decode an input file into its documents.

    YAML streams yield one document per `---` section (empty sections are
    dropped). JSON files yield a single document.

    Raises:
        UnsupportedInputError: If the extension has no decoder
        ConfigLoadError: If the file cannot be read or decoded
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".yaml", ".yml", ".json"):
        raise UnsupportedInputError(path=str(path))

    try:
        with path.open() as f:
            if suffix == ".json":
                return [json.load(f)]
            return [doc for doc in yaml.safe_load_all(f) if doc is not None]
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigLoadError(path=str(path), underlying_error=str(e)) from e


def load_data(paths: list[str]) -> dict[str, Any]:
    """
    Merge data files into a single mapping for rules to read.

    Each file must decode to a mapping; later files override earlier keys.
    """
    merged: dict[str, Any] = {}
    for path in paths:
        for doc in load_documents(path):
            if not isinstance(doc, dict):
                raise ConfigLoadError(
                    path=str(path),
                    underlying_error="data files must contain a mapping",
                )
            merged.update(doc)
    return merged
