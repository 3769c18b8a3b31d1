"""
Input file discovery for confcheck.

Walks directories and returns the files that should be checked, minus
those matching an exclusion pattern.

Exclusion patterns are regular expressions searched (unanchored) in one
part of the path relative to the root:

    ".*\\.yaml"   file-name form: tested against the file's base name
    "vendor/"     directory form: tested against every parent directory
                  name, but never the file name

Results are always sorted so callers get the same list regardless of the
order the filesystem returns entries in. Any error during the walk fails
the whole discovery; no partial list is returned.
"""

import logging
import os
import re
from collections.abc import Callable, Sequence
from pathlib import Path

from confcheck.errors import IgnorePatternError, TraversalError

logger = logging.getLogger(__name__)

_SEPARATORS = ("/", os.sep)


def get_files_from_directory(root: str | Path, ignore: str | None = "") -> list[str]:
    """
    Recursively list the regular files under root that are not excluded.

    Args:
        root: Directory to walk
        ignore: Exclusion pattern; a trailing separator selects the
            directory form. Empty or None excludes nothing.

    Returns:
        Sorted file paths, each joined onto root

    Raises:
        IgnorePatternError: If ignore is not a valid regular expression
        TraversalError: If root or anything below it cannot be read
    """
    is_excluded = _build_matcher(ignore or "")
    root_path = Path(root)

    walk_errors: list[OSError] = []
    files: list[str] = []
    for dirpath, _dirnames, filenames in os.walk(root_path, onerror=walk_errors.append):
        for filename in filenames:
            path = Path(dirpath) / filename
            if not path.is_file():
                continue
            relative = path.relative_to(root_path)
            if is_excluded(relative):
                logger.debug("Excluding %s (matches %r)", path, ignore)
                continue
            files.append(str(path))

    if walk_errors:
        raise TraversalError(
            root=str(root),
            paths=[str(e.filename or root) for e in walk_errors],
            errors=[e.strerror or str(e) for e in walk_errors],
        )

    return sorted(files)


def collect_input_files(paths: Sequence[str | Path], ignore: str | None = "") -> list[str]:
    """
    Expand a mix of files and directories into the files to check.

    Files are kept as given, in order. Directories are replaced by their
    discovered files. The exclusion pattern only applies to directories.

    Raises:
        TraversalError: If a path does not exist or a directory cannot be walked
    """
    collected: list[str] = []
    for entry in paths:
        path = Path(entry)
        if path.is_dir():
            collected.extend(get_files_from_directory(path, ignore))
        elif path.is_file():
            collected.append(str(path))
        else:
            raise TraversalError(
                root=str(entry),
                paths=[str(entry)],
                errors=["no such file or directory"],
            )
    return collected


def _build_matcher(pattern: str) -> Callable[[Path], bool]:
    """Compile an exclusion pattern into a predicate over relative paths."""
    if not pattern:
        return lambda relative: False

    directory_form = pattern.endswith(_SEPARATORS)
    expression = pattern.rstrip("".join(_SEPARATORS)) if directory_form else pattern
    try:
        regex = re.compile(expression)
    except re.error as e:
        raise IgnorePatternError(pattern=pattern, underlying_error=str(e)) from e

    if directory_form:
        return lambda relative: any(regex.search(part) for part in relative.parts[:-1])
    return lambda relative: regex.search(relative.name) is not None
