"""
Pytest configuration and fixtures for confcheck tests.

This module provides shared fixtures used across unit and integration
tests.
"""

import tempfile
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"
POLICIES_DIR = FIXTURES_DIR / "policies"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def policies_dir() -> Path:
    """Directory holding the bundled rule fixtures."""
    return POLICIES_DIR


@pytest.fixture
def write_file(temp_dir: Path) -> Callable[[str, str], Path]:
    """Return a helper that writes dedented text to a file under temp_dir."""

    def _write(relative: str, content: str) -> Path:
        path = temp_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    return _write


@pytest.fixture
def deployment_service_yaml() -> str:
    """Return a two-document stream: a Deployment and a Service."""
    return """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: hello-kubernetes
---
apiVersion: v1
kind: Service
metadata:
  name: hello-kubernetes
"""


@pytest.fixture
def root_deployments_yaml() -> str:
    """Return two Deployments running as root, one of them excepted."""
    return """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: cannot-run-as-root
spec:
  template:
    spec:
      containers:
      - name: root-container
        image: nginx
        ports:
        - containerPort: 8080
---
apiVersion: apps/v1
kind: Deployment
metadata:
  name: can-run-as-root
spec:
  template:
    spec:
      containers:
      - name: root-container
        image: nginx
        ports:
        - containerPort: 8080
"""
