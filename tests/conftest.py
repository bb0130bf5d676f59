"""Test fixtures for the codecontext memory module."""

import pytest
import tempfile
from pathlib import Path

from amplifier_module_tool_codecontext.store import CodeContextStore


@pytest.fixture
def temp_project():
    """Create a temporary project directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        project = Path(tmpdir) / "demo-project"
        project.mkdir()
        yield project


@pytest.fixture
def store(temp_project):
    """An initialized store for the temporary project."""
    store = CodeContextStore(temp_project)
    store.initialize()
    return store


@pytest.fixture
def scan_payload():
    """A small scanner payload in the scanner's camelCase shape."""
    return {
        "files": [
            {
                "path": "src/app.py",
                "language": "python",
                "size": 2048,
                "lines": 80,
                "lastModified": "2026-10-01T12:00:00+00:00",
                "hash": "a1b2c3",
            },
            {
                "path": "src/util.py",
                "language": "python",
                "size": 512,
                "lines": 20,
                "lastModified": "2026-10-02T12:00:00+00:00",
                "hash": "d4e5f6",
            },
        ],
        "patterns": [
            {
                "id": "pat-1",
                "type": "function",
                "name": "snake_case functions",
                "description": "Functions use snake_case names",
                "frequency": 12,
                "confidence": 0.9,
                "examples": ["def load_config()", "def save_state()"],
                "file": "src/app.py",
                "lines": [10, 42],
            },
        ],
        "architecture": {"type": "cli", "frameworks": [], "languages": ["python"]},
        "dependencies": [{"name": "requests", "version": "2.32", "type": "production", "manager": "pip"}],
        "metrics": {"totalFiles": 2, "totalLines": 100, "complexity": "low"},
    }
