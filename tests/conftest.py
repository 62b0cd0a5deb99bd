"""
Global pytest configuration and fixtures for all tests.

This file provides fixtures available to all test modules.
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import reset_config  # noqa: E402


@pytest.fixture(autouse=True)
def test_environment(monkeypatch):
    """Run every test without DFP_* variables from the developer's shell."""
    for key in list(os.environ):
        if key.startswith("DFP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("PRODUCTION", raising=False)

    reset_config()
    yield
    reset_config()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")
