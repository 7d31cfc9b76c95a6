"""Pytest configuration for Paranoid Python Toolkit."""

import pytest

from paranoid_toolkit.config import set_config


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "default_scope: test relies on the default scope")


@pytest.fixture(autouse=True)
def reset_global_config():
    """Start every test from the environment-derived configuration."""
    set_config(None)
    yield
    set_config(None)
