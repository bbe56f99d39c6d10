"""Pytest configuration and shared fixtures."""

import pytest

from capacity_timeline.models import make_team


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )


@pytest.fixture
def two_teams():
    """Frontend of 3 with a WIP limit of 2, Backend of 2 without a limit."""
    return {
        "Frontend": make_team("Frontend", 3, wip_limit=2),
        "Backend": make_team("Backend", 2),
    }
