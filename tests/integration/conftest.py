"""Integration test configuration."""

import pytest


@pytest.fixture(autouse=True)
def isolated_settings():
    """Integration runs read the real environment and working directory."""
    yield
