"""Global pytest configuration and fixtures.

Registers the e2e marker and skips e2e tests when no platform is configured.
"""

from __future__ import annotations

import os

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "e2e: requires a running platform (set TWIN_E2E_BASE_URL)"
    )


def pytest_collection_modifyitems(items):
    """Skip e2e tests unless a platform base URL is configured."""
    if os.environ.get("TWIN_E2E_BASE_URL"):
        return
    skip_e2e = pytest.mark.skip(reason="TWIN_E2E_BASE_URL not set")
    for item in items:
        if item.get_closest_marker("e2e"):
            item.add_marker(skip_e2e)
