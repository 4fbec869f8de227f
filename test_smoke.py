import importlib.util

import pytest


async def test_integration_setup():
    """
    A basic smoke test to verify that the source packages are accessible via
    pythonpath.
    """
    for package in ("factiony_core", "factiony_api"):
        if importlib.util.find_spec(package) is None:
            pytest.fail(f"Failed to import {package}")
