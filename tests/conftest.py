"""Shared fixtures for the JSON facade tests."""

import pytest

from jay.core.json_compat import EngineSelector, fast_engine


@pytest.fixture
def sample():
    return {"a": 1, "b": "foo", "c": True, "d": None, "e": [5, 6], "f": {"g": []}}


@pytest.fixture
def baseline_selector():
    """Selector that never uses orjson."""
    return EngineSelector(prefer_fast=False)


@pytest.fixture(params=["json", "orjson"])
def selector(request):
    """Selector for each available engine."""
    if request.param == "json":
        return EngineSelector(prefer_fast=False)
    if fast_engine() is None:
        pytest.skip("orjson is not installed")
    return EngineSelector(prefer_fast=True)
