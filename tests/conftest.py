"""Shared fixtures."""
from __future__ import annotations

import importlib

import pytest

import survey_insights.config as config_module


@pytest.fixture()
def reload_config(monkeypatch):
    """Re-import ``survey_insights.config`` under a patched environment.

    Call it with ``NAME="value"`` (or ``None`` to unset). The environment and
    the module constants are restored after the test.
    """

    def _reload(**env):
        for key, value in env.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, value)
        return importlib.reload(config_module)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config_module)
