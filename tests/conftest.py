"""Shared pytest fixtures for portfolio valuation tests."""

import pytest

import portfolio_valuation.core.config as cfgmod


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Each test reads config.json from a temp dir. Resets the cached config after."""
    config_file = tmp_path / "config.json"
    monkeypatch.setattr(cfgmod, "_config_path", lambda: config_file)
    cfgmod.reset_config_cache()
    yield config_file
    cfgmod.reset_config_cache()
