"""Settings validation at import time."""
from __future__ import annotations

from importlib import reload

import pytest

import rxauth.settings as settings_mod


@pytest.fixture(autouse=True)
def _restore_settings(monkeypatch):
    yield
    monkeypatch.undo()
    reload(settings_mod)


def test_order_prefix_defaults_to_ord(monkeypatch):
    monkeypatch.delenv("ORDER_NUMBER_PREFIX", raising=False)
    reload(settings_mod)
    assert settings_mod.ORDER_NUMBER_PREFIX == "ORD"


def test_order_prefix_accepts_uppercase_letters(monkeypatch):
    monkeypatch.setenv("ORDER_NUMBER_PREFIX", "RX")
    reload(settings_mod)
    assert settings_mod.ORDER_NUMBER_PREFIX == "RX"


@pytest.mark.parametrize("prefix", ["RX2", "ORD_V2", "ord"])
def test_order_prefix_outside_format_fails_at_startup(monkeypatch, prefix):
    monkeypatch.setenv("ORDER_NUMBER_PREFIX", prefix)
    with pytest.raises(RuntimeError, match="ORDER_NUMBER_PREFIX"):
        reload(settings_mod)
