"""Unit tests for environment-driven configuration helpers."""

from __future__ import annotations

import pytest

from gatekeeper.core.config import (
    DevelopmentConfig,
    TestingConfig,
    env_bool,
    env_int,
    env_list,
    get_config,
)


@pytest.mark.parametrize("raw,expected", [("1", True), ("Yes", True), ("off", False), ("", False)])
def test_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("GK_FLAG", raw)
    assert env_bool("GK_FLAG") is expected


def test_env_bool_default(monkeypatch):
    monkeypatch.delenv("GK_FLAG", raising=False)
    assert env_bool("GK_FLAG", True) is True


def test_env_int(monkeypatch):
    monkeypatch.setenv("GK_NUM", " 42 ")
    assert env_int("GK_NUM", 1) == 42
    monkeypatch.setenv("GK_NUM", "")
    assert env_int("GK_NUM", 7) == 7


def test_env_int_rejects_garbage(monkeypatch):
    monkeypatch.setenv("GK_NUM", "forty")
    with pytest.raises(RuntimeError, match="GK_NUM"):
        env_int("GK_NUM", 1)


def test_env_list(monkeypatch):
    monkeypatch.setenv("GK_LIST", "a, b,,c ")
    assert env_list("GK_LIST") == ["a", "b", "c"]


def test_get_config(monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    assert get_config() is TestingConfig
    monkeypatch.setenv("APP_ENV", "nonsense")
    assert get_config() is DevelopmentConfig
