"""Tests for CLI argument handling."""

import argparse
import sys

import main
from main import _apply_overrides


def _args(**overrides) -> argparse.Namespace:
    values = {"group_size": None, "max_papers": None, "source": None, "sandbox": None}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_zero_override_is_applied_and_rejected(config) -> None:
    _apply_overrides(_args(group_size=0), config)

    assert config.group_size == 0
    assert "GROUP_SIZE" in config.validate()


def test_absent_flags_keep_configured_values(config) -> None:
    config.group_size = 4
    config.max_papers = 25

    _apply_overrides(_args(), config)

    assert config.group_size == 4
    assert config.max_papers == 25
    assert config.sandbox_mode == "thread"


def test_flags_override_configuration(config) -> None:
    _apply_overrides(_args(group_size=2, max_papers=5, source="rss", sandbox="process"), config)

    assert (config.group_size, config.max_papers) == (2, 5)
    assert config.discovery_source == "rss"
    assert config.sandbox_mode == "process"


def test_run_with_zero_group_size_exits_with_error(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("BASE_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setattr(sys, "argv", ["main.py", "run", "--group-size", "0"])
    monkeypatch.setattr(main, "setup_logging", lambda config, verbose=False: True)

    assert main.main() == 1
    assert "GROUP_SIZE must be positive" in capsys.readouterr().err
