"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from supershell.storage import STORE_FILENAME, Store


@pytest.fixture
def runner() -> CliRunner:
    """Provide Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the store at a temporary directory through the environment."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("SUPERSHELL_CONFIG_DIR", str(config_dir))
    return config_dir


@pytest.fixture
def os_user(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pin the invoking OS user reported by getpass."""
    for var in ("LOGNAME", "USER", "LNAME", "USERNAME"):
        monkeypatch.setenv(var, "alice")
    return "alice"


@pytest.fixture
def sample_records_data() -> dict[str, dict]:
    """Provide sample store document."""
    return {
        "web1": {
            "nickname": "web1",
            "host": "10.0.0.5",
            "port": 22,
            "user": "alice",
            "auth_method": "key",
            "key_path": "/home/alice/.ssh/id_ed25519",
        },
        "db": {
            "nickname": "db",
            "host": "db.internal",
            "port": 2222,
            "user": "postgres",
            "auth_method": "password",
            "password": "hunter2",
        },
        "bastion": {
            "nickname": "bastion",
            "host": "bastion.example.com",
            "port": 22,
            "user": "ops",
            "auth_method": "key",
        },
    }


@pytest.fixture
def store_file(temp_config_dir: Path, sample_records_data: dict[str, dict]) -> Path:
    """Create connections.json with sample data."""
    temp_config_dir.mkdir(parents=True, exist_ok=True)
    cfg_file = temp_config_dir / STORE_FILENAME
    cfg_file.write_text(json.dumps(sample_records_data, indent=2), encoding="utf-8")
    return cfg_file


@pytest.fixture
def store(store_file: Path) -> Store:
    """Open the store over the sample file."""
    return Store.open(store_file.parent)
