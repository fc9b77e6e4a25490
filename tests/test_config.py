"""Tests for twitchauth.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from twitchauth.config import (
    atomic_write,
    get_config_dir,
    get_credentials_dir,
    get_data_dir,
    load_global_config,
    resolve_config,
    resolve_client_id,
    save_global_config,
)
from twitchauth.exceptions import ConfigError
from twitchauth.models import GlobalConfig, OutputConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("twitchauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "twitchauth"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("twitchauth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "custom"))

        assert get_config_dir() == tmp_path / "custom" / "twitchauth"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("twitchauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".local" / "share" / "twitchauth"

    def test_credentials_dir_inside_data_dir(self, isolated_config: Path) -> None:
        result = get_credentials_dir()
        assert result == isolated_config / "data" / "twitchauth" / "credentials"
        assert result.is_dir()


class TestXDGPathsFallback:
    """Non-XDG platforms (macOS, Windows) use ~/.twitchauth/."""

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("twitchauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".twitchauth"

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("twitchauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_data_dir() == tmp_path / ".twitchauth" / "data"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"
        assert list(tmp_path.iterdir()) == [target]

    def test_mode_applied(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        atomic_write(target, "{}", mode=0o600)
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o600

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("twitchauth.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfigFile:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        assert load_global_config() == GlobalConfig()

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(
            app_name="overlay",
            client_id_source="env:TWITCH_CLIENT_ID",
            scopes=["chat:read"],
            timeout=30,
            output=OutputConfig(format="json"),
        )
        save_global_config(config)
        assert load_global_config() == config

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "twitchauth" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "config" / "twitchauth" / "config.json", {"timeout": -1})
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """CLI > env > config file > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config() == GlobalConfig()

    def test_file_values_used(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(redirect_url="http://localhost:3000", scopes=["chat:read"]))
        config = resolve_config()
        assert config.redirect_url == "http://localhost:3000"
        assert config.scopes == ["chat:read"]

    def test_env_overrides_file(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_global_config(GlobalConfig(redirect_url="http://localhost:3000", timeout=5))
        monkeypatch.setenv("TWITCHAUTH_REDIRECT_URL", "http://localhost:4000")
        monkeypatch.setenv("TWITCHAUTH_TIMEOUT", "42")
        monkeypatch.setenv("TWITCHAUTH_APP_NAME", "bot")
        monkeypatch.setenv("TWITCHAUTH_CLIENT_ID", "id-from-env")

        config = resolve_config()
        assert config.redirect_url == "http://localhost:4000"
        assert config.timeout == 42.0
        assert config.app_name == "bot"
        assert config.client_id_source == "env:TWITCHAUTH_CLIENT_ID"

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TWITCHAUTH_REDIRECT_URL", "http://localhost:4000")
        monkeypatch.setenv("TWITCHAUTH_CLIENT_ID", "id-from-env")

        config = resolve_config(
            cli_client_id="literal-id",
            cli_redirect_url="http://localhost:5000",
            cli_timeout=1.5,
            cli_scopes=["chat:edit"],
        )
        assert config.client_id_source == "literal-id"
        assert config.redirect_url == "http://localhost:5000"
        assert config.timeout == 1.5
        assert config.scopes == ["chat:edit"]

    def test_empty_cli_scopes_keep_file_scopes(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(scopes=["chat:read"]))
        assert resolve_config(cli_scopes=[]).scopes == ["chat:read"]

    def test_non_numeric_env_timeout(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TWITCHAUTH_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="TWITCHAUTH_TIMEOUT"):
            resolve_config()

    def test_non_positive_cli_timeout(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config(cli_timeout=0)

    def test_does_not_modify_file(self, isolated_config: Path) -> None:
        resolve_config(cli_redirect_url="http://localhost:9")
        assert not (isolated_config / "config" / "twitchauth" / "config.json").exists()


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveClientId:
    def test_env_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_CLIENT_ID", "abc123")
        assert resolve_client_id("env:MY_CLIENT_ID") == "abc123"

    def test_env_source_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        with pytest.raises(ConfigError, match="not set"):
            resolve_client_id("env:NONEXISTENT_VAR")

    def test_file_source(self, tmp_path: Path) -> None:
        cred_file = tmp_path / "client_id.txt"
        cred_file.write_text("  abc123  \n", encoding="utf-8")
        assert resolve_client_id(f"file:{cred_file}") == "abc123"

    def test_file_source_missing_raises(self) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_client_id("file:/nonexistent/path/client_id.txt")

    def test_prompt_source_with_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("getpass.getpass", lambda prompt: "typed-id")
        assert resolve_client_id("prompt") == "typed-id"

    def test_prompt_source_non_tty_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a terminal"):
            resolve_client_id("prompt")

    def test_literal_source(self) -> None:
        assert resolve_client_id("abc123") == "abc123"

    def test_empty_source_raises(self) -> None:
        with pytest.raises(ConfigError, match="Empty"):
            resolve_client_id("")
