from __future__ import annotations

from pathlib import Path

import pytest

from core.config import ConfigError, load_config


def _write_config(tmp_path: Path, body: str) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    config_path.write_text(body.strip(), encoding="utf-8")
    return config_path


def test_load_config_reads_yaml(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: test-token
  prefix: "?"
  request_timeout_seconds: 5
database:
  url: "sqlite:///./data/test.db"
transcripts:
  backfill_batch_size: 10
  backfill_interval_minutes: 15
""",
    )

    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("TRANSCRIPT_BACKFILL_ENABLED", raising=False)
    cfg = load_config(config_path)

    assert cfg.discord.token == "test-token"
    assert cfg.discord.prefix == "?"
    assert cfg.discord.request_timeout_seconds == 5.0
    assert cfg.database.url.startswith("sqlite:///")
    assert cfg.transcripts.backfill_batch_size == 10
    assert cfg.transcripts.backfill_interval_minutes == 15
    assert cfg.transcripts.backfill_enabled is True
    assert cfg.transcripts.default_actor == "dashboard"
    assert cfg.enabled_extensions == ["cogs.tickets", "cogs.admin"]


def test_env_overrides_token(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: yaml-token
""",
    )
    monkeypatch.setenv("DISCORD_TOKEN", "env-token")
    monkeypatch.setenv("TRANSCRIPT_BACKFILL_ENABLED", "false")
    cfg = load_config(config_path)
    assert cfg.discord.token == "env-token"
    assert cfg.transcripts.backfill_enabled is False


def test_message_limit_is_capped(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: test-token
transcripts:
  message_limit: 500
""",
    )
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    assert load_config(config_path).transcripts.message_limit == 100


def test_unresolved_token_placeholder_is_rejected(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: "${DISCORD_TOKEN}"
""",
    )
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    with pytest.raises(ConfigError):
        load_config(config_path)


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "config" / "missing.yaml")


def test_api_key_from_env(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: test-token
fastapi:
  enabled: true
  api_key: yaml-key
""",
    )
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.setenv("TICKET_API_KEY", "env-key")
    cfg = load_config(config_path)
    assert cfg.fastapi.enabled is True
    assert cfg.fastapi.api_key == "env-key"
