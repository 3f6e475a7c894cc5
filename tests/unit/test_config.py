"""Tests for configuration loading."""

import json

import pytest

from goshi.config import AuditConfig, GoshiConfig

ENV_VARS = [
    "GOSHI_CONFIG",
    "GOSHI_AUDIT_ENABLED",
    "GOSHI_AUDIT_DIR",
    "GOSHI_AUDIT_RETENTION_DAYS",
    "GOSHI_AUDIT_MAX_SESSIONS",
    "GOSHI_AUDIT_REDACT",
    "GOSHI_AUDIT_TOOL_ARGUMENTS_STYLE",
    "GOSHI_LLM_PROVIDER",
    "GOSHI_LLM_MODEL",
    "GOSHI_REPO_ROOT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_audit_defaults(self):
        audit = AuditConfig()
        assert audit.enabled
        assert audit.dir == ".goshi/audit"
        assert audit.retention_days == 30
        assert audit.max_sessions == 50
        assert audit.redact
        assert audit.tool_arguments_style == "summaries"

    def test_safety_defaults(self):
        config = GoshiConfig()
        assert config.safety.auto_confirm_permissions is False
        assert config.safety.dry_run_by_default is True


class TestLoad:
    """Tests for GoshiConfig.load()."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = GoshiConfig.load(tmp_path / "missing.json", use_env=False)
        assert config == GoshiConfig()

    def test_partial_file_merged(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"audit": {"max_sessions": 5, "unknown": 1}, "llm": {"provider": "openai"}}))

        config = GoshiConfig.load(path, use_env=False)

        assert config.audit.max_sessions == 5
        assert config.audit.retention_days == 30
        assert config.llm.provider == "openai"

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert GoshiConfig.load(path, use_env=False) == GoshiConfig()

    def test_unknown_style_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"audit": {"tool_arguments_style": "verbose"}}))
        assert GoshiConfig.load(path, use_env=False).audit.tool_arguments_style == "summaries"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"behavior": {"repo_root": "/work"}}))
        monkeypatch.setenv("GOSHI_CONFIG", str(path))
        assert GoshiConfig.load().behavior.repo_root == "/work"

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"audit": {"enabled": True, "dir": "from-file"}}))
        monkeypatch.setenv("GOSHI_AUDIT_ENABLED", "false")
        monkeypatch.setenv("GOSHI_AUDIT_DIR", "/var/log/goshi")
        monkeypatch.setenv("GOSHI_AUDIT_RETENTION_DAYS", "7")
        monkeypatch.setenv("GOSHI_AUDIT_REDACT", "0")
        monkeypatch.setenv("GOSHI_AUDIT_TOOL_ARGUMENTS_STYLE", "short")
        monkeypatch.setenv("GOSHI_LLM_MODEL", "gpt-4o")

        config = GoshiConfig.load(path)

        assert config.audit.enabled is False
        assert config.audit.dir == "/var/log/goshi"
        assert config.audit.retention_days == 7
        assert config.audit.redact is False
        assert config.audit.tool_arguments_style == "short"
        assert config.llm.model == "gpt-4o"

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        config = GoshiConfig(audit=AuditConfig(max_sessions=3, tool_arguments_style="long"))
        config.save(path)
        assert GoshiConfig.load(path, use_env=False) == config
