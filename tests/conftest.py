"""Shared fixtures for goshi tests."""

import pytest

from goshi.config import AuditConfig, GoshiConfig


@pytest.fixture
def audit_dir(tmp_path):
    return tmp_path / "audit"


@pytest.fixture
def audit_config(audit_dir):
    """Enabled audit config writing under tmp_path with retention disabled."""
    return AuditConfig(dir=str(audit_dir), retention_days=0, max_sessions=0)


@pytest.fixture
def config(audit_config):
    return GoshiConfig(audit=audit_config)


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "repo"
    path.mkdir()
    return path
