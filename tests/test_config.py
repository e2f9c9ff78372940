"""
Tests for environment-based configuration
"""

import client_intake.config as config_module
from client_intake.config import IntakeConfig, get_config, reload_config


def test_defaults():
    config = IntakeConfig(_env_file=None)
    assert config.api_port == 8090
    assert config.jwt_algorithm == "HS256"
    assert config.rate_limit_max_requests == 5
    assert config.rate_limit_window_seconds == 60
    assert config.mandate_reference_prefix == "DOSK"
    assert config.trust_forwarded_headers is False


def test_reload_reads_prefixed_environment(monkeypatch):
    monkeypatch.setattr(config_module, "config", config_module.config)
    monkeypatch.setenv("INTAKE_API_PORT", "9100")
    monkeypatch.setenv("INTAKE_NOTIFICATION_RECIPIENT", "backoffice@example.com")

    reloaded = reload_config()
    assert get_config() is reloaded
    assert reloaded.api_port == 9100
    assert reloaded.notification_recipient == "backoffice@example.com"


def test_encryption_key_from_unprefixed_variable(monkeypatch):
    monkeypatch.delenv("INTAKE_ENCRYPTION_KEY", raising=False)
    monkeypatch.setenv("ENCRYPTION_KEY", "a2V5")
    assert IntakeConfig(_env_file=None).encryption_key == "a2V5"


def test_encryption_key_from_prefixed_variable(monkeypatch):
    monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
    monkeypatch.setenv("INTAKE_ENCRYPTION_KEY", "a2V5")
    assert IntakeConfig(_env_file=None).encryption_key == "a2V5"
