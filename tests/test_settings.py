from __future__ import annotations

import pytest
from cryptography.fernet import Fernet
from pydantic import ValidationError

from fluxdesk_webhooks.services.retry import RetryPolicy
from fluxdesk_webhooks.settings import Settings


def test_delivery_defaults():
    config = Settings(secret_encryption_key=Fernet.generate_key().decode())
    assert config.webhook_failure_threshold == 10
    assert config.webhook_request_timeout_seconds == 10.0
    assert config.webhook_user_agent == "FluxDesk-Webhook/1.0"
    assert config.secret_reveal_roles == ("owner",)
    policy = RetryPolicy.from_settings(config)
    assert (policy.max_attempts, policy.base_delay_seconds, policy.max_delay_seconds) == (5, 30.0, 900.0)


def test_production_requires_encryption_key():
    with pytest.raises(ValidationError):
        Settings(env="production", secret_encryption_key=None)


def test_production_requires_https():
    config = Settings(env="production", secret_encryption_key=Fernet.generate_key().decode())
    assert config.require_https is True
    assert Settings(env="staging", secret_encryption_key="k").require_https is False


def test_missing_key_warns_outside_production():
    with pytest.warns(UserWarning):
        Settings(env="development", secret_encryption_key=None)


def test_previous_keys_are_split():
    config = Settings(secret_encryption_key="k", secret_encryption_previous_keys=" a , b ,")
    assert config.previous_encryption_keys == ["a", "b"]


def test_cors_origins_parsed_from_string(monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.test, https://b.test")
    config = Settings(secret_encryption_key="k")
    assert config.cors_allowed_origins == ["https://a.test", "https://b.test"]


def test_env_example_is_not_loaded(tmp_path, monkeypatch):
    (tmp_path / "env.example").write_text("PORT=9999\nWEBHOOK_MAX_ATTEMPTS=1\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("WEBHOOK_MAX_ATTEMPTS", raising=False)

    config = Settings(secret_encryption_key="k")
    assert config.port == 8003
    assert config.webhook_max_attempts == 5


def test_dotenv_is_loaded(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("PORT=9999\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PORT", raising=False)

    assert Settings(secret_encryption_key="k").port == 9999
