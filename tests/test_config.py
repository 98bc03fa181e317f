"""Tests for configuration loading and logging setup."""

from __future__ import annotations

import logging

import pytest

from cumulus.config import DEFAULT_DATABASE_URL, Settings, configure_logging

ENV_NAMES = (
    "DATABASE_URL",
    "DB_POOL_SIZE",
    "JWT_SECRET",
    "STORAGE_BACKEND",
    "PUBLIC_BASE_URL",
    "FRONTEND_URL",
    "CORS_ORIGINS",
    "SMTP_HOST",
    "SMTP_USER",
    "SMTP_PASS",
    "SMTP_SECURE",
    "SMTP_SUPPRESS_SEND",
    "FROM_EMAIL",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    def test_defaults(self):
        settings = Settings.from_env(dotenv=False)
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.storage_backend == "local"
        assert settings.cors_origins == ["*"]
        assert not settings.smtp_configured

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://app@db/drive")
        monkeypatch.setenv("DB_POOL_SIZE", "5")
        monkeypatch.setenv("STORAGE_BACKEND", "S3")
        monkeypatch.setenv("PUBLIC_BASE_URL", "https://api.example.com/")
        monkeypatch.setenv("FRONTEND_URL", "https://drive.example.com/")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com,")
        monkeypatch.setenv("SMTP_SECURE", "true")
        monkeypatch.setenv("SMTP_SUPPRESS_SEND", "1")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env(dotenv=False)
        assert settings.database_url == "postgresql+asyncpg://app@db/drive"
        assert settings.db_pool_size == 5
        assert settings.storage_backend == "s3"
        assert settings.public_base_url == "https://api.example.com"
        assert settings.frontend_url == "https://drive.example.com"
        assert settings.cors_origins == ["https://a.example.com", "https://b.example.com"]
        assert settings.smtp_secure is True
        assert settings.smtp_suppress_send is True
        assert settings.log_level == "DEBUG"

    def test_from_email_defaults_to_smtp_user(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("SMTP_USER", "mailer@example.com")
        monkeypatch.setenv("SMTP_PASS", "pw")
        settings = Settings.from_env(dotenv=False)
        assert settings.from_email == "mailer@example.com"
        assert settings.smtp_configured

    def test_bad_integer(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DB_POOL_SIZE", "many")
        with pytest.raises(ValueError, match="DB_POOL_SIZE"):
            Settings.from_env(dotenv=False)


class TestConfigureLogging:
    def test_sets_root_level(self, monkeypatch: pytest.MonkeyPatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])
        monkeypatch.setattr(root, "level", logging.WARNING)
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert root.handlers
