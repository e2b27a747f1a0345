import pytest

from config import DEFAULT_DATABASE_URL, ConfigError, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SECRET_KEY", "JWT_SECRET", "DATABASE_URL", "ACCESS_TOKEN_EXPIRE_SECONDS", "LOG_LEVEL", "PORT"):
        monkeypatch.delenv(name, raising=False)


def test_missing_secret_is_fatal():
    with pytest.raises(ConfigError):
        load_settings()


def test_blank_secret_is_fatal(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "   ")
    with pytest.raises(ConfigError):
        load_settings()


def test_defaults(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "s3cret")
    settings = load_settings()
    assert settings.secret_key == "s3cret"
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.access_token_expire_seconds == 360000
    assert settings.port == 5001


def test_jwt_secret_fallback_and_overrides(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "legacy")
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./other.db")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("PORT", "8080")
    settings = load_settings()
    assert settings.secret_key == "legacy"
    assert settings.database_url == "sqlite+aiosqlite:///./other.db"
    assert settings.log_level == "DEBUG"
    assert settings.port == 8080


def test_non_numeric_port_is_fatal(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "s3cret")
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ConfigError):
        load_settings()
