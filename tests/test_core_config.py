import pytest

from proofdesk.core.config import get_settings


def test_loads_environment_values(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./data/test_proofdesk.sqlite")
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/9")
    monkeypatch.setenv("SHIPSTATION_API_KEY", "key")
    monkeypatch.setenv("SHIPSTATION_API_SECRET", "secret")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.env == "development"
    assert settings.database_url.endswith("test_proofdesk.sqlite")
    assert settings.redis_url.endswith("/9")
    assert settings.shipstation_configured() is True
    assert settings.shipstation_missing_env_vars() == []

    get_settings.cache_clear()


def test_reports_missing_shipstation_credentials(monkeypatch) -> None:
    monkeypatch.setenv("SHIPSTATION_API_KEY", "key")
    monkeypatch.setenv("SHIPSTATION_API_SECRET", "")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.shipstation_configured() is False
    assert settings.shipstation_missing_env_vars() == ["SHIPSTATION_API_SECRET"]

    get_settings.cache_clear()


def test_session_and_cron_require_minimum_secret_lengths(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("SESSION_SECRET", "too-short")
    monkeypatch.setenv("ADMIN_PASSWORD", "long-enough-password")
    monkeypatch.setenv("CRON_SECRET", "short")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.session_configured() is False
    assert settings.cron_configured() is False

    get_settings.cache_clear()


def test_rejects_short_secrets_in_production(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("APP_PUBLIC_BASE_URL", "https://proofs.example.com")
    monkeypatch.setenv("SESSION_SECRET", "short")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="SESSION_SECRET"):
        get_settings()

    get_settings.cache_clear()


def test_requires_https_public_url_in_production(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SESSION_SECRET", "")
    monkeypatch.setenv("APP_PUBLIC_BASE_URL", "http://proofs.example.com")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="APP_PUBLIC_BASE_URL"):
        get_settings()

    get_settings.cache_clear()


def test_rejects_invalid_observability_limits(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "1.2")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="SENTRY_TRACES_SAMPLE_RATE"):
        get_settings()

    get_settings.cache_clear()


def test_rejects_invalid_shipstation_limits(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("SHIPSTATION_PAGE_SIZE", "501")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="SHIPSTATION_PAGE_SIZE"):
        get_settings()

    monkeypatch.setenv("SHIPSTATION_PAGE_SIZE", "100")
    monkeypatch.setenv("SHIPSTATION_MAX_PAGES", "0")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="SHIPSTATION_MAX_PAGES"):
        get_settings()

    get_settings.cache_clear()


def test_parses_allowed_proof_mime_types(monkeypatch) -> None:
    monkeypatch.setenv("PROOF_ALLOWED_MIME_TYPES", "image/PNG, application/pdf ,")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.allowed_proof_mime_types == frozenset({"image/png", "application/pdf"})

    get_settings.cache_clear()
