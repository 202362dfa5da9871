"""Settings — URL normalization, production requirements, derived properties."""

import pytest
from pydantic import ValidationError

from userapi.config import Settings


def _settings(**kwargs):
    kwargs.setdefault("database_url", "postgresql://u:p@localhost/app")
    return Settings(_env_file=None, **kwargs)


@pytest.mark.parametrize("url", [
    "postgresql://u:p@localhost/app",
    "postgres://u:p@localhost/app",
])
def test_plain_postgres_url_uses_asyncpg(url):
    assert _settings(database_url=url).database_url == (
        "postgresql+asyncpg://u:p@localhost/app"
    )


def test_async_url_left_untouched():
    url = "sqlite+aiosqlite:///:memory:"
    assert _settings(database_url=url).database_url == url


def test_defaults_match_documented_values():
    s = _settings(environment="development")
    assert s.port == 5000
    assert s.rate_limit_window_ms == 900_000
    assert s.rate_limit_max == 100
    assert s.db_pool_max == 20
    assert s.db_max_uses == 7_500
    assert s.body_limit_bytes == 10 * 1024
    assert s.jwt_expires_in == "7d"


def test_production_requires_secrets():
    with pytest.raises(ValidationError) as info:
        _settings(environment="production", jwt_secret="")
    assert "JWT_SECRET" in str(info.value)


def test_production_with_secrets_is_valid():
    s = _settings(environment="production", jwt_secret="s3cret")
    assert s.is_production


def test_development_tolerates_missing_secrets():
    assert not _settings(environment="development", jwt_secret="").is_production


def test_cors_origins_add_render_host_in_production():
    s = _settings(
        environment="production", jwt_secret="x",
        client_url="https://app.example.com",
        render_external_hostname="api.onrender.com",
    )
    assert s.cors_origins == [
        "https://app.example.com", "https://api.onrender.com",
    ]


def test_cors_origins_outside_production():
    s = _settings(render_external_hostname="api.onrender.com")
    assert s.cors_origins == ["http://localhost:3000"]


def test_managed_database_detection():
    assert _settings(
        database_url="postgresql://u:p@ep-1.eu.aws.neon.tech/app",
    ).uses_managed_database
    assert not _settings().uses_managed_database
