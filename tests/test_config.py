import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_defaults():
    settings = Settings()

    assert settings.cache_ttl_seconds == 120
    assert settings.redis_max_retries == 3


@pytest.mark.parametrize("ttl", [0, -5])
def test_cache_ttl_must_be_positive(ttl):
    with pytest.raises(ValidationError):
        Settings(cache_ttl_seconds=ttl)


def test_ttl_from_environment(monkeypatch):
    monkeypatch.setenv("CACHE_TTL_SECONDS", "30")

    assert Settings().cache_ttl_seconds == 30
