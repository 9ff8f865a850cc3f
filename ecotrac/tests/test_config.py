import logging

import pytest

from ecotrac.core.config import Settings, validate_config


def test_missing_database_url_warns(caplog):
    cfg = Settings(DATABASE_URL=None, _env_file=None)
    with caplog.at_level(logging.WARNING, logger="ecotrac"):
        assert validate_config(strict=False, settings_obj=cfg) is True
    assert "DATABASE_URL" in caplog.text


def test_strict_mode_raises():
    cfg = Settings(DATABASE_URL=None, _env_file=None)
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=cfg)


def test_cors_origins_parsed():
    cfg = Settings(CORS_ALLOW_ORIGINS="http://a.test, http://b.test,", _env_file=None)
    assert cfg.cors_origins() == ["http://a.test", "http://b.test"]


def test_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.LEADERBOARD_LIMIT == 10
    assert cfg.PROGRESS_MAX_RETRIES == 3
