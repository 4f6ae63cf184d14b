"""
Tests for configuration module.
"""

import dataclasses

import pytest

from visit_tracker import config
from visit_tracker.config import TrackerConfig


def test_default_configuration_values():
    """Test that default config values are set correctly."""
    assert config.SERVER_HOST == "0.0.0.0"
    assert config.SERVER_PORT == 8888
    assert config.MAX_URL_LENGTH == 2048
    assert config.DEFAULT_CLIENT_IP == "0.0.0.0"
    assert config.DEFAULT_PAGE_LIMIT == 20
    assert config.MAX_PAGE_LIMIT == 100
    assert config.CORS_MAX_AGE_SECONDS == 86400


def test_open_range_bounds():
    assert config.OPEN_RANGE_START.isoformat(sep=' ') == "2020-01-01 00:00:00"
    assert config.OPEN_RANGE_END.isoformat(sep=' ') == "2099-12-31 23:59:59"


def test_from_env_empty_mapping_uses_defaults():
    cfg = TrackerConfig.from_env({})

    assert cfg == TrackerConfig()
    assert cfg.database_path == config.DATABASE_FILE
    assert cfg.db_thread_pool_size == config.DB_THREAD_POOL_SIZE


def test_from_env_reads_all_variables():
    cfg = TrackerConfig.from_env({
        "VISIT_TRACKER_DB_PATH": "/tmp/visits-test.db",
        "VISIT_TRACKER_HOST": "127.0.0.1",
        "VISIT_TRACKER_PORT": "9000",
        "VISIT_TRACKER_DB_TIMEOUT": "2.5",
        "VISIT_TRACKER_DB_THREADS": "4",
    })

    assert cfg.database_path == "/tmp/visits-test.db"
    assert cfg.server_host == "127.0.0.1"
    assert cfg.server_port == 9000
    assert cfg.db_connection_timeout == 2.5
    assert cfg.db_thread_pool_size == 4


def test_from_env_ignores_blank_values():
    cfg = TrackerConfig.from_env({"VISIT_TRACKER_DB_PATH": "   ", "VISIT_TRACKER_PORT": ""})

    assert cfg.database_path == config.DATABASE_FILE
    assert cfg.server_port == config.SERVER_PORT


@pytest.mark.parametrize("environ", [
    {"VISIT_TRACKER_PORT": "not-a-port"},
    {"VISIT_TRACKER_PORT": "70000"},
    {"VISIT_TRACKER_DB_THREADS": "0"},
    {"VISIT_TRACKER_DB_TIMEOUT": "soon"},
])
def test_from_env_rejects_invalid_values(environ):
    with pytest.raises(ValueError):
        TrackerConfig.from_env(environ)


def test_config_is_immutable():
    cfg = TrackerConfig()

    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.server_port = 1234


def test_from_env_defaults_to_process_environment(monkeypatch):
    monkeypatch.setenv("VISIT_TRACKER_DB_PATH", "/tmp/from-process-env.db")

    assert TrackerConfig.from_env().database_path == "/tmp/from-process-env.db"
