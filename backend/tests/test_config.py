import pytest

from chainsync import config as config_module
from chainsync.config import Settings
from chainsync.errors import ConfigurationError


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *_, **__: False)


def test_defaults(monkeypatch):
    for name in ("REFRESH_THRESHOLD_HOURS", "TRANSACTION_SAMPLE_SIZE", "RATE_LIMIT_ETHERSCAN_MS", "CORS_ALLOW_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.refresh_threshold_hours == 2.0
    assert settings.transaction_sample_size == 50
    assert settings.rate_limit_etherscan_ms == 200
    assert settings.cors_allow_origins == ["http://localhost:5173", "http://127.0.0.1:5173"]


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SYNC_MAX_WORKERS", "8")
    monkeypatch.setenv("REFRESH_THRESHOLD_HOURS", "0.5")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.test, https://b.test,")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")

    settings = Settings.from_env()

    assert settings.sync_max_workers == 8
    assert settings.refresh_threshold_hours == 0.5
    assert settings.cors_allow_origins == ["https://a.test", "https://b.test"]
    assert settings.database_url == "sqlite://"


def test_invalid_number_is_configuration_error(monkeypatch):
    monkeypatch.setenv("SYNC_MAX_WORKERS", "many")

    with pytest.raises(ConfigurationError) as excinfo:
        Settings.from_env()

    assert "SYNC_MAX_WORKERS" in str(excinfo.value)


def test_require_lists_missing_variables():
    settings = Settings(neo4j_uri="bolt://localhost:7687")

    with pytest.raises(ConfigurationError) as excinfo:
        settings.require("neo4j_uri", "neo4j_user", "neo4j_password")

    message = str(excinfo.value)
    assert "NEO4J_USER" in message and "NEO4J_PASSWORD" in message
    assert "NEO4J_URI" not in message
