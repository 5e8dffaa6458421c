# tests/test_config.py
import pytest

from config import load_config

ENV_KEYS = [
    "TELEGRAM_BOT_TOKEN", "DATA_DIR", "STORE_BACKEND", "DATABASE_URL", "SOLANA_RPC",
    "LIMIT_SWEEP_SEC", "DCA_SWEEP_SEC", "ORACLE_TIMEOUT_SEC", "DEXSCREENER_API_URL",
    "COINGECKO_API_URL", "HEALTH_PORT", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg.telegram_bot_token == ""
    assert cfg.data_dir == "./data"
    assert cfg.store_backend == "json"
    assert cfg.database_url is None
    assert cfg.limit_sweep_sec == 15.0
    assert cfg.dca_sweep_sec == 10.0
    assert cfg.dexscreener_api_url == "https://api.dexscreener.com"
    assert cfg.coingecko_api_url == "https://api.coingecko.com/api/v3"
    assert cfg.health_port == 0
    assert cfg.log_level == "INFO"


def test_overrides(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("STORE_BACKEND", "Postgres")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/db")
    monkeypatch.setenv("LIMIT_SWEEP_SEC", "30")
    monkeypatch.setenv("HEALTH_PORT", "8080")

    cfg = load_config()

    assert cfg.telegram_bot_token == "123:abc"
    assert cfg.store_backend == "postgres"
    assert cfg.database_url.startswith("postgresql://")
    assert cfg.limit_sweep_sec == 30.0
    assert cfg.health_port == 8080


@pytest.mark.parametrize("value", ["0", "-5", "fast", ""])
def test_bad_sweep_periods_fall_back(monkeypatch, value):
    monkeypatch.setenv("LIMIT_SWEEP_SEC", value)
    monkeypatch.setenv("DCA_SWEEP_SEC", value)
    cfg = load_config()
    assert cfg.limit_sweep_sec == 15.0
    assert cfg.dca_sweep_sec == 10.0


def test_unknown_backend_falls_back_to_json(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "redis")
    assert load_config().store_backend == "json"
