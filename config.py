# config.py
import os
from dataclasses import dataclass


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_float(name: str, default: float) -> float:
    v = _get_env(name)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _get_env_int(name: str, default: int) -> int:
    v = _get_env(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


@dataclass
class BotConfig:
    telegram_bot_token: str

    data_dir: str
    store_backend: str
    database_url: str | None

    solana_rpc_url: str

    limit_sweep_sec: float
    dca_sweep_sec: float

    dexscreener_api_url: str
    coingecko_api_url: str
    oracle_timeout_sec: float

    health_port: int

    log_level: str


def load_config() -> BotConfig:
    store_backend = (_get_env("STORE_BACKEND", "json") or "json").lower()
    if store_backend not in ("json", "postgres"):
        store_backend = "json"

    limit_sweep_sec = _get_env_float("LIMIT_SWEEP_SEC", 15.0)
    if limit_sweep_sec <= 0:
        limit_sweep_sec = 15.0
    dca_sweep_sec = _get_env_float("DCA_SWEEP_SEC", 10.0)
    if dca_sweep_sec <= 0:
        dca_sweep_sec = 10.0

    return BotConfig(
        telegram_bot_token=_get_env("TELEGRAM_BOT_TOKEN", "") or "",

        data_dir=_get_env("DATA_DIR", "./data") or "./data",
        store_backend=store_backend,
        database_url=_get_env("DATABASE_URL"),

        solana_rpc_url=_get_env("SOLANA_RPC", "https://api.devnet.solana.com")
        or "https://api.devnet.solana.com",

        limit_sweep_sec=limit_sweep_sec,
        dca_sweep_sec=dca_sweep_sec,

        dexscreener_api_url=_get_env(
            "DEXSCREENER_API_URL", "https://api.dexscreener.com"
        ) or "https://api.dexscreener.com",
        coingecko_api_url=_get_env(
            "COINGECKO_API_URL", "https://api.coingecko.com/api/v3"
        ) or "https://api.coingecko.com/api/v3",
        oracle_timeout_sec=_get_env_float("ORACLE_TIMEOUT_SEC", 8.0),

        health_port=_get_env_int("HEALTH_PORT", 0),

        log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    )
