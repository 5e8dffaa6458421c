# main.py
import asyncio
import logging

from dotenv import load_dotenv
from telegram.ext import Application

from config import BotConfig, load_config
from flows import FlowMachine, FlowSessions
from health_server import register_scheduler, start_health_server
from notifier import TelegramNotifier
from order_service import OrderService
from order_store import JsonFileOrderStore, OrderStore
from price_oracle import PriceOracle
from telegram_bot import build_application
from trigger_engine import SweepScheduler, TriggerEngine
from wallet_import import SolanaBalances, WalletRegistry


def build_store(config: BotConfig) -> OrderStore:
    if config.store_backend == "postgres":
        # import diferido: asyncpg sólo hace falta con este backend
        from order_store_pg import PostgresOrderStore
        return PostgresOrderStore(config.database_url or "")
    return JsonFileOrderStore(config.data_dir)


def main() -> None:
    # Localmente lee .env; en Railway usas variables de entorno directas
    load_dotenv()

    config = load_config()

    # Logging global
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("main")

    if not config.telegram_bot_token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN no configurado")

    # -------------------------------------------------------------------------
    # Componentes
    # -------------------------------------------------------------------------
    store = build_store(config)
    oracle = PriceOracle(
        dexscreener_url=config.dexscreener_api_url,
        coingecko_url=config.coingecko_api_url,
        timeout=config.oracle_timeout_sec,
    )
    wallets = WalletRegistry()
    balances = SolanaBalances(config.solana_rpc_url, wallets)
    sessions = FlowSessions()

    flows = FlowMachine(store, oracle, wallets, balances)
    orders = OrderService(store)

    app = build_application(config, flows, orders, wallets, sessions)

    notifier = TelegramNotifier(app.bot)
    engine = TriggerEngine(store, oracle, notifier)
    scheduler = SweepScheduler(
        engine,
        limit_period=config.limit_sweep_sec,
        dca_period=config.dca_sweep_sec,
    )

    # -------------------------------------------------------------------------
    # Arranque / parada de los sweeps junto con el bot
    # -------------------------------------------------------------------------

    async def post_init(application: Application) -> None:
        await store.connect()
        scheduler.start()
        register_scheduler(scheduler)
        if config.health_port:
            asyncio.get_running_loop().create_task(start_health_server(config.health_port))
        logger.info(
            "✅ Sweeps activos (limit cada %.1fs, dca cada %.1fs), store=%s",
            config.limit_sweep_sec, config.dca_sweep_sec, config.store_backend,
        )

    async def post_shutdown(application: Application) -> None:
        await scheduler.stop()
        await oracle.aclose()
        await balances.close()
        await store.close()
        logger.info("⏹️  Recursos liberados.")

    app.post_init = post_init
    app.post_shutdown = post_shutdown

    logger.info("✅ Telegram bot arrancando (polling)...")
    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
