# tests/conftest.py
"""
Fixtures comunes: store JSON en tmp_path, oráculo y saldos falsos, reloj fijo
y un notifier mockeado para no llamar a Telegram.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Antes de importar cualquier módulo que lea config
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123:fake_token")

from flows import FlowMachine, FlowSessions
from order_service import OrderService
from order_store import JsonFileOrderStore
from trigger_engine import TriggerEngine
from wallet_import import WalletRegistry

T0 = 1_700_000_000_000


class FixedClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeOracle:
    """Precios, símbolos y fichas fijos; lo que no está devuelve None."""

    def __init__(self, prices=None, symbols=None, pairs=None):
        self.prices = dict(prices or {})
        self.symbols = dict(symbols or {})
        self.pairs = dict(pairs or {})
        self.price_calls = []

    async def resolve_price(self, identifier):
        self.price_calls.append(identifier)
        return self.prices.get(identifier)

    async def resolve_symbol(self, identifier):
        return self.symbols.get(identifier, identifier.upper())

    async def sol_price_usd(self):
        return self.prices.get("sol")

    async def search_pair(self, query):
        return self.pairs.get(query)


class FakeBalances:
    def __init__(self, balances=None):
        self.balances = dict(balances or {})

    async def get_balance(self, user_id):
        return self.balances.get(str(user_id), 0.0)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(tmp_path):
    return JsonFileOrderStore(str(tmp_path / "data"))


@pytest.fixture
def oracle():
    return FakeOracle(prices={"sol": 100.0}, symbols={"bonk": "BONK"})


@pytest.fixture
def balances():
    return FakeBalances()


@pytest.fixture
def wallets():
    return WalletRegistry()


@pytest.fixture
def sessions():
    return FlowSessions()


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.notify = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def machine(store, oracle, wallets, balances, clock):
    return FlowMachine(store, oracle, wallets, balances, clock=clock)


@pytest.fixture
def engine(store, oracle, notifier, clock):
    return TriggerEngine(store, oracle, notifier, clock=clock)


@pytest.fixture
def orders(store, clock):
    return OrderService(store, clock=clock)
