# tests/test_wallet_import.py
import json
from unittest.mock import AsyncMock, MagicMock

import base58
import pytest
from mnemonic import Mnemonic
from solders.keypair import Keypair

from errors import ValidationError, WalletImportError
from wallet_import import (
    SOLANA_DERIVATION_PATH,
    SolanaBalances,
    WalletRegistry,
    import_wallet_from_input,
)

VALID_12 = "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"
BAD_CHECKSUM_24 = " ".join(["abandon"] * 24)


def test_base58_64_byte_secret():
    kp = Keypair()
    secret = base58.b58encode(bytes(kp)).decode()
    assert import_wallet_from_input(secret).pubkey() == kp.pubkey()


def test_base58_32_byte_seed():
    seed = bytes(range(32))
    expected = Keypair.from_seed(seed)
    assert import_wallet_from_input(base58.b58encode(seed).decode()).pubkey() == expected.pubkey()


def test_json_byte_array():
    kp = Keypair()
    text = json.dumps(list(bytes(kp)))
    assert import_wallet_from_input(f"  {text}\n").pubkey() == kp.pubkey()


def test_mnemonic_uses_solana_derivation_path():
    expected = Keypair.from_seed_and_derivation_path(Mnemonic.to_seed(VALID_12), SOLANA_DERIVATION_PATH)
    # mayúsculas y espacios extra se normalizan
    messy = "  " + VALID_12.upper().replace(" ", "   ") + " "
    assert import_wallet_from_input(messy).pubkey() == expected.pubkey()


def test_mnemonic_bad_checksum_rejected():
    with pytest.raises(WalletImportError):
        import_wallet_from_input(BAD_CHECKSUM_24)


@pytest.mark.parametrize("text", ["", "hello world", "[1, 2, 3]", "not-base58-0OIl", "a b c d e f g h i j k l"])
def test_garbage_rejected(text):
    with pytest.raises(WalletImportError):
        import_wallet_from_input(text)


def test_wallet_import_error_is_validation_error():
    assert issubclass(WalletImportError, ValidationError)


def test_registry():
    reg = WalletRegistry()
    kp = Keypair()
    assert reg.get(1) is None
    reg.set(1, kp)
    assert reg.has("1")
    assert reg.get("1") is kp


@pytest.mark.asyncio
async def test_balance_in_sol():
    reg = WalletRegistry()
    reg.set("42", Keypair())
    balances = SolanaBalances("http://localhost:8899", reg)
    balances.client.get_balance = AsyncMock(return_value=MagicMock(value=2_500_000_000))

    assert await balances.get_balance("42") == 2.5
    # sin wallet no hay llamada RPC
    assert await balances.get_balance("7") == 0.0
    assert balances.client.get_balance.await_count == 1


@pytest.mark.asyncio
async def test_balance_rpc_error_is_zero():
    reg = WalletRegistry()
    reg.set("42", Keypair())
    balances = SolanaBalances("http://localhost:8899", reg)
    balances.client.get_balance = AsyncMock(side_effect=RuntimeError("rpc down"))

    assert await balances.get_balance("42") == 0.0
