# wallet_import.py
"""
Importación de wallets de usuario y consulta de saldo.

Formatos aceptados (se prueba en este orden, gana el primero que parsea):
  1) Array JSON de 32 o 64 enteros  -> "[12, 34, ...]"
  2) Secret en base58 de 32 o 64 bytes (estilo Phantom)
  3) Mnemonic BIP-39 de 12 o 24 palabras con checksum válido,
     derivado en m/44'/501'/0'/0' (mismo path que Phantom/Solflare)
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional

import base58
from mnemonic import Mnemonic
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from errors import WalletImportError

logger = logging.getLogger(__name__)

SOLANA_DERIVATION_PATH = "m/44'/501'/0'/0'"
LAMPORTS_PER_SOL = 1_000_000_000

_MNEMONIC = Mnemonic("english")


def _keypair_from_secret(secret: bytes) -> Keypair:
    # 64 bytes = secret + pubkey (formato Solana CLI / Phantom); 32 bytes = seed
    if len(secret) == 64:
        return Keypair.from_bytes(secret)
    return Keypair.from_seed(secret)


def _try_json_array(text: str) -> Optional[Keypair]:
    if not (text.startswith("[") and text.endswith("]")):
        return None
    try:
        arr = json.loads(text)
        if not isinstance(arr, list) or len(arr) not in (32, 64):
            return None
        return _keypair_from_secret(bytes(arr))
    except Exception as exc:
        logger.debug("[Wallet] Array JSON no válido: %r", exc)
        return None


def _try_base58(text: str) -> Optional[Keypair]:
    try:
        decoded = base58.b58decode(text)
        if len(decoded) not in (32, 64):
            return None
        return _keypair_from_secret(decoded)
    except Exception as exc:
        logger.debug("[Wallet] base58 no válido: %r", exc)
        return None


def _try_mnemonic(text: str) -> Optional[Keypair]:
    words = text.lower().split()
    if len(words) not in (12, 24):
        return None
    phrase = " ".join(words)
    if not _MNEMONIC.check(phrase):
        raise WalletImportError("mnemonic checksum inválido")
    seed = Mnemonic.to_seed(phrase)
    return Keypair.from_seed_and_derivation_path(seed, SOLANA_DERIVATION_PATH)


def import_wallet_from_input(text: str) -> Keypair:
    """Devuelve el Keypair o lanza WalletImportError."""
    text = (text or "").strip()
    if not text:
        raise WalletImportError("entrada vacía")

    for attempt in (_try_json_array, _try_base58, _try_mnemonic):
        kp = attempt(text)
        if kp is not None:
            return kp

    raise WalletImportError("no es un array de bytes, base58 ni mnemonic válido")


class WalletRegistry:
    """Wallet activa por usuario (en memoria, como en la sesión del bot)."""

    def __init__(self) -> None:
        self._wallets: Dict[str, Keypair] = {}

    def get(self, user_id: str) -> Optional[Keypair]:
        return self._wallets.get(str(user_id))

    def set(self, user_id: str, keypair: Keypair) -> None:
        self._wallets[str(user_id)] = keypair

    def has(self, user_id: str) -> bool:
        return str(user_id) in self._wallets


class SolanaBalances:
    """Saldo SOL de la wallet importada del usuario vía RPC."""

    def __init__(self, rpc_url: str, wallets: WalletRegistry) -> None:
        self.client = AsyncClient(rpc_url)
        self.wallets = wallets

    async def get_balance(self, user_id: str) -> float:
        kp = self.wallets.get(user_id)
        if kp is None:
            return 0.0
        try:
            resp = await self.client.get_balance(kp.pubkey())
            return resp.value / LAMPORTS_PER_SOL
        except Exception as exc:
            logger.warning("[Wallet] Error leyendo saldo de %s: %r", kp.pubkey(), exc)
            return 0.0

    async def close(self) -> None:
        await self.client.close()
