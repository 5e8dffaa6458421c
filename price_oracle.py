# price_oracle.py
"""
Oráculo de precios en USD para tokens de Solana.

- Identificadores largos (>= 40 chars) se tratan como mint y van a DexScreener:
  https://api.dexscreener.com/latest/dex/tokens/{mint}
- "sol"/"solana" va directo a CoinGecko simple/price?ids=solana
- El resto se trata como símbolo o nombre: se busca el id en la lista de
  monedas de CoinGecko (cacheada en memoria) y luego simple/price.
- search_pair(q) busca en DexScreener /latest/dex/search y se queda con el
  primer par de Solana (ficha de token con botones de compra/venta).

Nunca lanza hacia el llamador: fallo de red, JSON con forma inesperada o
sin match -> None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from errors import OracleUnavailable

logger = logging.getLogger(__name__)

DEXSCREENER_API_URL = "https://api.dexscreener.com"
COINGECKO_API_URL = "https://api.coingecko.com/api/v3"

# A partir de esta longitud el identificador es un mint/contract address
ADDRESS_MIN_LENGTH = 40
SYMBOL_FALLBACK_LENGTH = 8


def is_address(identifier: str) -> bool:
    return len(identifier) >= ADDRESS_MIN_LENGTH


def _positive_float(value: Any) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if price <= 0 or price != price or price == float("inf"):
        return None
    return price


def _fallback_symbol(identifier: str) -> str:
    if is_address(identifier):
        return identifier[:SYMBOL_FALLBACK_LENGTH].upper()
    return identifier.upper()


def _as_dict(value: Any, what: str) -> Dict[str, Any]:
    # Un 200 con forma inesperada cuenta como proveedor caído
    if not isinstance(value, dict):
        raise OracleUnavailable(f"{what}: se esperaba un objeto, llegó {type(value).__name__}")
    return value


@dataclass
class TokenPair:
    """Par de DexScreener resumido para la ficha de un token."""

    mint: str
    name: str
    symbol: str
    price_usd: Optional[float]
    liquidity_usd: float
    volume_24h_usd: float


def _token_pair(pair: Dict[str, Any]) -> TokenPair:
    base = _as_dict(pair.get("baseToken") or {}, "baseToken")
    mint = base.get("address")
    if not isinstance(mint, str) or not mint:
        raise OracleUnavailable("par sin baseToken.address")
    liquidity = pair.get("liquidity") if isinstance(pair.get("liquidity"), dict) else {}
    volume = pair.get("volume") if isinstance(pair.get("volume"), dict) else {}
    return TokenPair(
        mint=mint,
        name=str(base.get("name") or ""),
        symbol=str(base.get("symbol") or _fallback_symbol(mint)),
        price_usd=_positive_float(pair.get("priceUsd")),
        liquidity_usd=_positive_float(liquidity.get("usd")) or 0.0,
        volume_24h_usd=_positive_float(volume.get("h24")) or 0.0,
    )


async def _get_json(client: httpx.AsyncClient, url: str, **params: Any) -> Any:
    try:
        resp = await client.get(url, params=params or None)
    except httpx.HTTPError as exc:
        raise OracleUnavailable(f"error de red {url}: {exc!r}") from exc

    if resp.status_code != 200:
        raise OracleUnavailable(f"status {resp.status_code} en {url}")

    try:
        return resp.json()
    except ValueError as exc:
        raise OracleUnavailable(f"JSON inválido en {url}: {exc!r}") from exc


class PriceOracle:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        dexscreener_url: str = DEXSCREENER_API_URL,
        coingecko_url: str = COINGECKO_API_URL,
        timeout: float = 8.0,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.dexscreener_url = dexscreener_url.rstrip("/")
        self.coingecko_url = coingecko_url.rstrip("/")
        self._coin_list: Optional[List[Dict[str, Any]]] = None

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # ----------------- API pública -----------------

    async def resolve_price(self, identifier: str) -> Optional[float]:
        """Precio en USD o None si no se conoce."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        try:
            if is_address(identifier):
                return await self._price_from_dexscreener(identifier)
            if identifier.lower() in ("sol", "solana"):
                return await self._price_from_coingecko("solana")
            coin_id = await self._coin_id_for(identifier)
            if coin_id is None:
                return None
            return await self._price_from_coingecko(coin_id)
        except OracleUnavailable as exc:
            logger.debug("[Oracle] Sin precio para %s: %s", identifier, exc)
            return None

    async def resolve_symbol(self, identifier: str) -> str:
        """Símbolo para mostrar; si falla, el identificador en mayúsculas."""
        identifier = (identifier or "").strip()
        try:
            if is_address(identifier):
                pair = await self._first_pair(identifier)
                symbol = _as_dict((pair or {}).get("baseToken") or {}, "baseToken").get("symbol")
                return symbol if isinstance(symbol, str) and symbol else _fallback_symbol(identifier)

            coin_id = await self._coin_id_for(identifier)
            if coin_id is None:
                return identifier.upper()
            info = _as_dict(
                await _get_json(self.client, f"{self.coingecko_url}/coins/{coin_id}"), f"coins/{coin_id}"
            )
            symbol = info.get("symbol")
            return symbol.upper() if isinstance(symbol, str) and symbol else identifier.upper()
        except OracleUnavailable as exc:
            logger.debug("[Oracle] Sin símbolo para %s: %s", identifier, exc)
            return _fallback_symbol(identifier)

    async def sol_price_usd(self) -> Optional[float]:
        return await self.resolve_price("sol")

    async def search_pair(self, query: str) -> Optional[TokenPair]:
        """
        Búsqueda en DexScreener (/latest/dex/search). Devuelve el primer par de
        Solana o None si no hay match o el proveedor falla.
        """
        query = (query or "").strip()
        if not query:
            return None
        try:
            data = _as_dict(
                await _get_json(self.client, f"{self.dexscreener_url}/latest/dex/search", q=query),
                "search",
            )
            pairs = data.get("pairs") or []
            if not isinstance(pairs, list):
                raise OracleUnavailable("search: 'pairs' no es una lista")
            for pair in pairs:
                if isinstance(pair, dict) and pair.get("chainId") == "solana":
                    return _token_pair(pair)
            return None
        except OracleUnavailable as exc:
            logger.debug("[Oracle] Búsqueda fallida para %s: %s", query, exc)
            return None

    # ----------------- Proveedores -----------------

    async def _first_pair(self, mint: str) -> Optional[Dict[str, Any]]:
        path = f"/latest/dex/tokens/{mint}"
        data = _as_dict(await _get_json(self.client, f"{self.dexscreener_url}{path}"), path)
        pairs = data.get("pairs") or []
        if not isinstance(pairs, list):
            raise OracleUnavailable(f"{path}: 'pairs' no es una lista")
        return _as_dict(pairs[0], f"{path} pair") if pairs else None

    async def _price_from_dexscreener(self, mint: str) -> Optional[float]:
        pair = await self._first_pair(mint)
        if not pair:
            return None
        return _positive_float(pair.get("priceUsd") or pair.get("price"))

    async def _price_from_coingecko(self, coin_id: str) -> Optional[float]:
        data = await _get_json(
            self.client,
            f"{self.coingecko_url}/simple/price",
            ids=coin_id,
            vs_currencies="usd",
        )
        entry = _as_dict(data, "simple/price").get(coin_id) or {}
        return _positive_float(_as_dict(entry, f"simple/price {coin_id}").get("usd"))

    async def _coin_id_for(self, symbol: str) -> Optional[str]:
        needle = symbol.lower()
        for coin in await self._load_coin_list():
            if not isinstance(coin, dict):
                continue
            name = str(coin.get("name") or "").lower()
            if coin.get("symbol") == needle or coin.get("id") == needle or name == needle:
                return coin.get("id")
        return None

    async def _load_coin_list(self) -> List[Dict[str, Any]]:
        # Sólo se cachea una respuesta buena; si falla se reintenta la próxima vez
        if self._coin_list is None:
            data = await _get_json(self.client, f"{self.coingecko_url}/coins/list")
            if not isinstance(data, list):
                raise OracleUnavailable("coins/list no devolvió una lista")
            self._coin_list = data
            logger.info("[Oracle] Lista de CoinGecko cacheada (%d monedas)", len(data))
        return self._coin_list
