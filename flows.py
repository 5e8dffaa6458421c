# flows.py
"""
Máquina de estados de los flows conversacionales.

Cada usuario tiene como mucho UN flow activo (import, buy, sell, limit, dca,
launch, lookup). Cada respuesta de texto se valida contra el paso actual:
  - inválida -> se repite el mismo paso con un error, sin tocar nada
  - válida   -> se avanza al siguiente paso, o en el último se crea y
                persiste el registro y se limpia el flow

El mapa usuario -> FlowState (FlowSessions) lo posee quien llama (el bot de
Telegram) y se pasa explícitamente a cada método de FlowMachine.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from errors import PersistenceError, ValidationError, WalletImportError
from models import (
    DcaSchedule,
    LaunchSummary,
    LimitOrder,
    Position,
    PositionSource,
    RecordKind,
    TradeSide,
    now_ms,
)
from price_oracle import SYMBOL_FALLBACK_LENGTH, is_address
from wallet_import import import_wallet_from_input

logger = logging.getLogger(__name__)

BUY_AMOUNTS_SOL = (0.10, 0.25, 0.50, 1.00)
SELL_PERCENTS = (25, 50, 75, 100)
LAUNCH_VARIANTS = ("quick", "custom", "presale")

INTERVAL_RE = re.compile(r"^(\d+)\s*([mhd])$", re.IGNORECASE)
INTERVAL_UNIT_MS = {
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}
NUMBER_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")


class FlowKind(str, Enum):
    NONE = "none"
    IMPORT = "import"
    BUY = "buy"
    SELL = "sell"
    LIMIT = "limit"
    DCA = "dca"
    LAUNCH = "launch"
    LOOKUP = "lookup"


class Step(str, Enum):
    AWAIT_KEY = "await_key"
    CHOOSE_AMOUNT = "choose_amount"
    AWAIT_CUSTOM_AMOUNT = "await_custom_amount"
    AWAIT_TOKEN = "await_token"
    AWAIT_TYPE = "await_type"
    AWAIT_PRICE = "await_price"
    AWAIT_AMOUNT = "await_amount"
    AWAIT_INTERVAL = "await_interval"
    AWAIT_NAME = "await_name"
    AWAIT_SYMBOL = "await_symbol"
    AWAIT_SUPPLY = "await_supply"
    AWAIT_QUERY = "await_query"


FIRST_STEP = {
    FlowKind.IMPORT: Step.AWAIT_KEY,
    FlowKind.BUY: Step.CHOOSE_AMOUNT,
    FlowKind.SELL: Step.AWAIT_CUSTOM_AMOUNT,
    FlowKind.LIMIT: Step.AWAIT_TOKEN,
    FlowKind.DCA: Step.AWAIT_TOKEN,
    FlowKind.LAUNCH: Step.AWAIT_NAME,
    FlowKind.LOOKUP: Step.AWAIT_QUERY,
}

PROMPTS = {
    (FlowKind.IMPORT, Step.AWAIT_KEY): (
        "🔒 Security Tip: Never share your private key or mnemonic with people.\n\n"
        "Paste your private key or mnemonic in reply. The message will be deleted immediately."
    ),
    (FlowKind.BUY, Step.CHOOSE_AMOUNT): "Select amount to buy.",
    (FlowKind.SELL, Step.AWAIT_CUSTOM_AMOUNT): "Enter the amount to sell (in SOL). Example: `0.25`",
    (FlowKind.LIMIT, Step.AWAIT_TOKEN): "Enter token symbol or mint for LIMIT order (e.g. BONK or mint...).",
    (FlowKind.LIMIT, Step.AWAIT_TYPE): "Choose order type:",
    (FlowKind.LIMIT, Step.AWAIT_PRICE): "Enter your LIMIT PRICE in USD:",
    (FlowKind.LIMIT, Step.AWAIT_AMOUNT): "Enter token AMOUNT:",
    (FlowKind.DCA, Step.AWAIT_TOKEN): "Enter token symbol or mint for DCA (e.g. BONK or mint).",
    (FlowKind.DCA, Step.AWAIT_INTERVAL): "Enter interval for DCA (format: 30m, 1h, 12h, 1d). Example: `1h`",
    (FlowKind.DCA, Step.AWAIT_AMOUNT): "Enter amount per DCA run (in SOL). Example: `0.1`",
    (FlowKind.LAUNCH, Step.AWAIT_NAME): "Enter *Token Name*:",
    (FlowKind.LAUNCH, Step.AWAIT_SYMBOL): "Enter *Token Symbol* (e.g. META):",
    (FlowKind.LAUNCH, Step.AWAIT_SUPPLY): "Enter *Initial Supply* (number):",
    (FlowKind.LOOKUP, Step.AWAIT_QUERY): "🔍 Enter token mint or symbol to look up:",
}


# ----------------- Parsers de entrada -----------------

def parse_positive_number(
    text: str,
    *,
    decimal_comma: bool = False,
    thousands_comma: bool = False,
) -> float:
    raw = (text or "").strip()
    if thousands_comma:
        raw = raw.replace(",", "")
    elif decimal_comma:
        raw = raw.replace(",", ".")
    if not NUMBER_RE.match(raw):
        raise ValidationError(f"'{text}' is not a number")
    value = float(raw)
    if value <= 0:
        raise ValidationError("value must be greater than 0")
    return value


def parse_interval(text: str) -> Tuple[str, int]:
    """'45m' -> ('45m', 2700000). Devuelve el texto normalizado y los ms."""
    m = INTERVAL_RE.match((text or "").strip())
    if not m:
        raise ValidationError("Invalid interval format. Use examples: 15m, 30m, 1h, 12h, 1d.")
    n = int(m.group(1))
    unit = m.group(2).lower()
    if n <= 0:
        raise ValidationError("Interval must be at least 1.")
    return f"{n}{unit}", n * INTERVAL_UNIT_MS[unit]


def display_symbol(token: str) -> str:
    if is_address(token):
        return token[:SYMBOL_FALLBACK_LENGTH].upper()
    return token.upper()


# ----------------- Estado -----------------

@dataclass
class FlowState:
    user_id: str
    kind: FlowKind
    step: Step
    fields: Dict[str, Any] = field(default_factory=dict)


class FlowSessions:
    """Flow activo por usuario. Arrancar uno nuevo descarta el anterior."""

    def __init__(self) -> None:
        self._states: Dict[str, FlowState] = {}

    def get(self, user_id: str) -> Optional[FlowState]:
        return self._states.get(str(user_id))

    def start(self, user_id: str, kind: FlowKind, **fields: Any) -> FlowState:
        user_id = str(user_id)
        prev = self._states.get(user_id)
        if prev is not None:
            logger.info(
                "[Flow] %s: descartando flow %s incompleto (paso %s)",
                user_id, prev.kind.value, prev.step.value,
            )
        state = FlowState(user_id=user_id, kind=kind, step=FIRST_STEP[kind], fields=dict(fields))
        self._states[user_id] = state
        return state

    def clear(self, user_id: str) -> Optional[FlowState]:
        return self._states.pop(str(user_id), None)

    def kind_of(self, user_id: str) -> FlowKind:
        state = self.get(user_id)
        return state.kind if state else FlowKind.NONE

    def __len__(self) -> int:
        return len(self._states)


class Outcome(str, Enum):
    PROMPT = "prompt"
    REPROMPT = "reprompt"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


@dataclass
class FlowReply:
    outcome: Outcome
    text: str = ""
    # (label, callback_data) para los botones
    choices: List[Tuple[str, str]] = field(default_factory=list)
    force_reply: bool = False
    record: Any = None


StepHandler = Callable[["FlowSessions", FlowState, str], Awaitable[FlowReply]]


# ----------------- Máquina -----------------

class FlowMachine:
    def __init__(
        self,
        store,
        oracle,
        wallets,
        balances,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.wallets = wallets
        self.balances = balances
        self.clock = clock

        self._handlers: Dict[Tuple[FlowKind, Step], StepHandler] = {
            (FlowKind.IMPORT, Step.AWAIT_KEY): self._on_import_key,
            (FlowKind.BUY, Step.CHOOSE_AMOUNT): self._on_buy_text,
            (FlowKind.SELL, Step.AWAIT_CUSTOM_AMOUNT): self._on_sell_amount,
            (FlowKind.LIMIT, Step.AWAIT_TOKEN): self._on_limit_token,
            (FlowKind.LIMIT, Step.AWAIT_TYPE): self._on_limit_type_text,
            (FlowKind.LIMIT, Step.AWAIT_PRICE): self._on_limit_price,
            (FlowKind.LIMIT, Step.AWAIT_AMOUNT): self._on_limit_amount,
            (FlowKind.DCA, Step.AWAIT_TOKEN): self._on_dca_token,
            (FlowKind.DCA, Step.AWAIT_INTERVAL): self._on_dca_interval,
            (FlowKind.DCA, Step.AWAIT_AMOUNT): self._on_dca_amount,
            (FlowKind.LAUNCH, Step.AWAIT_NAME): self._on_launch_name,
            (FlowKind.LAUNCH, Step.AWAIT_SYMBOL): self._on_launch_symbol,
            (FlowKind.LAUNCH, Step.AWAIT_SUPPLY): self._on_launch_supply,
            (FlowKind.LOOKUP, Step.AWAIT_QUERY): self._on_lookup_query,
        }

    # ----------------- Arranque / cancelación -----------------

    def start_import(self, sessions: FlowSessions, user_id: str) -> FlowReply:
        return self._prompt(sessions.start(user_id, FlowKind.IMPORT))

    def start_limit(self, sessions: FlowSessions, user_id: str) -> FlowReply:
        return self._prompt(sessions.start(user_id, FlowKind.LIMIT))

    def start_dca(self, sessions: FlowSessions, user_id: str) -> FlowReply:
        return self._prompt(sessions.start(user_id, FlowKind.DCA))

    def start_launch(self, sessions: FlowSessions, user_id: str, variant: str = "quick") -> FlowReply:
        if variant not in LAUNCH_VARIANTS:
            variant = "quick"
        return self._prompt(sessions.start(user_id, FlowKind.LAUNCH, variant=variant))

    def start_buy(self, sessions: FlowSessions, user_id: str, token: str) -> FlowReply:
        token = (token or "").strip()
        if not token:
            return FlowReply(Outcome.FAILED, "No token selected. Use /buy <symbol or mint>.")
        state = sessions.start(user_id, FlowKind.BUY, token=token)
        reply = self._prompt(state)
        reply.text = f"🛒 Token detected: {token}\n\n{reply.text}"
        return reply

    def start_custom_sell(
        self, sessions: FlowSessions, user_id: str, token: Optional[str] = None
    ) -> FlowReply:
        reply = self._prompt(sessions.start(user_id, FlowKind.SELL, token=token))
        if token:
            reply.text = f"💰 *Sell Token*\n\nMint:\n`{token}`\n\n{reply.text}"
        return reply

    def start_lookup(self, sessions: FlowSessions, user_id: str) -> FlowReply:
        return self._prompt(sessions.start(user_id, FlowKind.LOOKUP))

    async def lookup(self, sessions: FlowSessions, user_id: str, query: str) -> FlowReply:
        """
        Ficha de token vía oracle.search_pair, con botones que abren buy o
        sell con el mint ya puesto. Sea cual sea el resultado no queda flow.
        """
        sessions.clear(user_id)
        pair = await self.oracle.search_pair(query)
        if pair is None:
            return FlowReply(Outcome.FAILED, "❌ Token not found.")

        price = f"${pair.price_usd}" if pair.price_usd is not None else "N/A"
        text = (
            f"⭐ *{pair.name} ({pair.symbol})*\n\n"
            f"🔗 *Mint*\n`{pair.mint}`\n\n"
            f"💰 *Price:* {price}\n"
            f"📊 *Liquidity:* ${pair.liquidity_usd:,.0f}\n"
            f"📈 *Volume (24h):* ${pair.volume_24h_usd:,.0f}"
        )
        choices = [
            ("🛒 Buy", f"buy_from_search_{pair.mint}"),
            ("💰 Sell", f"sell_from_profile_{pair.mint}"),
            ("⬅️ Back", "back_to_main"),
        ]
        return FlowReply(Outcome.COMPLETED, text, choices=choices, record=pair)

    def cancel(self, sessions: FlowSessions, user_id: str) -> FlowReply:
        state = sessions.clear(user_id)
        if state is None:
            return FlowReply(Outcome.IGNORED, "Nothing to cancel.")
        return FlowReply(Outcome.CANCELLED, f"{state.kind.value.capitalize()} cancelled.")

    # ----------------- Entradas -----------------

    async def handle_text(self, sessions: FlowSessions, user_id: str, text: str) -> FlowReply:
        state = sessions.get(user_id)
        if state is None:
            return FlowReply(Outcome.IGNORED)

        text = (text or "").strip()
        if text.lower() == "cancel":
            return self.cancel(sessions, user_id)

        handler = self._handlers[(state.kind, state.step)]
        try:
            return await handler(sessions, state, text)
        except ValidationError as exc:
            logger.debug("[Flow] %s %s/%s rechazado: %s", user_id, state.kind.value, state.step.value, exc)
            return self._reprompt(state, str(exc))

    async def choose_limit_side(
        self, sessions: FlowSessions, user_id: str, side: TradeSide
    ) -> FlowReply:
        state = sessions.get(user_id)
        if state is None or state.kind != FlowKind.LIMIT or state.step != Step.AWAIT_TYPE:
            return FlowReply(Outcome.FAILED, "Limit session expired. Please start a new order.")
        state.fields["side"] = TradeSide(side)
        state.step = Step.AWAIT_PRICE
        return self._prompt(state)

    async def choose_buy_amount(
        self, sessions: FlowSessions, user_id: str, amount_sol: float
    ) -> FlowReply:
        state = sessions.get(user_id)
        if state is None or state.kind != FlowKind.BUY or state.step != Step.CHOOSE_AMOUNT:
            return FlowReply(Outcome.FAILED, "Buy session expired. Please start the buy flow again.")

        if not any(abs(amount_sol - a) < 1e-9 for a in BUY_AMOUNTS_SOL):
            return self._reprompt(state, "Invalid buy amount.")

        token = state.fields["token"]
        symbol = await self.oracle.resolve_symbol(token)
        token_price = await self.oracle.resolve_price(token)
        sol_price = await self.oracle.sol_price_usd()

        estimated_tokens = None
        if token_price and sol_price:
            estimated_tokens = round(amount_sol * sol_price / token_price, 8)

        pos = Position(
            symbol=symbol,
            mint=token if is_address(token) else None,
            entry_price_usd=token_price,
            amount_sol=amount_sol,
            amount_tokens=estimated_tokens,
            timestamp=self.clock(),
            source=PositionSource.SIMULATED_BUY,
        )
        if not await self._persist(state.user_id, RecordKind.POSITIONS, pos):
            return FlowReply(Outcome.FAILED, "Failed to record simulated buy.")

        sessions.clear(state.user_id)
        text = f"✅ Simulated BUY recorded: *{symbol}*, {amount_sol} SOL"
        if estimated_tokens is not None:
            text += f" (~{round(estimated_tokens, 4)} {symbol})"
        return FlowReply(Outcome.COMPLETED, text, record=pos)

    async def quick_sell(self, user_id: str, percent: int) -> FlowReply:
        """Venta simulada de un % del saldo; no pasa por un flow."""
        if percent not in SELL_PERCENTS:
            return FlowReply(Outcome.FAILED, "Invalid sell percentage.")

        balance = await self.balances.get_balance(user_id)
        amount = round(balance * (percent / 100), 6)
        if amount <= 0:
            return FlowReply(Outcome.FAILED, "Insufficient balance to sell.")

        pos = Position(
            symbol="SOL",
            amount_sol=amount,
            percent=percent,
            timestamp=self.clock(),
            source=PositionSource.SIMULATED_SELL,
        )
        if not await self._persist(str(user_id), RecordKind.POSITIONS, pos):
            return FlowReply(Outcome.FAILED, "❌ Failed to process sell.")
        return FlowReply(
            Outcome.COMPLETED, f"✅ Simulated SELL recorded: *{amount} SOL* ({percent}%)", record=pos
        )

    # ----------------- import -----------------

    async def _on_import_key(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        # El secreto no se re-pide: cualquier fallo cierra el flow
        sessions.clear(state.user_id)
        try:
            kp = import_wallet_from_input(text)
        except WalletImportError as exc:
            logger.info("[Flow] %s: import de wallet fallido (%s)", state.user_id, exc)
            return FlowReply(Outcome.FAILED, "❌ Failed to import. Make sure the key or mnemonic is correct.")

        self.wallets.set(state.user_id, kp)
        pubkey = str(kp.pubkey())
        logger.info("[Flow] %s: wallet importada %s", state.user_id, pubkey)
        return FlowReply(
            Outcome.COMPLETED,
            f"✅ *Wallet Imported Successfully!*\n\n🔑 *Public Key:* `{pubkey}`",
            record=pubkey,
        )

    # ----------------- buy -----------------

    async def _on_buy_text(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        raise ValidationError("Select an amount with the buttons below.")

    # ----------------- sell -----------------

    async def _on_sell_amount(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        try:
            amount = parse_positive_number(text, decimal_comma=True)
        except ValidationError:
            raise ValidationError("Invalid amount. Please enter a numeric amount in SOL, e.g. `0.25`.")

        balance = await self.balances.get_balance(state.user_id)
        if amount > balance:
            raise ValidationError(
                f"Insufficient balance: you are trying to sell {amount} SOL "
                f"but your balance is {balance:.6f} SOL."
            )

        token = state.fields.get("token")
        symbol = await self.oracle.resolve_symbol(token) if token else "SOL"
        pos = Position(
            symbol=symbol,
            mint=token,
            amount_sol=amount,
            timestamp=self.clock(),
            source=PositionSource.SIMULATED_SELL,
        )
        if not await self._persist(state.user_id, RecordKind.POSITIONS, pos):
            return FlowReply(Outcome.FAILED, "Failed to process sell.")

        sessions.clear(state.user_id)
        return FlowReply(Outcome.COMPLETED, f"✅ Simulated SELL recorded: *{amount} SOL*", record=pos)

    # ----------------- limit -----------------

    async def _on_limit_token(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        if not text:
            raise ValidationError("Token cannot be empty.")
        state.fields["token"] = text
        state.fields["symbol"] = display_symbol(text)
        state.step = Step.AWAIT_TYPE
        return self._prompt(state)

    async def _on_limit_type_text(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        raise ValidationError("Choose BUY or SELL with the buttons.")

    async def _on_limit_price(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        try:
            price = parse_positive_number(text)
        except ValidationError:
            raise ValidationError("Invalid price.")
        state.fields["price"] = price
        state.step = Step.AWAIT_AMOUNT
        return self._prompt(state)

    async def _on_limit_amount(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        try:
            amount = parse_positive_number(text)
        except ValidationError:
            raise ValidationError("Invalid amount.")

        f = state.fields
        order = LimitOrder(
            side=f["side"],
            token=f["token"],
            symbol=f["symbol"],
            target_price_usd=f["price"],
            amount=amount,
            created_at=self.clock(),
        )
        if not await self._persist(state.user_id, RecordKind.LIMITS, order):
            return FlowReply(Outcome.FAILED, "Failed to save limit order. Send the amount again.")

        sessions.clear(state.user_id)
        return FlowReply(
            Outcome.COMPLETED,
            "✅ *Limit Order Created!*\n\n"
            f"Token: {order.symbol}\nType: {order.side.value}\n"
            f"Price: ${order.target_price_usd}\nAmount: {order.amount}",
            record=order,
        )

    # ----------------- dca -----------------

    async def _on_dca_token(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        if not text:
            raise ValidationError("Token cannot be empty.")
        symbol = await self.oracle.resolve_symbol(text)
        state.fields["token"] = text
        state.fields["symbol"] = symbol or text.upper()
        state.step = Step.AWAIT_INTERVAL
        return self._prompt(state)

    async def _on_dca_interval(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        interval, interval_ms = parse_interval(text)
        state.fields["interval"] = interval
        state.fields["interval_ms"] = interval_ms
        state.step = Step.AWAIT_AMOUNT
        return self._prompt(state)

    async def _on_dca_amount(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        try:
            amount = parse_positive_number(text, decimal_comma=True)
        except ValidationError:
            raise ValidationError("Invalid amount. Enter a numeric value in SOL, e.g. `0.1`.")

        f = state.fields
        now = self.clock()
        schedule = DcaSchedule(
            token=f["token"],
            symbol=f["symbol"],
            interval=f["interval"],
            interval_ms=f["interval_ms"],
            amount_per_run=amount,
            created_at=now,
            next_run_at=now + f["interval_ms"],
            run_count=0,
        )
        if not await self._persist(state.user_id, RecordKind.DCA, schedule):
            return FlowReply(Outcome.FAILED, "Failed to save DCA. Send the amount again.")

        sessions.clear(state.user_id)
        return FlowReply(
            Outcome.COMPLETED,
            "✅ *DCA Created!*\n\n"
            f"Token: {schedule.symbol}\nInterval: {schedule.interval}\n"
            f"Amount: {schedule.amount_per_run} SOL",
            record=schedule,
        )

    # ----------------- launch -----------------

    async def _on_launch_name(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        if not text:
            raise ValidationError("Token name cannot be empty.")
        state.fields["name"] = text
        state.step = Step.AWAIT_SYMBOL
        return self._prompt(state)

    async def _on_launch_symbol(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        if not text:
            raise ValidationError("Token symbol cannot be empty.")
        state.fields["symbol"] = text.upper()
        state.step = Step.AWAIT_SUPPLY
        return self._prompt(state)

    async def _on_launch_supply(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        try:
            supply = parse_positive_number(text, thousands_comma=True)
        except ValidationError:
            raise ValidationError("Invalid supply. Enter a numeric value.")

        f = state.fields
        summary = LaunchSummary(
            variant=f["variant"], name=f["name"], symbol=f["symbol"], supply=supply
        )
        sessions.clear(state.user_id)
        supply_txt = f"{supply:,.0f}" if supply.is_integer() else f"{supply:,}"
        return FlowReply(
            Outcome.COMPLETED,
            "🚀 *Token Launch Summary*\n\n"
            f"• *Type:* {summary.variant.upper()}\n"
            f"• *Name:* {summary.name}\n"
            f"• *Symbol:* {summary.symbol}\n"
            f"• *Supply:* {supply_txt}\n\n"
            "⚠️ *This is currently simulated.*",
            record=summary,
        )

    # ----------------- lookup -----------------

    async def _on_lookup_query(self, sessions: FlowSessions, state: FlowState, text: str) -> FlowReply:
        if not text:
            raise ValidationError("Enter a token mint or symbol.")
        return await self.lookup(sessions, state.user_id, text)

    # ----------------- helpers -----------------

    async def _persist(self, user_id: str, kind: RecordKind, record) -> bool:
        try:
            await self.store.append(user_id, kind, record)
            return True
        except PersistenceError as exc:
            logger.error("[Flow] %s: no se pudo guardar %s: %s", user_id, kind.value, exc)
            return False

    def _choices_for(self, state: FlowState) -> List[Tuple[str, str]]:
        if state.kind == FlowKind.LIMIT and state.step == Step.AWAIT_TYPE:
            return [("BUY", "limit_type_buy"), ("SELL", "limit_type_sell")]
        if state.kind == FlowKind.BUY and state.step == Step.CHOOSE_AMOUNT:
            choices = [(f"{a:.2f} SOL", f"buy_amount_{a:.2f}") for a in BUY_AMOUNTS_SOL]
            return choices + [("Cancel", "buy_cancel")]
        return []

    def _prompt(self, state: FlowState, outcome: Outcome = Outcome.PROMPT) -> FlowReply:
        choices = self._choices_for(state)
        return FlowReply(
            outcome,
            PROMPTS[(state.kind, state.step)],
            choices=choices,
            force_reply=not choices,
        )

    def _reprompt(self, state: FlowState, error: str) -> FlowReply:
        reply = self._prompt(state, Outcome.REPROMPT)
        reply.text = f"❌ {error}\n\n{reply.text}"
        return reply
