# telegram_bot.py
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from telegram import ForceReply, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from config import BotConfig
from flows import FlowKind, FlowMachine, FlowReply, FlowSessions, Outcome
from models import DcaStatus, LimitStatus, PositionSource, TradeSide
from order_service import OrderService
from wallet_import import WalletRegistry

logger = logging.getLogger(__name__)

Buttons = List[List[Tuple[str, str]]]

MAIN_MENU: Buttons = [
    [("🛒 Buy", "buy"), ("💰 Sell", "sell")],
    [("📊 Positions", "positions"), ("📈 Limits", "limits"), ("🔁 DCA", "dca")],
    [("🔍 Lookup", "lookup"), ("🎉 Launch", "launch"), ("🔗 Wallet", "import_wallet")],
]


def _keyboard(rows: Buttons) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in rows]
    )


def _fmt_ms(ts: Optional[int]) -> str:
    if not ts:
        return "N/A"
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H:%M")


class TelegramController:
    """
    Adaptador de Telegram: traduce comandos, botones y texto a llamadas a
    FlowMachine / OrderService y pinta las respuestas. No guarda estado propio
    salvo el mapa de flows (FlowSessions), que pasa a cada llamada.
    """

    def __init__(
        self,
        config: BotConfig,
        flows: FlowMachine,
        orders: OrderService,
        wallets: WalletRegistry,
        sessions: FlowSessions,
    ) -> None:
        self.config = config
        self.flows = flows
        self.orders = orders
        self.wallets = wallets
        self.sessions = sessions

    # --------- helpers ---------

    @staticmethod
    def _uid(update: Update) -> str:
        return str(update.effective_user.id)

    @staticmethod
    async def _answer(update: Update) -> None:
        query = update.callback_query
        if query is None:
            return
        try:
            await query.answer()
        except Exception as exc:
            # "query is too old" y similares no afectan al flujo
            logger.debug("answer() falló: %r", exc)

    async def _send(
        self,
        update: Update,
        text: str,
        rows: Optional[Buttons] = None,
        force_reply: bool = False,
    ) -> None:
        markup = None
        if rows:
            markup = _keyboard(rows)
        elif force_reply:
            markup = ForceReply()
        await update.effective_chat.send_message(text, parse_mode="Markdown", reply_markup=markup)

    async def _send_reply(self, update: Update, reply: FlowReply) -> None:
        if reply.outcome == Outcome.IGNORED and not reply.text:
            return
        rows = [[choice] for choice in reply.choices] if reply.choices else None
        await self._send(update, reply.text, rows, force_reply=reply.force_reply)

    # --------- menú ---------

    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        # volver al menú principal cancela cualquier flow a medias
        self.sessions.clear(self._uid(update))
        wallet = self.wallets.get(self._uid(update))
        wallet_txt = f"`{wallet.pubkey()}`" if wallet else "not connected"
        await self._send(
            update,
            "🚀 *Deferred Orders Bot*\n\n"
            f"💼 *Wallet:* {wallet_txt}\n\n"
            "Choose an option below 👇",
            MAIN_MENU,
        )

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._send_reply(update, self.flows.cancel(self.sessions, self._uid(update)))

    async def text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        uid = self._uid(update)
        kind = self.sessions.kind_of(uid)
        if kind == FlowKind.NONE:
            return

        reply = await self.flows.handle_text(self.sessions, uid, update.message.text or "")

        if kind == FlowKind.IMPORT:
            # no dejar el secreto en el chat
            try:
                await update.message.delete()
            except Exception as exc:
                logger.debug("No se pudo borrar el mensaje con la clave: %r", exc)

        await self._send_reply(update, reply)

    # --------- wallet ---------

    async def import_wallet(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send_reply(update, self.flows.start_import(self.sessions, self._uid(update)))

    # --------- buy ---------

    async def buy_menu(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send(
            update,
            "🛒 *Buy Tokens*\n\nSend `/buy <symbol or mint>` to open the quick buy menu.",
            [[("⬅️ Back", "back_to_main")]],
        )

    async def buy_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        token = " ".join(context.args or [])
        await self._send_reply(update, self.flows.start_buy(self.sessions, self._uid(update), token))

    async def buy_amount(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        try:
            amount = float(context.match.group(1))
        except ValueError:
            await self._send(update, "Invalid buy amount.")
            return
        reply = await self.flows.choose_buy_amount(self.sessions, self._uid(update), amount)
        await self._send_reply(update, reply)

    async def buy_cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send_reply(update, self.flows.cancel(self.sessions, self._uid(update)))

    # --------- lookup ---------

    async def lookup(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send_reply(update, self.flows.start_lookup(self.sessions, self._uid(update)))

    async def lookup_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = " ".join(context.args or [])
        uid = self._uid(update)
        if not query:
            await self._send_reply(update, self.flows.start_lookup(self.sessions, uid))
            return
        await self._send_reply(update, await self.flows.lookup(self.sessions, uid, query))

    async def buy_from_search(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        mint = context.match.group(1)
        await self._send_reply(update, self.flows.start_buy(self.sessions, self._uid(update), mint))

    async def sell_from_profile(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        mint = context.match.group(1)
        await self._send_reply(
            update, self.flows.start_custom_sell(self.sessions, self._uid(update), token=mint)
        )

    # --------- sell ---------

    async def sell_menu(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        uid = self._uid(update)
        wallet = self.wallets.get(uid)
        if wallet is None:
            await self._send(
                update,
                "💰 *Selling*\n\nPlease connect your wallet first to start trading.",
                [[("🔗 Connect Wallet", "import_wallet")], [("⬅️ Back", "back_to_main")]],
            )
            return

        balance = await self.flows.balances.get_balance(uid)
        await self._send(
            update,
            "💸 *Sell Tokens*\n\n"
            f"🔑 Wallet: `{wallet.pubkey()}`\n"
            f"💰 *SOL Balance:* {balance:.6f} SOL\n\n"
            "Select a quick sell size or enter a custom amount (SOL).",
            [
                [("25% ➗", "sell_pct_25"), ("50% ➗", "sell_pct_50")],
                [("75% ➗", "sell_pct_75"), ("100% ➗", "sell_pct_100")],
                [("Custom Amount", "sell_custom"), ("⬅️ Back", "back_to_main")],
            ],
        )

    async def sell_percent(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        percent = int(context.match.group(1))
        await self._send_reply(update, await self.flows.quick_sell(self._uid(update), percent))

    async def sell_custom(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send_reply(update, self.flows.start_custom_sell(self.sessions, self._uid(update)))

    # --------- positions ---------

    async def positions(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        positions = await self.orders.positions(self._uid(update))
        if not positions:
            await self._send(update, "📭 No positions recorded.")
            return

        lines = []
        for i, p in enumerate(positions, 1):
            if p.source in (PositionSource.SIMULATED_BUY, PositionSource.DCA_RUN):
                amount = p.amount_tokens if p.amount_tokens else f"{p.amount_sol} SOL"
                entry = f"${p.entry_price_usd}" if p.entry_price_usd else "N/A"
                lines.append(f"{i}. {p.symbol or p.mint or 'TOKEN'}\nEntry: {entry}\nAmount: {amount}\nTime: {_fmt_ms(p.timestamp)}\n")
            else:
                lines.append(f"{i}. {p.symbol or p.mint or 'TOKEN'}\nType: sell\nAmount: {p.amount_sol} SOL\nTime: {_fmt_ms(p.timestamp)}\n")

        await self._send(
            update,
            "📊 *Your Trading Positions*\n\n" + "\n".join(lines),
            [[("🛒 New Trade", "buy"), ("💵 Sell Tokens", "sell")], [("⬅️ Back", "back_to_main")]],
        )

    # --------- limits ---------

    async def limits(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        orders = await self.orders.limits(self._uid(update))
        if not orders:
            await self._send(
                update,
                "📉 *Your Limit Orders*\n\nYou have no limit orders.",
                [[("➕ New Order", "limit_new")], [("⬅️ Back", "back_to_main")]],
            )
            return

        lines = []
        rows: Buttons = []
        for i, o in enumerate(orders, 1):
            status_icon = {LimitStatus.FILLED: "✅", LimitStatus.CANCELLED: "✖️"}.get(o.status, "⏳")
            type_icon = "🟢" if o.side == TradeSide.BUY else "🔴"
            lines.append(
                f"{i}. {o.symbol} {type_icon} {status_icon}\nType: {o.side.value}\n"
                f"Price: ${o.target_price_usd}\nAmount: {o.amount}\nStatus: {o.status.value}\n"
                f"Time: {_fmt_ms(o.created_at)}\n"
            )
            if o.status == LimitStatus.ACTIVE:
                rows.append([(f"❌ Cancel #{i} {o.symbol}", f"limit_cancel:{o.id}")])

        rows += [
            [("➕ New Order", "limit_new"), ("❌ Cancel All", "limit_cancel_all")],
            [("📊 Order History", "limit_history"), ("⬅️ Back", "back_to_main")],
        ]
        await self._send(update, "📉 *Your Limit Orders*\n\n" + "\n".join(lines), rows)

    async def limit_new(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send_reply(update, self.flows.start_limit(self.sessions, self._uid(update)))

    async def limit_type(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        side = TradeSide.BUY if context.match.group(1) == "buy" else TradeSide.SELL
        reply = await self.flows.choose_limit_side(self.sessions, self._uid(update), side)
        await self._send_reply(update, reply)

    async def limit_cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        ok = await self.orders.cancel_limit(self._uid(update), context.match.group(1))
        await self._send(update, "❌ Limit order cancelled." if ok else "Order not found or no longer active.")

    async def limit_cancel_all(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self.orders.cancel_all_limits(self._uid(update))
        await self._send(update, "❌ All limit orders cancelled.")

    async def limit_history(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        filled = await self.orders.limit_history(self._uid(update))
        if not filled:
            await self._send(update, "No filled limit orders.")
            return
        await self._send(update, "\n".join(
            f"{i}. {o.symbol} | {o.side.value} @ ${o.target_price_usd} | Amount: {o.amount} | Filled: {_fmt_ms(o.filled_at)}"
            for i, o in enumerate(filled, 1)
        ))

    # --------- dca ---------

    async def dca(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        schedules = await self.orders.dca_schedules(self._uid(update))
        footer: Buttons = [
            [("➕ New DCA", "dca_new"), ("❌ Cancel All", "dca_cancel_all")],
            [("📜 DCA History", "dca_history"), ("⬅️ Back", "back_to_main")],
        ]
        if not schedules:
            await self._send(update, "🔁 *Your DCA Orders*\n\nYou have no DCA orders.", footer)
            return

        lines = []
        rows: Buttons = []
        for i, d in enumerate(schedules, 1):
            status_icon = {DcaStatus.ACTIVE: "⏳", DcaStatus.PAUSED: "⏸️"}.get(d.status, "✅")
            next_run = _fmt_ms(d.next_run_at) if d.status == DcaStatus.ACTIVE else "N/A"
            lines.append(
                f"{i}. {d.symbol} {status_icon}\nInterval: {d.interval}\nAmount: {d.amount_per_run} SOL\n"
                f"Status: {d.status.value}\nRuns: {d.run_count}\nNext run: {next_run}\n"
            )
            if d.status == DcaStatus.ACTIVE:
                rows.append([(f"⏸️ Pause #{i}", f"dca_pause:{d.id}"), (f"❌ Cancel #{i}", f"dca_cancel:{d.id}")])
            elif d.status == DcaStatus.PAUSED:
                rows.append([(f"▶️ Resume #{i}", f"dca_resume:{d.id}"), (f"❌ Cancel #{i}", f"dca_cancel:{d.id}")])

        await self._send(update, "🔁 *Your DCA Orders*\n\n" + "\n".join(lines), rows + footer)

    async def dca_new(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send_reply(update, self.flows.start_dca(self.sessions, self._uid(update)))

    async def dca_action(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        action, dca_id = context.match.group(1), context.match.group(2)
        uid = self._uid(update)
        if action == "pause":
            ok = await self.orders.pause_dca(uid, dca_id)
        elif action == "resume":
            ok = await self.orders.resume_dca(uid, dca_id)
        else:
            ok = await self.orders.cancel_dca(uid, dca_id)
        done = {"pause": "⏸️ DCA paused.", "resume": "▶️ DCA resumed.", "cancel": "❌ DCA cancelled."}
        await self._send(update, done[action] if ok else "DCA not found or action not allowed.")

    async def dca_cancel_all(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self.orders.cancel_all_dca(self._uid(update))
        await self._send(update, "❌ All DCA orders cancelled.")

    async def dca_history(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        history = await self.orders.dca_history(self._uid(update))
        if not history:
            await self._send(update, "No DCA history.")
            return
        await self._send(update, "\n".join(
            f"{i}. {d.symbol} | {d.amount_per_run} SOL | {d.interval} | {d.status.value} | Created: {_fmt_ms(d.created_at)}"
            for i, d in enumerate(history, 1)
        ))

    # --------- launch ---------

    async def launch(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        await self._send(
            update,
            "🚀 *Launch New Token*\n\n"
            "*Requirements:*\n• Token name & symbol\n• Initial supply\n\n*Launch Options:*",
            [
                [("⚡ Quick Launch", "launch_quick")],
                [("⚙️ Custom Launch", "launch_custom")],
                [("🎯 Presale Launch", "launch_presale")],
                [("⬅️ Back", "back_to_main")],
            ],
        )

    async def launch_variant(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._answer(update)
        variant = context.match.group(1)
        await self._send_reply(update, self.flows.start_launch(self.sessions, self._uid(update), variant))


def build_application(
    config: BotConfig,
    flows: FlowMachine,
    orders: OrderService,
    wallets: WalletRegistry,
    sessions: Optional[FlowSessions] = None,
) -> Application:
    app = Application.builder().token(config.telegram_bot_token).build()

    ctrl = TelegramController(config, flows, orders, wallets, sessions or FlowSessions())

    app.add_handler(CommandHandler(["start", "menu"], ctrl.start))
    app.add_handler(CommandHandler("cancel", ctrl.cancel))
    app.add_handler(CommandHandler("buy", ctrl.buy_command))
    app.add_handler(CommandHandler("positions", ctrl.positions))
    app.add_handler(CommandHandler("limits", ctrl.limits))
    app.add_handler(CommandHandler("dca", ctrl.dca))
    app.add_handler(CommandHandler("import", ctrl.import_wallet))
    app.add_handler(CommandHandler("lookup", ctrl.lookup_command))

    callbacks = [
        (r"^back_to_main$", ctrl.start),
        (r"^import_wallet$", ctrl.import_wallet),
        (r"^buy$", ctrl.buy_menu),
        (r"^buy_amount_([0-9.]+)$", ctrl.buy_amount),
        (r"^buy_cancel$", ctrl.buy_cancel),
        (r"^sell$", ctrl.sell_menu),
        (r"^sell_pct_(25|50|75|100)$", ctrl.sell_percent),
        (r"^sell_custom$", ctrl.sell_custom),
        (r"^positions$", ctrl.positions),
        (r"^limits$", ctrl.limits),
        (r"^limit_new$", ctrl.limit_new),
        (r"^limit_type_(buy|sell)$", ctrl.limit_type),
        (r"^limit_cancel:(.+)$", ctrl.limit_cancel),
        (r"^limit_cancel_all$", ctrl.limit_cancel_all),
        (r"^limit_history$", ctrl.limit_history),
        (r"^dca$", ctrl.dca),
        (r"^dca_new$", ctrl.dca_new),
        (r"^dca_(pause|resume|cancel):(.+)$", ctrl.dca_action),
        (r"^dca_cancel_all$", ctrl.dca_cancel_all),
        (r"^dca_history$", ctrl.dca_history),
        (r"^launch$", ctrl.launch),
        (r"^launch_(quick|custom|presale)$", ctrl.launch_variant),
        (r"^lookup$", ctrl.lookup),
        (r"^buy_from_search_(.+)$", ctrl.buy_from_search),
        (r"^sell_from_profile_(.+)$", ctrl.sell_from_profile),
    ]
    for pattern, handler in callbacks:
        app.add_handler(CallbackQueryHandler(handler, pattern=pattern))

    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, ctrl.text))

    return app
