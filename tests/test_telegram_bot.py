# tests/test_telegram_bot.py
import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import ForceReply, InlineKeyboardMarkup
from telegram.ext import CallbackQueryHandler

from config import load_config
from flows import FlowKind
from models import RecordKind
from price_oracle import TokenPair
from telegram_bot import TelegramController, build_application

UID = 42
BAD_CHECKSUM_24 = " ".join(["abandon"] * 24)
MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def _update(text=None, callback=False):
    update = MagicMock()
    update.effective_user.id = UID
    update.effective_chat.send_message = AsyncMock()
    update.message.text = text
    update.message.delete = AsyncMock()
    if callback:
        update.callback_query.answer = AsyncMock()
    else:
        update.callback_query = None
    return update


def _context(*groups, args=None):
    context = MagicMock()
    context.args = args or []
    if groups:
        context.match = re.match("(.*)" * len(groups), "".join(groups))
    return context


@pytest.fixture
def controller(machine, orders, wallets, sessions):
    return TelegramController(load_config(), machine, orders, wallets, sessions)


def _sent(update):
    call = update.effective_chat.send_message.await_args
    return call.args[0], call.kwargs.get("reply_markup")


@pytest.mark.asyncio
async def test_import_message_is_deleted(controller, sessions):
    await controller.import_wallet(_update(callback=True), _context())
    assert sessions.kind_of("42") == FlowKind.IMPORT

    update = _update(text=BAD_CHECKSUM_24)
    await controller.text(update, _context())

    update.message.delete.assert_awaited_once()
    text, _ = _sent(update)
    assert "Failed to import" in text
    assert sessions.kind_of("42") == FlowKind.NONE


@pytest.mark.asyncio
async def test_text_without_flow_is_silent(controller):
    update = _update(text="hi")
    await controller.text(update, _context())
    update.effective_chat.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_limit_flow_through_controller(controller, store):
    update = _update(callback=True)
    await controller.limit_new(update, _context())
    _, markup = _sent(update)
    assert isinstance(markup, ForceReply)

    update = _update(text="bonk")
    await controller.text(update, _context())
    _, markup = _sent(update)
    assert isinstance(markup, InlineKeyboardMarkup)

    await controller.limit_type(_update(callback=True), _context("sell"))
    await controller.text(_update(text="2.5"), _context())
    await controller.text(_update(text="10"), _context())

    [order] = await store.load("42", RecordKind.LIMITS)
    assert order.side.value == "SELL"
    assert order.target_price_usd == 2.5

    update = _update(callback=True)
    await controller.limit_cancel(update, _context(order.id))
    text, _ = _sent(update)
    assert "cancelled" in text


@pytest.mark.asyncio
async def test_start_clears_active_flow(controller, sessions):
    await controller.dca_new(_update(callback=True), _context())
    assert sessions.kind_of("42") == FlowKind.DCA

    update = _update()
    await controller.start(update, _context())

    assert sessions.kind_of("42") == FlowKind.NONE
    _, markup = _sent(update)
    assert isinstance(markup, InlineKeyboardMarkup)


@pytest.mark.asyncio
async def test_buy_command_without_token(controller, sessions):
    update = _update(text="/buy")
    await controller.buy_command(update, _context(args=[]))
    text, _ = _sent(update)
    assert "/buy" in text
    assert sessions.kind_of("42") == FlowKind.NONE


@pytest.mark.asyncio
async def test_lookup_command_shows_profile_buttons(controller, oracle):
    oracle.pairs["bonk"] = TokenPair(MINT, "Bonk", "Bonk", 0.00002, 1000.0, 500.0)
    update = _update(text="/lookup bonk")
    await controller.lookup_command(update, _context(args=["bonk"]))

    text, markup = _sent(update)
    assert MINT in text
    callbacks = [b.callback_data for row in markup.inline_keyboard for b in row]
    assert f"buy_from_search_{MINT}" in callbacks
    assert f"sell_from_profile_{MINT}" in callbacks


@pytest.mark.asyncio
async def test_lookup_command_without_query_asks_for_one(controller, sessions):
    update = _update(text="/lookup")
    await controller.lookup_command(update, _context(args=[]))
    _, markup = _sent(update)
    assert isinstance(markup, ForceReply)
    assert sessions.kind_of("42") == FlowKind.LOOKUP


@pytest.mark.asyncio
async def test_buy_from_search_opens_buy_flow(controller, sessions):
    update = _update(callback=True)
    await controller.buy_from_search(update, _context(MINT))
    state = sessions.get("42")
    assert state.kind == FlowKind.BUY
    assert state.fields["token"] == MINT


@pytest.mark.asyncio
async def test_sell_from_profile_opens_sell_with_token(controller, sessions):
    update = _update(callback=True)
    await controller.sell_from_profile(update, _context(MINT))
    state = sessions.get("42")
    assert state.kind == FlowKind.SELL
    assert state.fields["token"] == MINT
    text, _ = _sent(update)
    assert MINT in text


def test_build_application_registers_callbacks(machine, orders, wallets, sessions, monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:TEST-token")
    app = build_application(load_config(), machine, orders, wallets, sessions)

    patterns = [
        h.pattern.pattern
        for h in app.handlers[0]
        if isinstance(h, CallbackQueryHandler)
    ]
    assert r"^limit_cancel_all$" in patterns
    assert r"^dca_(pause|resume|cancel):(.+)$" in patterns
    assert r"^launch_(quick|custom|presale)$" in patterns
    assert r"^lookup$" in patterns
    assert r"^buy_from_search_(.+)$" in patterns
    assert r"^sell_from_profile_(.+)$" in patterns
