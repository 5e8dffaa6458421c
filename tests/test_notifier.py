# tests/test_notifier.py
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import Forbidden

from notifier import TelegramNotifier

pytestmark = pytest.mark.asyncio


async def test_notify_sends_message():
    bot = MagicMock()
    bot.send_message = AsyncMock()

    await TelegramNotifier(bot).notify("42", "hello")

    bot.send_message.assert_awaited_once_with(chat_id="42", text="hello")


async def test_delivery_failure_is_swallowed():
    bot = MagicMock()
    bot.send_message = AsyncMock(side_effect=Forbidden("bot was blocked by the user"))

    # no debe propagar
    await TelegramNotifier(bot).notify("42", "hello")

    bot.send_message.assert_awaited_once()


async def test_delivery_failure_is_logged_with_tag(caplog):
    bot = MagicMock()
    bot.send_message = AsyncMock(side_effect=Forbidden("bot was blocked by the user"))

    with caplog.at_level(logging.WARNING, logger="notifier"):
        await TelegramNotifier(bot).notify("42", "hello")

    [record] = [r for r in caplog.records if r.name == "notifier"]
    assert record.getMessage().startswith("[Notify]")
    assert "42" in record.getMessage()
