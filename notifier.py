# notifier.py
import logging

from telegram import Bot

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """
    Entrega best-effort de mensajes a un usuario. Los fallos se registran y
    se descartan: nunca se reintentan ni llegan al sweep que notificó.
    """

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def notify(self, user_id: str, text: str) -> None:
        try:
            await self.bot.send_message(chat_id=user_id, text=text)
        except Exception as e:
            logger.warning("[Notify] No se pudo enviar notificación a %s: %r", user_id, e)
