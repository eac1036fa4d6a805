"""
Pronunciation delivered as Telegram audio messages
"""

import asyncio
import logging
from urllib.parse import quote

from telegram import Bot
from telegram.error import TelegramError

from .config import get_settings

logger = logging.getLogger(__name__)


def pronunciation_url(word: str) -> str:
    """Audio URL for the spoken word"""
    return get_settings().pronunciation_url.format(word=quote(word))


class TelegramSpeaker:
    """Speaker that sends a pronunciation clip to one chat without waiting for it"""

    def __init__(self, bot: Bot, chat_id: int):
        self.bot = bot
        self.chat_id = chat_id
        self._pending: set[asyncio.Task] = set()

    def speak(self, word: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, cannot pronounce '{word}'")
            return

        task = loop.create_task(self._send(word))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, word: str) -> None:
        try:
            await self.bot.send_audio(
                chat_id=self.chat_id,
                audio=pronunciation_url(word),
                title=word,
            )
        except TelegramError as e:
            logger.error(f"Failed to send pronunciation of '{word}' to {self.chat_id}: {e}")
