"""Telegram chat adapter — implements ChatPort.

Wraps a telegram.Bot instance to satisfy the ChatPort protocol.
"""

from __future__ import annotations

import calendar
import logging

from telegram import Bot, ForceReply, ReplyKeyboardMarkup
from telegram.constants import ParseMode

from src.ports.chat_port import OutgoingMarkup

logger = logging.getLogger(__name__)

# Sunday first, the way a wall calendar reads
_WEEKDAY_ROW = [calendar.day_name[6]] + [calendar.day_name[i] for i in range(6)]


def _build_markup(markup: OutgoingMarkup | None) -> ForceReply | ReplyKeyboardMarkup | None:
    if markup is OutgoingMarkup.FORCE_REPLY:
        return ForceReply(selective=True)
    if markup is OutgoingMarkup.WEEKDAY_KEYBOARD:
        return ReplyKeyboardMarkup(
            [_WEEKDAY_ROW],
            one_time_keyboard=True,
            selective=True,
            resize_keyboard=True,
        )
    return None


class TelegramChat:
    """Telegram implementation of ChatPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to: int | None = None,
        markup: OutgoingMarkup | None = None,
        silent: bool = False,
        markdown: bool = False,
    ) -> int:
        sent = await self._bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_to_message_id=reply_to,
            reply_markup=_build_markup(markup),
            disable_notification=silent,
            parse_mode=ParseMode.MARKDOWN if markdown else None,
        )
        return sent.message_id
