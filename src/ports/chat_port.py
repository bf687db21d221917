"""Chat port — abstract interface for talking to a group chat.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol

from src.data.models import User


class OutgoingMarkup(enum.Enum):
    """Reply markup a core module may ask for."""

    FORCE_REPLY = "force_reply"
    WEEKDAY_KEYBOARD = "weekday_keyboard"


@dataclass
class InboundMessage:
    """A chat message after the transport has split out the command."""

    chat_id: int
    message_id: int
    sender: User
    text: str = ""
    chat_title: str = ""
    is_group: bool = True
    command: str = ""                      # lowercased verb, "" if not a command
    args: str = ""                         # raw text after the verb
    reply_to_message_id: int | None = None
    forward_from: User | None = None

    @property
    def is_command(self) -> bool:
        return bool(self.command)


class ChatPort(Protocol):
    """Abstract outbound messaging interface used by core modules."""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to: int | None = None,
        markup: OutgoingMarkup | None = None,
        silent: bool = False,
        markdown: bool = False,
    ) -> int: ...
