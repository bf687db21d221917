"""
BowlBot — Group Setup Dialog.

Three questions turn an unconfigured chat into a bowling group: where,
what day, what time. Each chat walks its own small state machine; the
conversation tracker only decides whether a reply belongs to the dialog
at all.
"""

from __future__ import annotations

import calendar
import enum
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, time
from time import monotonic
from typing import TYPE_CHECKING, Callable

from src.core.conversation import DEFAULT_TTL_SECONDS
from src.ports.chat_port import OutgoingMarkup
from src.ports.store_port import StoreError

if TYPE_CHECKING:
    from src.core.conversation import ConversationTracker
    from src.ports.chat_port import ChatPort, InboundMessage
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)

_WEEKDAYS = {name.lower(): i for i, name in enumerate(calendar.day_name)}


class SetupState(enum.Enum):
    IDLE = "idle"
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_WEEKDAY = "awaiting_weekday"
    AWAITING_TIME = "awaiting_time"


@dataclass
class _ChatDialog:
    state: SetupState
    prompt_id: int | None = None
    created: float = 0.0


def parse_weekday(text: str) -> int | None:
    """'friday' → 4. None for anything that isn't an English day name."""
    return _WEEKDAYS.get(text.strip().lower())


def parse_start_time(text: str) -> time | None:
    """'18:00' → time(18, 0). None unless it's 24h HH:MM."""
    try:
        return datetime.strptime(text.strip(), "%H:%M").time()
    except ValueError:
        return None


class SetupDialog:
    """Asks for location, weekday and start time, one reply at a time."""

    def __init__(
        self,
        store: StorePort,
        chat: ChatPort,
        tracker: ConversationTracker,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._store = store
        self._chat = chat
        self._tracker = tracker
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._dialogs: dict[int, _ChatDialog] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._dialogs)

    def state(self, chat_id: int) -> SetupState:
        with self._lock:
            dialog = self._dialogs.get(chat_id)
        return dialog.state if dialog else SetupState.IDLE

    def sweep(self) -> int:
        """Forget dialogs whose last prompt is older than the TTL."""
        deadline = self._clock() - self._ttl
        with self._lock:
            expired = [c for c, d in self._dialogs.items() if d.created < deadline]
            for chat_id in expired:
                del self._dialogs[chat_id]
        if expired:
            logger.info("Forgot %d abandoned setup dialogs", len(expired))
        return len(expired)

    async def start(self, message: InboundMessage) -> None:
        """Begin (or restart) the dialog in this chat."""
        await self._chat.send_message(
            message.chat_id,
            f"Hi {message.sender.display_name}, your group isn't set up for "
            "bowling yet. Please answer the following questions.",
        )
        await self._ask(
            message,
            "Where is it that you go bowling?",
            OutgoingMarkup.FORCE_REPLY,
            SetupState.AWAITING_LOCATION,
        )

    async def _ask(
        self,
        message: InboundMessage,
        text: str,
        markup: OutgoingMarkup,
        next_state: SetupState,
    ) -> None:
        prompt_id = await self._chat.send_message(
            message.chat_id,
            text,
            reply_to=message.message_id,
            markup=markup,
            silent=True,
        )
        with self._lock:
            previous = self._dialogs.get(message.chat_id)
            self._dialogs[message.chat_id] = _ChatDialog(next_state, prompt_id, self._clock())
        if previous is not None and previous.prompt_id not in (None, prompt_id):
            self._tracker.discard((message.chat_id, previous.prompt_id))
        self._tracker.register((message.chat_id, prompt_id), self._on_reply)
        logger.debug("Chat %d setup → %s", message.chat_id, next_state.value)

    async def _on_reply(self, message: InboundMessage) -> None:
        with self._lock:
            dialog = self._dialogs.get(message.chat_id)
        # A restarted dialog supersedes replies to its older prompts
        if dialog is None or dialog.prompt_id != message.reply_to_message_id:
            return

        try:
            if dialog.state is SetupState.AWAITING_LOCATION:
                await self._receive_location(message)
            elif dialog.state is SetupState.AWAITING_WEEKDAY:
                await self._receive_weekday(message)
            elif dialog.state is SetupState.AWAITING_TIME:
                await self._receive_time(message)
        except StoreError as exc:
            logger.error("Chat %d setup store error: %s", message.chat_id, exc)
            markup = (
                OutgoingMarkup.WEEKDAY_KEYBOARD
                if dialog.state is SetupState.AWAITING_WEEKDAY
                else OutgoingMarkup.FORCE_REPLY
            )
            await self._ask(
                message,
                "Sorry, I couldn't write that down just now. Could you tell me again?",
                markup,
                dialog.state,
            )

    async def _receive_location(self, message: InboundMessage) -> None:
        location = message.text.strip()
        if not location:
            await self._ask(
                message, "I'm sorry, what?",
                OutgoingMarkup.FORCE_REPLY, SetupState.AWAITING_LOCATION,
            )
            return
        group = self._store.get_group(message.chat_id)
        group.location = location
        self._store.save_group(group)
        await self._ask(
            message, "And what day do you do this?",
            OutgoingMarkup.WEEKDAY_KEYBOARD, SetupState.AWAITING_WEEKDAY,
        )

    async def _receive_weekday(self, message: InboundMessage) -> None:
        weekday = parse_weekday(message.text)
        if weekday is None:
            await self._ask(
                message, "I'm sorry, what?",
                OutgoingMarkup.WEEKDAY_KEYBOARD, SetupState.AWAITING_WEEKDAY,
            )
            return
        group = self._store.get_group(message.chat_id)
        group.weekday = weekday
        self._store.save_group(group)
        await self._ask(
            message, "And what time does it start?",
            OutgoingMarkup.FORCE_REPLY, SetupState.AWAITING_TIME,
        )

    async def _receive_time(self, message: InboundMessage) -> None:
        start = parse_start_time(message.text)
        if start is None:
            await self._ask(
                message, "I'm sorry, what?",
                OutgoingMarkup.FORCE_REPLY, SetupState.AWAITING_TIME,
            )
            return
        group = self._store.get_group(message.chat_id)
        group.start_time = start
        self._store.save_group(group)
        with self._lock:
            self._dialogs.pop(message.chat_id, None)
        logger.info("Chat %d configured for bowling", message.chat_id)
        await self._chat.send_message(
            message.chat_id,
            "Awesome, all done",
            reply_to=message.message_id,
            silent=True,
        )
