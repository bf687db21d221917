"""
BowlBot — Command Dispatcher.

Thin orchestration between the chat and the two stateful pieces: the
roster engine (games and who's coming) and the setup dialog (replies to
the bot's own questions). Every path ends in a chat reply; nothing here
raises to the transport for a user mistake.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from telegram.helpers import escape_markdown

from src.core import roster
from src.ports.store_port import StoreError

if TYPE_CHECKING:
    from src.core.conversation import ConversationTracker
    from src.core.setup_dialog import SetupDialog
    from src.data.models import Event, Group
    from src.ports.chat_port import ChatPort, InboundMessage
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)

HELP = (
    "The following commands are now available to you.\n"
    "```\n"
    " /me    - to tell me of your desire to attend the event.\n"
    " /me+2  - as above but you're bringing two friends, how wonderful!\n"
    " /out   - to let me know you can no longer attend, how dreadful.\n"
    " /sub 1 - if it turns out that one of your friends cannot come.\n"
    " /count - to see how many people are coming, including their wonderful extras.\n"
    " /who   - for a list of who is coming.\n"
    "```"
)

_START_EVENT = (
    "Good news everyone!\n"
    "{who} has proposed we go bowling at {location} at {time} on {day}.\n"
) + HELP


def plural(count: int, singular: str, multiple: str) -> str:
    return singular if count == 1 else multiple


def default_clock() -> datetime:
    from zoneinfo import ZoneInfo

    from src.config import settings
    return datetime.now(ZoneInfo(settings.TIMEZONE))


class CommandDispatcher:
    """Routes each inbound group message to a command or a pending dialog."""

    def __init__(
        self,
        store: StorePort,
        chat: ChatPort,
        tracker: ConversationTracker,
        setup: SetupDialog,
        clock: Callable[[], datetime] = default_clock,
    ) -> None:
        self._store = store
        self._chat = chat
        self._tracker = tracker
        self._setup = setup
        self._clock = clock

    async def handle(self, message: InboundMessage) -> None:
        self._remember_users(message)
        if not message.is_group:
            return

        if message.is_command:
            try:
                group = self._store.get_group(message.chat_id)
            except StoreError as exc:
                logger.error("Unable to load group %d: %s", message.chat_id, exc)
                await self._apologise(message)
                return
            if not roster.is_configured(group):
                group.name = message.chat_title
                try:
                    self._store.save_group(group)
                except StoreError as exc:
                    logger.error("Unable to save group %d: %s", group.id, exc)
                await self._setup.start(message)
                return
            await self.handle_command(group, message)
            return

        if message.reply_to_message_id is not None:
            await self._tracker.resolve(message)

    def _remember_users(self, message: InboundMessage) -> None:
        for user in (message.sender, message.forward_from):
            if user is None:
                continue
            try:
                self._store.save_user(user)
            except StoreError as exc:
                logger.error("Unable to save user %d: %s", user.id, exc)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def handle_command(self, group: Group, message: InboundMessage) -> None:
        try:
            await self._handle_command(group, message)
        except StoreError as exc:
            logger.error("/%s store error in chat %d: %s", message.command, group.id, exc)
            await self._apologise(message)

    async def _apologise(self, message: InboundMessage) -> None:
        await self._reply(
            message,
            f"Sorry {message.sender.display_name}, I couldn't keep track of "
            "that just now. Please try again.",
        )

    async def _handle_command(self, group: Group, message: InboundMessage) -> None:
        command = message.command
        who = message.sender.display_name
        now = self._clock()
        event = roster.current_event(self._store, group, now)

        if command == "bowling":
            if event is not None:
                await self._reply(
                    message,
                    f"Hey {who}, the next game is set for "
                    f"{event.time:%A} {event.time.day}",
                )
                return
            event = roster.propose(self._store, group, now)
            await self._chat.send_message(
                message.chat_id,
                _START_EVENT.format(
                    who=escape_markdown(who),
                    location=escape_markdown(group.location),
                    time=group.start_time.strftime("%H:%M"),
                    day=f"{event.time:%A}",
                ),
                markdown=True,
            )
            return

        if event is None:
            await self._reply(message, f"Sorry {who}, there is no game in the near future")
            return

        if command == "help":
            await self._reply(message, HELP, markdown=True)
        elif command == "me":
            await self._reply(message, self._me(message.args, event, message))
        elif command.startswith("me+"):
            args = "+" + command[len("me+"):]
            await self._reply(message, self._me(args, event, message))
        elif command == "sub":
            await self._reply(message, self._sub(message.args, event, message))
        elif command.startswith("sub-"):
            args = command[len("sub-"):]
            await self._reply(message, self._sub(args, event, message))
        elif command == "out":
            if roster.withdraw(self._store, event, message.sender.id):
                await self._reply(message, f"Ok {who}, sorry you can't make it")
            else:
                await self._reply(
                    message, f"But {who}, you weren't actually listed as coming!"
                )
        elif command == "count":
            await self._reply(message, self._count(event, who))
        elif command == "who":
            await self._reply(message, self._who(event, who))
        elif command == "cancel":
            roster.cancel(self._store, group)
            await self._chat.send_message(
                message.chat_id,
                f"Hey everyone, unfortunately bowling has been cancelled by {who}",
            )
        else:
            logger.debug("Ignoring unknown command /%s", command)

    async def _reply(self, message: InboundMessage, text: str, markdown: bool = False) -> None:
        await self._chat.send_message(
            message.chat_id, text, silent=True, markdown=markdown,
        )

    def _me(self, args: str, event: Event, message: InboundMessage) -> str:
        who = message.sender.display_name
        args = args.strip().removeprefix("+").strip()
        if not args:
            roster.record_attendance(self._store, event, message.sender.id, 0)
            return f"Awesome {who}, we'll see you there"

        extras = roster.parse_count(args)
        if extras is None:
            return f"I beg your pardon {who}, I'm not sure how to deal with that."
        change = roster.record_attendance(self._store, event, message.sender.id, extras)
        if change.previous is None:
            return f"Brilliant {who}, we look forward to seeing you and your {extras} extras"
        if change.previous > 1:
            return f"Ok {who}, I have recorded that you're bringing {extras} people"
        return f"Excellent {who}, the more the merrier!"

    def _sub(self, args: str, event: Event, message: InboundMessage) -> str:
        who = message.sender.display_name
        reduce_by = roster.parse_count(args.strip().removeprefix("-"))
        if reduce_by is None:
            return f"I beg your pardon {who}, I'm not sure how to deal with that."
        coming = roster.reduce_attendance(self._store, event, message.sender.id, reduce_by)
        if coming is None:
            return f"But {who}, you're not even coming!"
        if coming > 1:
            extras = coming - 1
            return (
                f"Ok {who}, I have recorded that you're only bringing "
                f"{extras} {plural(extras, 'person', 'people')}"
            )
        return f"Ok {who}, so it's just you."

    @staticmethod
    def _count(event: Event, who: str) -> str:
        total = roster.total_attendance(event)
        if total == 0:
            return f"Hey {who}, no-one has signed up yet"
        return (
            f"Hey {who}, there {plural(total, 'is', 'are')} {total} wonderful "
            f"{plural(total, 'person', 'people')} coming bowling"
        )

    def _who(self, event: Event, who: str) -> str:
        coming: list[str] = []
        for user_id, seats in event.attendees.items():
            line = self._store.load_user(user_id).display_name
            if seats > 1:
                line += f" and {seats - 1} extra{plural(seats - 1, '', 's')}"
            coming.append(line)
        coming.sort(key=str.lower)

        if not coming:
            return f"Hey {who}, no-one has signed up yet"
        if len(coming) == 1:
            only = coming[0]
            if only.startswith(who):
                only = "you" + only[len(who):]
            return f"Hey {who}, it looks like it's just {only}"
        listing = "\n".join("   " + line for line in coming)
        return f"Hey {who}, the following people are coming\n{listing}"
