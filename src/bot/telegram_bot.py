"""
BowlBot — Telegram Bot.

Telegram is the only user interface. This module turns Telegram updates
into InboundMessages for the dispatcher, wires the long-lived components
together, and schedules the housekeeping jobs.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from telegram import Message, MessageOriginUser, Update
from telegram.constants import ChatType
from telegram.ext import (
    Application,
    ApplicationBuilder,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings
from src.data.models import User
from src.ports.chat_port import InboundMessage

if TYPE_CHECKING:
    import telegram

    from src.core.conversation import ConversationTracker
    from src.core.setup_dialog import SetupDialog
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Update → InboundMessage
# ---------------------------------------------------------------------------


def parse_command(text: str) -> tuple[str, str]:
    """Split '/Me+2@BowlBot please' into ('me+2', 'please').

    Returns ('', '') when the text is not a command.
    """
    if not text or not text.startswith("/"):
        return "", ""
    head, _, rest = text.partition(" ")
    verb = head[1:].split("@", 1)[0].lower()
    return verb, rest.strip()


def to_user(tg_user: telegram.User) -> User:
    return User(
        id=tg_user.id,
        first_name=tg_user.first_name or "",
        last_name=tg_user.last_name or "",
        username=tg_user.username or "",
    )


def to_inbound(message: Message) -> InboundMessage | None:
    """Translate a Telegram message. None if it has no human sender."""
    if message.from_user is None:
        return None

    text = message.text or ""
    command, args = parse_command(text)

    forward_from = None
    origin = message.forward_origin
    if isinstance(origin, MessageOriginUser):
        forward_from = to_user(origin.sender_user)

    reply_to = message.reply_to_message
    return InboundMessage(
        chat_id=message.chat.id,
        message_id=message.message_id,
        sender=to_user(message.from_user),
        text=text,
        chat_title=message.chat.title or "",
        is_group=message.chat.type in (ChatType.GROUP, ChatType.SUPERGROUP),
        command=command,
        args=args,
        reply_to_message_id=reply_to.message_id if reply_to else None,
        forward_from=forward_from,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Every group command or reply, new or edited, lands here."""
    message = update.effective_message
    if message is None:
        return
    inbound = to_inbound(message)
    if inbound is None:
        return
    await context.bot_data["dispatcher"].handle(inbound)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Error while handling update %s: %s", update, context.error)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(store: StorePort | None = None) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Store port implementation. Defaults to BowlingDB at DATABASE_PATH.
    """
    from src.adapters.telegram_chat import TelegramChat
    from src.core.conversation import ConversationTracker
    from src.core.dispatcher import CommandDispatcher
    from src.core.setup_dialog import SetupDialog

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .concurrent_updates(True)
        .build()
    )

    if store is None:
        from src.data.db import BowlingDB
        store = BowlingDB()

    chat = TelegramChat(app.bot)
    ttl_seconds = settings.CONVERSATION_TTL_MINUTES * 60
    tracker = ConversationTracker(ttl_seconds=ttl_seconds)
    setup = SetupDialog(store, chat, tracker, ttl_seconds=ttl_seconds)
    dispatcher = CommandDispatcher(store, chat, tracker, setup)

    app.bot_data["store"] = store
    app.bot_data["tracker"] = tracker
    app.bot_data["setup"] = setup
    app.bot_data["dispatcher"] = dispatcher

    app.add_handler(
        MessageHandler(
            filters.UpdateType.MESSAGES
            & filters.ChatType.GROUPS
            & (filters.COMMAND | filters.REPLY),
            handle_message,
        )
    )
    app.add_error_handler(handle_error)

    _setup_housekeeping(app, tracker, setup, store)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_housekeeping(
    app: Application,
    tracker: ConversationTracker,
    setup: SetupDialog,
    store: StorePort,
) -> None:
    """Register the conversation sweep and the past-game purge."""
    from src.core.dispatcher import default_clock
    from src.core.roster import purge_past_events

    retention = timedelta(hours=settings.EVENT_RETENTION_HOURS)

    async def _sweep_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        tracker.sweep()
        setup.sweep()

    async def _purge_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        purge_past_events(store, default_clock(), retention)

    sweep_every = timedelta(minutes=settings.CONVERSATION_SWEEP_MINUTES)
    app.job_queue.run_repeating(
        _sweep_job_callback,
        interval=sweep_every,
        first=sweep_every,
        name="conversation_sweep",
    )
    app.job_queue.run_repeating(
        _purge_job_callback,
        interval=timedelta(hours=1),
        first=timedelta(seconds=10),
        name="event_purge",
    )

    logger.info(
        "Conversations expire after %d min (swept every %d min); games purged %dh after start",
        settings.CONVERSATION_TTL_MINUTES,
        settings.CONVERSATION_SWEEP_MINUTES,
        settings.EVENT_RETENTION_HOURS,
    )


def main() -> None:
    """Entry point: build the app and start serving updates."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting BowlBot...")
    app = build_app()

    if settings.WEBHOOK_URL:
        token = settings.TELEGRAM_BOT_TOKEN
        app.run_webhook(
            listen=settings.LISTEN_HOST,
            port=settings.LISTEN_PORT,
            url_path=token,
            webhook_url=f"{settings.WEBHOOK_URL}/{token}",
            allowed_updates=Update.ALL_TYPES,
        )
    else:
        app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
