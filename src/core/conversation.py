"""
BowlBot — Conversation Tracker.

Threads a multi-step dialog through independent message deliveries. When
the bot sends a prompt it registers a continuation under the prompt's id;
the user's reply to that prompt carries the id back and picks the
continuation up again. Nothing is persisted: an abandoned dialog simply
expires and the user starts over.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Hashable

if TYPE_CHECKING:
    from src.ports.chat_port import InboundMessage

logger = logging.getLogger(__name__)

Continuation = Callable[["InboundMessage"], Awaitable[None]]

DEFAULT_TTL_SECONDS = 10 * 60


@dataclass
class _Pending:
    created: float
    continuation: Continuation


class ConversationTracker:
    """Expiring map of correlation token → continuation.

    Tokens are (chat_id, message_id) of the bot's own prompts. Every
    operation takes the lock once; continuations run outside it, so a
    continuation that registers the next step cannot deadlock.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[Hashable, _Pending] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def register(self, token: Hashable, continuation: Continuation) -> None:
        """Run `continuation` when a reply to `token` arrives."""
        with self._lock:
            self._pending[token] = _Pending(self._clock(), continuation)
        logger.debug("Awaiting reply to %s", token)

    def discard(self, token: Hashable) -> None:
        with self._lock:
            self._pending.pop(token, None)

    async def resolve(self, message: InboundMessage) -> bool:
        """Hand a reply to whoever was waiting for it.

        Returns True if a continuation ran. Replies to unknown, expired or
        already answered prompts are ignored.
        """
        if message.reply_to_message_id is None:
            return False
        token = (message.chat_id, message.reply_to_message_id)
        with self._lock:
            pending = self._pending.pop(token, None)
        if pending is None:
            return False
        if self._clock() - pending.created > self._ttl:
            logger.debug("Reply to %s arrived after expiry", token)
            return False
        await pending.continuation(message)
        return True

    def sweep(self) -> int:
        """Drop every entry older than the TTL. Returns how many went."""
        deadline = self._clock() - self._ttl
        with self._lock:
            expired = [t for t, p in self._pending.items() if p.created < deadline]
            for token in expired:
                del self._pending[token]
        if expired:
            logger.info("Expired %d abandoned conversations", len(expired))
        return len(expired)
