"""Tests for src.core.setup_dialog — the three-question group setup."""

from datetime import time

import pytest

from src.core.conversation import ConversationTracker
from src.core.setup_dialog import SetupDialog, SetupState, parse_start_time, parse_weekday
from src.data.models import User
from src.ports.chat_port import InboundMessage, OutgoingMarkup
from src.ports.store_port import StoreError

CHAT = -100


def _message(text: str, reply_to: int | None = None, message_id: int = 1) -> InboundMessage:
    return InboundMessage(
        chat_id=CHAT,
        message_id=message_id,
        sender=User(id=7, first_name="Ada"),
        text=text,
        chat_title="Bowlers",
        reply_to_message_id=reply_to,
    )


@pytest.fixture
def tracker(monotonic):
    return ConversationTracker(ttl_seconds=600, clock=monotonic)


@pytest.fixture
def dialog(bowling_db, fake_chat, tracker, monotonic):
    return SetupDialog(bowling_db, fake_chat, tracker, ttl_seconds=600, clock=monotonic)


class TestParsers:
    def test_weekday_names(self):
        assert parse_weekday("Monday") == 0
        assert parse_weekday(" friday ") == 4
        assert parse_weekday("SUNDAY") == 6

    def test_weekday_unknown(self):
        assert parse_weekday("Fri") is None
        assert parse_weekday("") is None

    def test_start_time(self):
        assert parse_start_time("18:00") == time(18, 0)
        assert parse_start_time(" 09:30 ") == time(9, 30)

    @pytest.mark.parametrize("text", ["6pm", "25:00", "18", ""])
    def test_start_time_invalid(self, text):
        assert parse_start_time(text) is None


class TestDialog:
    @pytest.mark.asyncio
    async def test_start_asks_for_location(self, dialog, fake_chat, tracker):
        await dialog.start(_message("/bowling"))
        assert "isn't set up for bowling" in fake_chat.sent[0]["text"]
        prompt = fake_chat.last
        assert prompt["text"] == "Where is it that you go bowling?"
        assert prompt["markup"] is OutgoingMarkup.FORCE_REPLY
        assert prompt["reply_to"] == 1
        assert prompt["silent"] is True
        assert dialog.state(CHAT) is SetupState.AWAITING_LOCATION
        assert len(tracker) == 1

    @pytest.mark.asyncio
    async def test_full_walkthrough(self, dialog, fake_chat, tracker, bowling_db):
        await dialog.start(_message("/bowling"))

        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"], message_id=2))
        assert bowling_db.get_group(CHAT).location == "Acme Lanes"
        assert fake_chat.last["markup"] is OutgoingMarkup.WEEKDAY_KEYBOARD
        assert dialog.state(CHAT) is SetupState.AWAITING_WEEKDAY

        await tracker.resolve(_message("Friday", reply_to=fake_chat.last["id"], message_id=3))
        assert bowling_db.get_group(CHAT).weekday == 4
        assert fake_chat.last["text"] == "And what time does it start?"
        assert dialog.state(CHAT) is SetupState.AWAITING_TIME

        await tracker.resolve(_message("18:00", reply_to=fake_chat.last["id"], message_id=4))
        group = bowling_db.get_group(CHAT)
        assert group.start_time == time(18, 0)
        assert fake_chat.last["text"] == "Awesome, all done"
        assert fake_chat.last["reply_to"] == 4
        assert dialog.state(CHAT) is SetupState.IDLE
        assert len(tracker) == 0

    @pytest.mark.asyncio
    async def test_bad_weekday_asks_again(self, dialog, fake_chat, tracker):
        await dialog.start(_message("/bowling"))
        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"]))
        await tracker.resolve(_message("someday", reply_to=fake_chat.last["id"]))
        assert fake_chat.last["text"] == "I'm sorry, what?"
        assert fake_chat.last["markup"] is OutgoingMarkup.WEEKDAY_KEYBOARD
        assert dialog.state(CHAT) is SetupState.AWAITING_WEEKDAY

    @pytest.mark.asyncio
    async def test_bad_time_asks_again(self, dialog, fake_chat, tracker, bowling_db):
        await dialog.start(_message("/bowling"))
        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"]))
        await tracker.resolve(_message("Friday", reply_to=fake_chat.last["id"]))
        await tracker.resolve(_message("six-ish", reply_to=fake_chat.last["id"]))
        assert fake_chat.last["text"] == "I'm sorry, what?"
        assert fake_chat.last["markup"] is OutgoingMarkup.FORCE_REPLY
        assert dialog.state(CHAT) is SetupState.AWAITING_TIME
        assert bowling_db.get_group(CHAT).start_time is None

    @pytest.mark.asyncio
    async def test_empty_location_asks_again(self, dialog, fake_chat, tracker):
        await dialog.start(_message("/bowling"))
        await tracker.resolve(_message("   ", reply_to=fake_chat.last["id"]))
        assert fake_chat.last["text"] == "I'm sorry, what?"
        assert dialog.state(CHAT) is SetupState.AWAITING_LOCATION

    @pytest.mark.asyncio
    async def test_restart_supersedes_old_prompt(self, dialog, fake_chat, tracker, bowling_db):
        await dialog.start(_message("/bowling"))
        old_prompt = fake_chat.last["id"]
        await dialog.start(_message("/me"))
        assert len(tracker) == 1

        assert await tracker.resolve(_message("Old Lanes", reply_to=old_prompt)) is False
        assert bowling_db.get_group(CHAT).location is None

    @pytest.mark.asyncio
    async def test_expired_dialog_dies_silently(self, dialog, fake_chat, tracker, monotonic, bowling_db):
        await dialog.start(_message("/bowling"))
        sent = len(fake_chat.sent)
        monotonic.advance(11 * 60)
        tracker.sweep()
        assert await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"])) is False
        assert len(fake_chat.sent) == sent
        assert bowling_db.get_group(CHAT).location is None

    @pytest.mark.asyncio
    async def test_store_error_asks_again(self, dialog, fake_chat, tracker, bowling_db, monkeypatch):
        await dialog.start(_message("/bowling"))
        save_group = bowling_db.save_group

        def _broken(group):
            raise StoreError("database is locked")

        monkeypatch.setattr(bowling_db, "save_group", _broken)
        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"], message_id=2))
        assert fake_chat.last["text"] == (
            "Sorry, I couldn't write that down just now. Could you tell me again?"
        )
        assert fake_chat.last["markup"] is OutgoingMarkup.FORCE_REPLY
        assert dialog.state(CHAT) is SetupState.AWAITING_LOCATION
        assert len(tracker) == 1

        monkeypatch.setattr(bowling_db, "save_group", save_group)
        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"], message_id=3))
        assert bowling_db.get_group(CHAT).location == "Acme Lanes"
        assert dialog.state(CHAT) is SetupState.AWAITING_WEEKDAY

    @pytest.mark.asyncio
    async def test_store_error_keeps_weekday_keyboard(self, dialog, fake_chat, tracker, bowling_db, monkeypatch):
        await dialog.start(_message("/bowling"))
        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"]))

        def _broken(group):
            raise StoreError("database is locked")

        monkeypatch.setattr(bowling_db, "save_group", _broken)
        await tracker.resolve(_message("Friday", reply_to=fake_chat.last["id"]))
        assert fake_chat.last["markup"] is OutgoingMarkup.WEEKDAY_KEYBOARD
        assert dialog.state(CHAT) is SetupState.AWAITING_WEEKDAY


class TestSweep:
    @pytest.mark.asyncio
    async def test_abandoned_dialog_forgotten(self, dialog, monotonic):
        await dialog.start(_message("/bowling"))
        assert len(dialog) == 1
        monotonic.advance(601)
        assert dialog.sweep() == 1
        assert len(dialog) == 0
        assert dialog.state(CHAT) is SetupState.IDLE

    @pytest.mark.asyncio
    async def test_live_dialog_kept(self, dialog, monotonic):
        await dialog.start(_message("/bowling"))
        monotonic.advance(300)
        assert dialog.sweep() == 0
        assert dialog.state(CHAT) is SetupState.AWAITING_LOCATION

    @pytest.mark.asyncio
    async def test_each_prompt_restarts_the_clock(self, dialog, fake_chat, tracker, monotonic):
        await dialog.start(_message("/bowling"))
        monotonic.advance(500)
        await tracker.resolve(_message("Acme Lanes", reply_to=fake_chat.last["id"]))
        monotonic.advance(500)
        assert dialog.sweep() == 0
        assert dialog.state(CHAT) is SetupState.AWAITING_WEEKDAY
