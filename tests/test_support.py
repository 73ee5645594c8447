"""Tests for the support chat and the FAQ bot."""
import asyncio

import pytest

from storefront_client.errors import RequestFailed, ValidationFailed
from storefront_client.models import Conversation
from storefront_client.support.faq import HUMAN_HANDOFF, NO_MATCH, FaqBot


def conversation(cid: str = "c1", messages=None) -> dict:
    return {
        "_id": cid,
        "title": "Customer Support",
        "status": "active",
        "messages": messages or [],
    }


class TestSupportChat:
    async def test_first_message_starts_conversation(self, logged_in, backend):
        backend.on("POST", "conversations", (201, conversation(messages=[
            {"sender": "user", "text": "Where is my order?"},
        ])))
        conv = await logged_in.chat.send("  Where is my order?  ")

        assert conv.id == "c1"
        assert backend.calls[-1] == ("POST", "conversations", {
            "title": "Customer Support", "initialMessage": "Where is my order?",
        })
        assert logged_in.chat.polling
        await logged_in.chat.close()

    async def test_reply_goes_to_open_conversation(self, logged_in, backend):
        backend.on("GET", "conversations/user", (200, [conversation()]))
        backend.on("PUT", "conversations/c1/read", (200, {}))
        backend.on("POST", "conversations/c1/message", (200, conversation(messages=[
            {"sender": "user", "text": "Thanks"},
        ])))
        await logged_in.chat.open()
        await logged_in.chat.send("Thanks")

        assert ("POST", "conversations/c1/message", {"text": "Thanks"}) in backend.calls
        await logged_in.chat.close()

    async def test_empty_message_rejected(self, logged_in, backend):
        calls_before = len(backend.calls)
        with pytest.raises(ValidationFailed):
            await logged_in.chat.send("   ")
        assert len(backend.calls) == calls_before

    async def test_send_failure_sets_error(self, logged_in, backend):
        backend.on("POST", "conversations", (500, {"msg": "Server error"}))
        with pytest.raises(RequestFailed):
            await logged_in.chat.send("Hello")
        assert logged_in.chat.error == "Failed to send message. Please try again."

    async def test_unread_count(self, logged_in, backend):
        backend.on("GET", "conversations/user", (200, [
            conversation("c1", [{"sender": "admin", "text": "Hi", "read": False}]),
            conversation("c2", [
                {"sender": "admin", "text": "Done", "read": False},
                {"sender": "admin", "text": "Old", "read": True},
                {"sender": "user", "text": "Ok", "read": False},
            ]),
        ]))
        await logged_in.chat.list_conversations()
        assert logged_in.chat.unread_count == 2

    async def test_polling_refreshes_open_conversation(self, logged_in, backend):
        replies = iter([
            conversation(messages=[{"sender": "user", "text": "Hi"}]),
            conversation(messages=[
                {"sender": "user", "text": "Hi"},
                {"sender": "admin", "text": "Hello! How can we help?"},
            ]),
        ])
        last = {}

        def get_conversation(request):
            last["body"] = next(replies, last.get("body"))
            return 200, last["body"]

        backend.on("GET", "conversations/user", (200, [conversation()]))
        backend.on("PUT", "conversations/c1/read", (200, {}))
        backend.on("GET", "conversations/c1", get_conversation)

        await logged_in.chat.open("c1")
        for _ in range(50):
            if len(logged_in.chat.selected.messages) == 2:
                break
            await asyncio.sleep(0.01)

        assert logged_in.chat.selected.messages[-1].text == "Hello! How can we help?"
        await logged_in.chat.close()
        assert not logged_in.chat.polling

    async def test_logout_stops_polling(self, logged_in, backend):
        backend.on("POST", "conversations", (201, conversation()))
        await logged_in.chat.send("Hello")
        assert logged_in.chat.polling

        await logged_in.session.logout()
        assert not logged_in.chat.polling

    async def test_close_cancels_polling(self, logged_in, backend):
        backend.on("GET", "conversations/user", (200, [conversation()]))
        backend.on("PUT", "conversations/c1/read", (200, {}))
        backend.on("GET", "conversations/c1", (200, conversation()))

        await logged_in.chat.open()
        task = logged_in.chat._poll_task
        assert logged_in.chat.polling

        await logged_in.chat.close()
        assert not logged_in.chat.polling
        assert task.cancelled()

    async def test_refresh_skipped_while_one_is_in_flight(self, logged_in):
        chat = logged_in.chat
        chat.selected = Conversation.model_validate(conversation())
        release = asyncio.Event()
        fetched = []

        async def slow_get(path, params=None):
            fetched.append(path)
            if path == "conversations/user":
                return [conversation()]
            await release.wait()
            return conversation()

        chat._api.get = slow_get
        first = asyncio.ensure_future(chat.refresh())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert fetched == ["conversations/c1"]

        await chat.refresh()
        assert fetched == ["conversations/c1"]

        release.set()
        await first
        assert fetched == ["conversations/c1", "conversations/user"]

    async def test_polling_survives_unexpected_errors(self, logged_in):
        chat = logged_in.chat
        ticks = []

        async def flaky_refresh():
            ticks.append(len(ticks))
            if len(ticks) == 1:
                raise ValueError("unexpected payload")
            return chat.selected

        chat.refresh = flaky_refresh
        chat.start_polling()
        for _ in range(50):
            if len(ticks) >= 2:
                break
            await asyncio.sleep(0.01)

        assert len(ticks) >= 2
        assert chat.polling
        await chat.close()


class TestFaqBot:
    def test_exact_question(self):
        bot = FaqBot()
        assert "Cash on delivery" in bot.answer("What payment methods do you accept?")

    def test_loose_match(self):
        bot = FaqBot()
        assert "30 days" in bot.answer("so what is your return policy?")

    def test_human_handoff(self):
        assert FaqBot().answer("Can I talk to a real person?") == HUMAN_HANDOFF

    def test_no_match(self):
        assert FaqBot().answer("Do you sell spaceships?") == NO_MATCH

    def test_suggestions_follow_topic(self):
        suggestions = FaqBot().suggestions("when is my delivery coming")
        assert "How long does shipping take?" in suggestions
