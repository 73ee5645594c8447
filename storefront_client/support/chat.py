"""
Support chat — customer side of the support conversations.

While a conversation is open it is refreshed on a fixed interval by a
cancellable task. Polling is best effort: a failed or skipped tick is simply
caught up on the next one.
"""
import asyncio
import contextlib
import logging
from typing import Optional

from ..api import StorefrontAPI
from ..errors import AuthenticationRequired, StorefrontError, ValidationFailed
from ..models import Conversation
from ..session import TokenHolder

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 5.0


class SupportChat:
    """Conversation list, message sending, and polling of the open conversation."""

    def __init__(self, api: StorefrontAPI, session: TokenHolder, poll_seconds: float = DEFAULT_POLL_SECONDS):
        self._api = api
        self._session = session
        self._poll_seconds = poll_seconds
        self._poll_task: Optional[asyncio.Task] = None
        self._refreshing = False
        self.conversations: list[Conversation] = []
        self.selected: Optional[Conversation] = None
        self.error: Optional[str] = None

    @property
    def unread_count(self) -> int:
        return sum(c.unread_from_support for c in self.conversations)

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def list_conversations(self) -> list[Conversation]:
        await self._session.require_token()
        try:
            data = await self._api.get("conversations/user")
        except AuthenticationRequired:
            raise
        except StorefrontError:
            self.error = "Failed to load your support conversations"
            raise
        self.conversations = [Conversation.model_validate(c) for c in data or []]
        self.error = None
        return self.conversations

    async def get(self, conversation_id: str) -> Conversation:
        await self._session.require_token()
        data = await self._api.get(f"conversations/{conversation_id}")
        return Conversation.model_validate(data)

    async def mark_read(self, conversation_id: str) -> None:
        await self._api.put(f"conversations/{conversation_id}/read")

    async def open(self, conversation_id: str | None = None) -> Optional[Conversation]:
        """
        Open the chat. Selects ``conversation_id`` (or the only conversation),
        marks it read and starts polling it.
        """
        await self.list_conversations()
        if conversation_id is not None:
            self.selected = await self.get(conversation_id)
        elif len(self.conversations) == 1:
            self.selected = self.conversations[0]

        if self.selected is not None:
            try:
                await self.mark_read(self.selected.id)
            except StorefrontError as e:
                logger.warning("Marking conversation %s read failed: %s", self.selected.id, e)
            self.start_polling()
        return self.selected

    def new_conversation(self) -> None:
        """Deselect so the next message starts a fresh conversation."""
        self.selected = None
        self._cancel_poll_task()

    async def send(self, text: str) -> Conversation:
        text = text.strip()
        if not text:
            raise ValidationFailed({"text": "Message text is required"})
        await self._session.require_token()

        try:
            if self.selected is not None:
                data = await self._api.post(f"conversations/{self.selected.id}/message", {"text": text})
            else:
                data = await self._api.post(
                    "conversations", {"title": "Customer Support", "initialMessage": text},
                )
        except StorefrontError:
            self.error = "Failed to send message. Please try again."
            raise

        self.selected = Conversation.model_validate(data)
        self.error = None
        if not self.polling:
            self.start_polling()
        return self.selected

    async def refresh(self) -> Optional[Conversation]:
        """Re-fetch the open conversation and the list. Skipped while a refresh is in flight."""
        if self.selected is None or self._refreshing:
            return self.selected
        self._refreshing = True
        try:
            self.selected = await self.get(self.selected.id)
            await self.list_conversations()
        finally:
            self._refreshing = False
        return self.selected

    def start_polling(self) -> None:
        self._cancel_poll_task()
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_seconds)
            try:
                await self.refresh()
            except AuthenticationRequired:
                logger.info("Session ended, stopping chat polling")
                return
            except StorefrontError as e:
                logger.debug("Chat poll failed, retrying next tick: %s", e)
            except Exception:
                logger.exception("Unexpected chat poll failure, retrying next tick")

    def _cancel_poll_task(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()

    async def close(self) -> None:
        """Close the chat and stop polling."""
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
