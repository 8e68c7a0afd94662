"""Chat interface driving the `/chat` endpoint and keeping the running transcript."""

import logging
import secrets
import string
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

import httpx

from .stream import ContentDelta, Done, ReferenceList, StreamError, StreamEvent, Thinking, iter_events

logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I'm your Memories.ai assistant. Upload and process videos first, "
    "then I can help you analyze and discuss them. What would you like to know?"
)
APOLOGY = "I'm sorry, there was an error processing your message. Please try again."
NO_VIDEOS_SELECTED = "Please select at least one processed video before chatting."

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_unique_id() -> str:
    """Per-user identifier in the `user_<millis>_<random>` form shared with uploads."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"user_{int(time.time() * 1000)}_{suffix}"


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageKind(str, Enum):
    PLAIN = "plain"
    REFERENCE = "reference"
    IN_PROGRESS = "in_progress"


@dataclass
class ChatMessage:
    content: str
    sender: Sender
    kind: MessageKind = MessageKind.PLAIN
    session_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)


class ChatError(Exception):
    """A chat turn failed; the message is what the user should see."""


class ChatInterface:
    """Holds the transcript of one chat and sends turns through the proxy.

    `http` must be an `httpx.AsyncClient` whose base URL points at the proxy.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        unique_id: Optional[str] = None,
        video_nos: Optional[List[str]] = None,
    ) -> None:
        self.http = http
        self.unique_id = unique_id or new_unique_id()
        self.video_nos: List[str] = list(video_nos or [])
        self.session_id: Optional[str] = None
        self.error: str = ""
        self.is_loading = False
        self.messages: List[ChatMessage] = [ChatMessage(GREETING, Sender.ASSISTANT)]

    def select_videos(self, video_nos: List[str]) -> None:
        self.video_nos = [v.strip() for v in video_nos if v and v.strip()]

    def dismiss_error(self) -> None:
        self.error = ""

    def _request_body(self, text: str) -> dict:
        body = {"message": text, "videoNos": self.video_nos, "uniqueId": self.unique_id}
        if self.session_id:
            body["sessionId"] = self.session_id
        return body

    def _apply_content(self, accumulated: str, session_id: Optional[str]) -> None:
        last = self.messages[-1] if self.messages else None
        if last and last.sender is Sender.ASSISTANT and last.kind is MessageKind.IN_PROGRESS:
            last.content = accumulated
            return
        self.messages.append(
            ChatMessage(accumulated, Sender.ASSISTANT, MessageKind.IN_PROGRESS, session_id)
        )

    def _finalize(self) -> None:
        for message in self.messages:
            if message.kind is MessageKind.IN_PROGRESS:
                message.kind = MessageKind.PLAIN

    async def _events(self, text: str) -> AsyncIterator[StreamEvent]:
        async with self.http.stream("POST", "/chat", json=self._request_body(text)) as response:
            if response.is_error:
                await response.aread()
                try:
                    error = response.json().get("error")
                except (ValueError, AttributeError):
                    error = None
                raise ChatError(error or "Failed to send message")
            async for event in iter_events(response.aiter_bytes()):
                yield event

    async def replies(self, text: str) -> AsyncIterator[StreamEvent]:
        """Send one user turn and yield each stream event after applying it to the transcript.

        Raises ChatError when the turn fails; the transcript then ends with an
        apology message and `error` holds the reason.
        """
        text = text.strip()
        if not text or self.is_loading:
            return
        if not self.video_nos:
            self.error = NO_VIDEOS_SELECTED
            return

        self.messages.append(ChatMessage(text, Sender.USER))
        self.is_loading = True
        self.error = ""
        session_id = self.session_id
        accumulated = ""

        try:
            async with aclosing(self._events(text)) as events:
                async for event in events:
                    if isinstance(event, Thinking):
                        session_id = event.session_id or session_id
                    elif isinstance(event, ContentDelta):
                        accumulated += event.text
                        self._apply_content(accumulated, event.session_id)
                    elif isinstance(event, ReferenceList):
                        self.messages.append(
                            ChatMessage(event.render(), Sender.ASSISTANT, MessageKind.REFERENCE, event.session_id)
                        )
                    elif isinstance(event, StreamError):
                        raise ChatError(event.message)
                    yield event
                    if isinstance(event, Done):
                        break
        except Exception as e:
            logger.error("Error sending message: %s", e)
            self.error = str(e) or "Unknown error occurred"
            self._finalize()
            self.messages.append(ChatMessage(APOLOGY, Sender.ASSISTANT))
            if isinstance(e, ChatError):
                raise
            raise ChatError(self.error) from e
        finally:
            self.is_loading = False

        self.session_id = session_id
        self._finalize()

    async def send(self, text: str) -> Optional[ChatMessage]:
        """Run one turn to completion and return the last assistant message."""
        before = len(self.messages)
        async for _ in self.replies(text):
            pass
        if len(self.messages) == before:
            return None
        for message in reversed(self.messages):
            if message.sender is Sender.ASSISTANT:
                return message
        return None
