"""This module contains the client used to talk to the Memories.ai API"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, BinaryIO

import httpx

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/serve/api/v1/upload"
CHAT_PATH = "/serve/api/v1/chat"


class MemoriesService:
    """Issues upload and streamed chat requests against Memories.ai."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        # Settings are resolved per call so environment changes are picked up
        self._settings = settings
        self.transport = transport

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def _client(self) -> httpx.AsyncClient:
        settings = self.settings
        return httpx.AsyncClient(
            base_url=settings.memories_ai_base_url,
            # Raw key, Memories.ai rejects the Bearer scheme
            headers={"Authorization": settings.memories_ai_api_key},
            timeout=settings.upstream_timeout,
            transport=self.transport,
        )

    async def upload_video(
        self,
        file: BinaryIO,
        filename: str,
        content_type: str,
        unique_id: str,
        callback_url: str,
    ) -> httpx.Response:
        """Send one video as multipart form data and return the raw upstream response."""
        async with self._client() as client:
            return await client.post(
                UPLOAD_PATH,
                data={"unique_id": unique_id, "callback": callback_url},
                files={"file": (filename, file, content_type)},
            )

    @asynccontextmanager
    async def chat_stream(self, payload: dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """Open a streamed chat completion; the response is closed when the context exits."""
        async with self._client() as client:
            async with client.stream(
                "POST",
                CHAT_PATH,
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                logger.debug("Memories.ai chat stream opened with status %s", response.status_code)
                yield response
