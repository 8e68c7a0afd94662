"""FastAPI application exposing the upload, chat and webhook proxy endpoints."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

import httpx
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, configure_logging, get_settings
from .errors import (
    BadGatewayError,
    BadRequestError,
    ConfigurationError,
    InternalProxyError,
    ProxyError,
    UpstreamAuthError,
    UpstreamError,
)
from .memories_service import MemoriesService
from .models import ChatRequest, UploadResponse, VideoStatus

configure_logging()
logger = logging.getLogger(__name__)

ALLOWED_VIDEO_TYPES = ("video/mp4", "video/quicktime", "video/mov")
# The only upstream error code with a known meaning
AUTH_FAILED_CODE = "9009"

app = FastAPI(title="Video Chat Proxy")
memories_service = MemoriesService()


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """Render proxy errors as their JSON error body."""
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as client errors."""
    return JSONResponse(
        {"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        status_code=400,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep routing errors (405 and friends) in the same {"error": ...} shape."""
    error = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse({"error": error}, status_code=exc.status_code, headers=exc.headers)


def _require_upstream(settings: Settings) -> None:
    if not settings.memories_ai_api_key:
        raise ConfigurationError("Memories.ai API key not configured")
    if not settings.memories_ai_base_url:
        raise ConfigurationError("Memories.ai base URL not configured")


def _file_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def _optional_str(value) -> str | None:
    return None if value is None else str(value)


def _upload_data(response: httpx.Response) -> dict:
    """Interpret the Memories.ai upload response and return its `data` object."""
    try:
        body = response.json()
    except ValueError:
        logger.error("Memories.ai returned non-JSON upload response (status %s)", response.status_code)
        raise BadGatewayError(
            "Invalid JSON response from Memories.ai API",
            details=f"Response parsing failed. Content: {response.text[:200]}...",
            status=response.status_code,
        )

    if not isinstance(body, dict):
        raise BadGatewayError(
            "Unexpected response from Memories.ai API",
            details="Response structure doesn't match expected format",
            apiResponse=body,
        )

    if body.get("failed") is True or body.get("success") is False:
        logger.error("Memories.ai API error: %s", body)
        if str(body.get("code")) == AUTH_FAILED_CODE:
            raise UpstreamAuthError(
                "Permission denied",
                details="API key authentication failed. Please check your API key.",
                status=response.status_code,
                apiResponse=body,
            )
        raise UpstreamError(
            "Upload failed",
            details=body.get("msg") or "Unknown error from Memories.ai API",
            status_code=response.status_code if response.is_error else 400,
            status=response.status_code,
            apiResponse=body,
        )

    if body.get("success") is True and isinstance(body.get("data"), dict):
        return body["data"]

    logger.error("Unexpected response structure: %s", body)
    raise BadGatewayError(
        "Unexpected response from Memories.ai API",
        details="Response structure doesn't match expected format",
        apiResponse=body,
    )


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and body.get("msg"):
        return str(body["msg"])
    return "Unknown error"


@app.post("/upload")
async def upload_video(
    video: UploadFile | None = File(None),
    unique_id: str | None = Form(None),
) -> dict:
    """Validate one video and forward it to Memories.ai, returning the normalized result."""
    settings = get_settings()
    _require_upstream(settings)

    if video is None:
        raise BadRequestError("No file provided")
    if not unique_id:
        raise BadRequestError("unique_id is required")
    if video.content_type not in ALLOWED_VIDEO_TYPES:
        raise BadRequestError("Invalid file type. Only MP4 and MOV files are supported.")
    size = _file_size(video)
    if size > settings.max_upload_bytes:
        raise BadRequestError(f"File size too large. Maximum size is {settings.max_upload_mb}MB.")

    logger.info(
        "Uploading to Memories.ai: file=%s size=%d unique_id=%s", video.filename, size, unique_id
    )
    try:
        response = await memories_service.upload_video(
            video.file, video.filename, video.content_type, unique_id, settings.callback_url
        )
    except httpx.HTTPError as e:
        logger.error("Upload to Memories.ai failed: %s", e, exc_info=True)
        raise InternalProxyError("Internal server error during upload", details=str(e)) from e

    logger.info("Memories.ai response: status=%s body=%s", response.status_code, response.text[:500])
    data = _upload_data(response)

    return UploadResponse(
        videoNo=_optional_str(data.get("videoNo")),
        videoName=_optional_str(data.get("videoName")),
        videoStatus=_optional_str(data.get("videoStatus")),
        uploadTime=data.get("uploadTime"),
        fileName=video.filename,
        fileSize=size,
        fileType=video.content_type,
    ).model_dump()


async def relay_stream(response: httpx.Response, stack: AsyncExitStack) -> AsyncIterator[bytes]:
    """Yield upstream chunks unchanged and close the upstream response afterwards.

    A read failure is re-raised so the outgoing stream is aborted rather than
    silently truncated.
    """
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.HTTPError as e:
        logger.error("Stream error while relaying chat response: %s", e)
        raise
    finally:
        await stack.aclose()


@app.post("/chat")
async def chat(body: ChatRequest) -> StreamingResponse:
    """Validate a chat turn and relay the Memories.ai event stream back to the caller."""
    settings = get_settings()
    _require_upstream(settings)

    if not body.message:
        raise BadRequestError("Message is required")
    if not body.videoNos:
        raise BadRequestError("At least one video number is required")
    if not body.uniqueId:
        raise BadRequestError("unique_id is required")

    logger.info("Chat turn for %d video(s), session=%s", len(body.videoNos), body.sessionId)
    stack = AsyncExitStack()
    try:
        response = await stack.enter_async_context(memories_service.chat_stream(body.to_upstream()))
        if response.is_error:
            await response.aread()
            logger.error("Memories.ai chat error: status=%s body=%s", response.status_code, response.text[:500])
            raise UpstreamError(
                "Chat request failed",
                details=_upstream_message(response),
                status_code=response.status_code,
            )
    except Exception as e:
        await stack.aclose()
        if isinstance(e, httpx.HTTPError):
            logger.error("Chat request to Memories.ai failed: %s", e, exc_info=True)
            raise InternalProxyError("Internal server error during chat processing", details=str(e)) from e
        raise

    return StreamingResponse(
        relay_stream(response, stack),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.post("/webhook")
async def receive_webhook(request: Request) -> dict:
    """Log a Memories.ai video status notification and acknowledge it."""
    try:
        payload = await request.json()
    except ValueError as e:
        logger.error("Webhook error: %s", e)
        raise InternalProxyError("Webhook processing failed") from e

    fields = payload if isinstance(payload, dict) else {}
    video_no = fields.get("videoNo")
    status = fields.get("status")
    logger.info(
        "Memories.ai webhook received: videoNo=%s clientId=%s status=%s",
        video_no,
        fields.get("clientId"),
        status,
    )

    video_status = VideoStatus.parse(status)
    if video_status is VideoStatus.PARSE:
        logger.info("Video %s is now ready for chat", video_no)
    elif video_status is VideoStatus.UNPARSE:
        logger.info("Video %s is not yet processed", video_no)
    elif video_status is VideoStatus.FAIL:
        logger.warning("Video %s processing failed", video_no)
    else:
        logger.warning("Unknown status %s for video %s", status, video_no)

    return {"success": True, "message": "Webhook processed"}
