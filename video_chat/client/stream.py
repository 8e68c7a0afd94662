"""Parsing of the event stream relayed by the `/chat` endpoint.

The relayed body is a sequence of lines; the ones starting with ``data:``
carry a JSON record. Records are turned into one of a closed set of event
types which the consumer pulls one at a time from :func:`iter_events`.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"


@dataclass(frozen=True)
class VideoReference:
    name: Optional[str]
    duration: Any = None
    video_no: Optional[str] = None


@dataclass(frozen=True)
class Thinking:
    """The model started working; carries the session id for the next turn."""

    session_id: Optional[str] = None


@dataclass(frozen=True)
class ContentDelta:
    text: str
    session_id: Optional[str] = None


@dataclass(frozen=True)
class ReferenceList:
    references: tuple = ()
    session_id: Optional[str] = None

    def render(self) -> str:
        if not self.references:
            return "Referenced video segments:\nVideo references"
        lines = [f"• {ref.name} ({ref.duration}s)" for ref in self.references]
        return "Referenced video segments:\n" + "\n".join(lines)


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class StreamError:
    """A payload the stream does not recognize, reported upstream as an error."""

    message: str
    payload: Any = field(default=None, compare=False)


StreamEvent = Union[Thinking, ContentDelta, ReferenceList, Done, StreamError]


def _session_id(record: dict) -> Optional[str]:
    value = record.get("sessionId") or record.get("session_id")
    return None if value is None else str(value)


def _references(record: dict) -> tuple:
    items = record.get("ref") or []
    if not isinstance(items, list):
        logger.warning("Ignoring non-list ref field: %.200r", items)
        return ()
    refs = []
    for item in items:
        video = item.get("video") if isinstance(item, dict) else None
        if not isinstance(video, dict):
            continue
        refs.append(
            VideoReference(
                name=video.get("video_name"),
                duration=video.get("duration"),
                video_no=video.get("video_no"),
            )
        )
    return tuple(refs)


def parse_record(record: Any) -> Optional[StreamEvent]:
    """Map one decoded JSON record to a stream event, or None when it is empty."""
    if not isinstance(record, dict):
        if record in (None, "", [], {}):
            return None
        return StreamError(str(record), record)

    kind = record.get("type")
    if kind == "thinking":
        return Thinking(_session_id(record))
    if kind == "content":
        return ContentDelta(str(record.get("content") or ""), _session_id(record))
    if kind == "ref":
        return ReferenceList(_references(record), _session_id(record))
    if record.get("code") == "SUCCESS" and record.get("data") == "Done":
        return Done()
    if not record:
        return None

    message = record.get("data") or record.get("msg") or json.dumps(record)
    return StreamError(str(message), record)


async def iter_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Decode a byte stream and yield complete lines, whatever the chunk boundaries."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    async for chunk in chunks:
        pending += decoder.decode(chunk)
        *lines, pending = pending.split("\n")
        for line in lines:
            yield line.rstrip("\r")
    pending += decoder.decode(b"", final=True)
    if pending:
        yield pending.rstrip("\r")


async def iter_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    """Yield stream events in arrival order, stopping after the Done sentinel.

    Lines that are not valid JSON are skipped with a warning so one garbled
    chunk does not abort the whole reply.
    """
    async for line in iter_lines(chunks):
        if not line.startswith(DATA_PREFIX):
            continue
        raw = line[len(DATA_PREFIX):].strip()
        if not raw:
            continue
        try:
            record = json.loads(raw)
        except ValueError:
            logger.warning("Skipping malformed stream line: %.200s", line)
            continue

        try:
            event = parse_record(record)
        except (TypeError, AttributeError, ValueError) as e:
            logger.warning("Skipping malformed stream record %.200s: %s", line, e)
            continue
        if event is None:
            continue
        yield event
        if isinstance(event, Done):
            return
