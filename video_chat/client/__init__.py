"""Client side of the video chat proxy: stream parsing, chat transcript and uploads."""

from .chat import ChatError, ChatInterface, ChatMessage, MessageKind, Sender, new_unique_id
from .stream import ContentDelta, Done, ReferenceList, StreamError, Thinking, VideoReference, iter_events
from .uploads import UploadedFile, UploadManager, UploadStatus

__all__ = [
    "ChatError",
    "ChatInterface",
    "ChatMessage",
    "ContentDelta",
    "Done",
    "MessageKind",
    "ReferenceList",
    "Sender",
    "StreamError",
    "Thinking",
    "UploadManager",
    "UploadStatus",
    "UploadedFile",
    "VideoReference",
    "iter_events",
    "new_unique_id",
]
