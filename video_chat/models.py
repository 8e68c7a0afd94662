"""Request and response models shared by the proxy routes and the client."""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel


class VideoStatus(str, Enum):
    """Processing stage reported by Memories.ai for an uploaded video."""

    UNPARSE = "UNPARSE"  # not yet analyzable
    PARSE = "PARSE"  # ready for chat
    FAIL = "FAIL"

    @classmethod
    def parse(cls, value: Any) -> Optional["VideoStatus"]:
        try:
            return cls(value)
        except ValueError:
            return None


class ChatRequest(BaseModel):
    message: Optional[str] = None
    videoNos: Optional[List[str]] = None
    uniqueId: Optional[str] = None
    sessionId: Optional[str] = None

    def to_upstream(self) -> dict:
        """Payload in the shape the Memories.ai chat endpoint expects."""
        payload = {
            "video_nos": self.videoNos,
            "prompt": self.message,
            "unique_id": self.uniqueId,
        }
        if self.sessionId:
            payload["session_id"] = self.sessionId
        return payload


class UploadResponse(BaseModel):
    success: bool = True
    videoNo: Optional[str] = None
    videoName: Optional[str] = None
    videoStatus: Optional[str] = None
    uploadTime: Optional[Any] = None
    fileName: Optional[str] = None
    fileSize: int = 0
    fileType: Optional[str] = None
    message: str = "Video uploaded successfully. Processing will begin shortly."
    note: str = (
        "Video must be in PARSE status before you can chat about it. "
        "You'll be notified when processing is complete."
    )
