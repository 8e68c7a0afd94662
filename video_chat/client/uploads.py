"""Client-side upload manager: local file selection, validation and uploads through `/upload`."""

import asyncio
import logging
import mimetypes
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional

import httpx

from ..models import VideoStatus

logger = logging.getLogger(__name__)

ALLOWED_VIDEO_TYPES = ("video/mp4", "video/quicktime", "video/mov")
DEFAULT_MAX_SIZE = 100 * 1024 * 1024

ProgressCallback = Callable[[str, float], None]


class UploadStatus(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class UploadedFile:
    local_id: str
    path: Path
    size: int
    content_type: str
    status: UploadStatus = UploadStatus.IDLE
    progress: float = 0.0
    video_no: Optional[str] = None
    video_status: Optional[VideoStatus] = None
    upload_time: Optional[str] = None
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.path.name


class ProgressReader:
    """File wrapper reporting how much of the file the HTTP client has read."""

    def __init__(self, file: BinaryIO, total: int, on_read: Callable[[int, int], None]) -> None:
        self._file = file
        self._total = total
        self._on_read = on_read

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        self._on_read(self._file.tell(), self._total)
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()


def _content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None and path.suffix.lower() == ".mov":
        content_type = "video/quicktime"
    return content_type or "application/octet-stream"


class UploadManager:
    """Keyed store of selected files and their upload state.

    Each upload only touches its own entry, so concurrent uploads never
    share mutable fields.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        unique_id: str,
        max_size: int = DEFAULT_MAX_SIZE,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.http = http
        self.unique_id = unique_id
        self.max_size = max_size
        self.on_progress = on_progress
        self.files: Dict[str, UploadedFile] = {}
        self.errors: List[str] = []

    def validate(self, path: Path) -> Optional[str]:
        if _content_type(path) not in ALLOWED_VIDEO_TYPES:
            return f"{path.name}: Only MP4 and MOV files are supported"
        if path.stat().st_size > self.max_size:
            return f"{path.name}: File size must be less than {self.max_size // (1024 * 1024)}MB"
        return None

    def add(self, paths: Iterable) -> List[UploadedFile]:
        """Validate and register files; this batch's rejections replace `errors`."""
        errors = []
        added = []
        for raw in paths:
            path = Path(raw)
            if not path.is_file():
                errors.append(f"{path.name}: File not found")
                continue
            error = self.validate(path)
            if error:
                errors.append(error)
                continue
            local_id = uuid.uuid4().hex[:9]
            entry = UploadedFile(local_id, path, path.stat().st_size, _content_type(path))
            self.files[local_id] = entry
            added.append(entry)
        self.errors = errors
        return added

    def clear_errors(self) -> None:
        self.errors = []

    def remove(self, local_id: str) -> None:
        self.files.pop(local_id, None)

    def pending(self) -> List[UploadedFile]:
        return [f for f in self.files.values() if f.status is UploadStatus.IDLE]

    def video_nos(self) -> List[str]:
        return [f.video_no for f in self.files.values() if f.status is UploadStatus.SUCCESS and f.video_no]

    def _set_progress(self, entry: UploadedFile, sent: int, total: int) -> None:
        entry.progress = min(100.0, sent * 100.0 / total) if total else 100.0
        if self.on_progress:
            self.on_progress(entry.local_id, entry.progress)

    async def upload(self, local_id: str) -> UploadedFile:
        """Upload one registered file; failures are recorded on the entry, not raised."""
        entry = self.files[local_id]
        entry.status = UploadStatus.UPLOADING
        entry.error = None
        self._set_progress(entry, 0, entry.size)

        try:
            with entry.path.open("rb") as f:
                reader = ProgressReader(f, entry.size, lambda sent, total: self._set_progress(entry, sent, total))
                response = await self.http.post(
                    "/upload",
                    data={"unique_id": self.unique_id},
                    files={"video": (entry.name, reader, entry.content_type)},
                )
            data = self._response_data(response)
            if response.is_success and data.get("success"):
                entry.status = UploadStatus.SUCCESS
                entry.video_no = data.get("videoNo")
                entry.video_status = VideoStatus.parse(data.get("videoStatus"))
                entry.upload_time = data.get("uploadTime")
                self._set_progress(entry, entry.size, entry.size)
                logger.info("Uploaded %s as %s", entry.name, entry.video_no)
                return entry
            reason = data.get("error") or data.get("details") or f"Upload failed with status {response.status_code}"
        except (httpx.HTTPError, OSError) as e:
            reason = str(e) or "Unknown error"

        entry.status = UploadStatus.ERROR
        entry.error = reason
        self.errors.append(f"Failed to upload {entry.name}: {reason}")
        logger.warning("Upload of %s failed: %s", entry.name, reason)
        return entry

    @staticmethod
    def _response_data(response: httpx.Response) -> dict:
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict):
                return data
        return {
            "error": f"Server returned non-JSON response: {response.text[:200]}...",
            "status": response.status_code,
        }

    async def upload_all(self) -> List[UploadedFile]:
        """Upload every idle file concurrently."""
        return list(await asyncio.gather(*(self.upload(f.local_id) for f in self.pending())))
