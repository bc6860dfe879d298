"""
Upload data models (plain dataclasses) for CourseVideoUploader.
Nothing here is persisted; a job lives only as long as its controller.
"""

import math
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from uploader.core.constants import UploadStatus, VIDEO_MEDIA_TYPES


def file_extension(name: str) -> str:
    """Lowercased extension without the dot, or '' when there is none."""
    suffix = Path(name).suffix
    return suffix[1:].lower() if suffix else ""


@dataclass
class VideoFile:
    path: Path
    name: str
    size: int                        # bytes
    media_type: str = ""

    @classmethod
    def from_path(cls, path: Path | str, media_type: str | None = None) -> "VideoFile":
        path = Path(path)
        if media_type is None:
            media_type = guess_media_type(path.name)
        return cls(path=path, name=path.name, size=path.stat().st_size,
                   media_type=media_type)


def guess_media_type(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    if guessed:
        return guessed
    return VIDEO_MEDIA_TYPES.get(file_extension(name), "application/octet-stream")


@dataclass
class VideoMetadata:
    size: int
    duration: Optional[float] = None  # seconds
    width: Optional[int] = None
    height: Optional[int] = None
    bitrate: Optional[int] = None     # bits per second
    format: Optional[str] = None
    thumbnail: Optional[str] = None   # data: URL


@dataclass
class UploadChunk:
    index: int
    start: int                       # inclusive byte offset
    end: int                         # exclusive byte offset
    uploaded: bool = False
    attempts: int = 0

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class UploadSession:
    upload_id: str
    upload_url: str
    upload_preset: str = ""
    cloud_name: str = ""


@dataclass
class UploadProgress:
    total: int = 0
    uploaded: int = 0
    speed: float = 0.0               # bytes per second since job start
    remaining: float = math.inf      # seconds; inf while unknown

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        ratio = self.uploaded / self.total
        return max(0.0, min(ratio * 100.0, 100.0))


@dataclass
class UploadJob:
    file: VideoFile
    chunk_size: int
    chunks: list[UploadChunk] = field(default_factory=list)
    upload_id: Optional[str] = None
    status: str = UploadStatus.IDLE
    progress: UploadProgress = field(default_factory=UploadProgress)
    error: Optional[str] = None
    error_code: Optional[str] = None
    video_url: Optional[str] = None

    @property
    def uploaded_chunk_count(self) -> int:
        return sum(1 for c in self.chunks if c.uploaded)
