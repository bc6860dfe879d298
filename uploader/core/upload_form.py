"""
User-entered video details collected before an upload starts.
Only the title and the file are required; everything else has a default.
"""

import logging
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Optional

from uploader.core.constants import (
    ErrorCode, QUALITY_OPTIONS, OUTPUT_FORMAT_OPTIONS, PRIVACY_OPTIONS,
    DIFFICULTY_OPTIONS,
)
from uploader.core.error_codes import ValidationError
from uploader.core.models import VideoFile
from uploader.core.security_utils import sanitize_title

logger = logging.getLogger(__name__)

_CHOICES = {
    'difficulty': DIFFICULTY_OPTIONS,
    'privacy': PRIVACY_OPTIONS,
    'quality': QUALITY_OPTIONS,
    'format': OUTPUT_FORMAT_OPTIONS,
}

_FLAGS = {
    'is_preview', 'enable_comments', 'enable_downloads',
    'enable_watermark', 'enable_subtitles',
}


def default_title_for(file_name: str) -> str:
    """File name without its extension, e.g. 'Lesson 1.mp4' -> 'Lesson 1'."""
    return sanitize_title(Path(file_name).stem)


@dataclass
class UploadForm:
    title: str = ""
    description: str = ""
    position: int = 0
    tags: list[str] = field(default_factory=list)
    difficulty: str = "beginner"
    is_preview: bool = False
    enable_comments: bool = True
    enable_downloads: bool = False
    quality: str = "auto"
    format: str = "mp4"
    enable_watermark: bool = False
    enable_subtitles: bool = False
    privacy: str = "public"
    file: Optional[VideoFile] = None

    def set(self, key: str, value):
        """Assign a field after coercing it to a valid value."""
        if key not in {f.name for f in fields(self)}:
            raise AttributeError(f"Unknown form field: {key}")
        setattr(self, key, self._validate(key, value))

    def update(self, **values):
        for key, value in values.items():
            if value is not None:
                self.set(key, value)

    def _validate(self, key: str, value):
        """Coerce values; unknown choices fall back to the field default."""
        if key in _CHOICES:
            choice = str(value).strip().lower()
            if choice not in _CHOICES[key]:
                default = _field_default(key)
                logger.warning("Invalid %s %r: using %r", key, value, default)
                return default
            return choice

        if key == 'position':
            try:
                return max(0, int(value))
            except (TypeError, ValueError):
                logger.warning("Invalid position %r: using 0", value)
                return 0

        if key == 'tags':
            if isinstance(value, str):
                value = value.split(',')
            tags = []
            for tag in value or []:
                tag = str(tag).strip()
                if tag and tag not in tags:
                    tags.append(tag)
            return tags

        if key in _FLAGS:
            return bool(value)

        if key in ('title', 'description'):
            return "" if value is None else str(value)

        return value

    def apply_file(self, file: VideoFile):
        """Attach a selected file; the title is re-derived from its name."""
        self.file = file
        self.title = default_title_for(file.name)

    def validate(self):
        """Raise ValidationError unless a file is present and the title is non-empty."""
        if self.file is None:
            raise ValidationError("No file selected: Please select a video file to upload",
                                  code=ErrorCode.MISSING_FIELD)
        if not self.title.strip():
            raise ValidationError("Title required: Please enter a title for the video",
                                  code=ErrorCode.MISSING_FIELD)

    def completion_payload(self, upload_id: str, course_id: str) -> dict:
        return {
            "uploadId": upload_id,
            "courseId": course_id,
            "title": self.title.strip(),
            "description": self.description,
            "position": self.position,
            "tags": list(self.tags),
            "difficulty": self.difficulty,
            "isPreview": self.is_preview,
            "enableComments": self.enable_comments,
            "enableDownloads": self.enable_downloads,
            "quality": self.quality,
            "format": self.format,
            "enableWatermark": self.enable_watermark,
            "enableSubtitles": self.enable_subtitles,
            "privacy": self.privacy,
        }

    def reset(self):
        """Restore every field to its default."""
        for f in fields(self):
            setattr(self, f.name, _field_default(f.name))


def _field_default(name: str):
    for f in fields(UploadForm):
        if f.name == name:
            if f.default_factory is not MISSING:
                return f.default_factory()
            return f.default
    raise AttributeError(name)
