"""
Local file validation: size limit, extension allow-list and media type.
Pure functions: nothing here touches the network.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from uploader.core.constants import ErrorCode, MIB
from uploader.core.error_codes import ValidationError
from uploader.core.models import VideoFile, file_extension


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    code: Optional[str] = None


def _mb(num_bytes: int) -> str:
    return f"{num_bytes / MIB:.2f}MB"


def validate_file(file: VideoFile, max_file_size: int,
                  allowed_formats: Iterable[str]) -> ValidationResult:
    """
    Check a candidate file against the upload limits.
    Returns ValidationResult(valid, error) with a human-readable reason.
    """
    if file.size > max_file_size:
        return ValidationResult(
            False,
            f"File size ({_mb(file.size)}) exceeds maximum allowed size ({_mb(max_file_size)})",
            ErrorCode.FILE_TOO_LARGE,
        )

    allowed = [f.lower() for f in allowed_formats]
    extension = file_extension(file.name)
    if not extension or extension not in allowed:
        return ValidationResult(
            False,
            f"File format not supported. Allowed formats: {', '.join(allowed)}",
            ErrorCode.UNSUPPORTED_FORMAT,
        )

    if not (file.media_type or "").lower().startswith("video/"):
        return ValidationResult(False, "Please select a valid video file", ErrorCode.NOT_A_VIDEO)

    return ValidationResult(True)


def ensure_valid_file(file: VideoFile, max_file_size: int,
                      allowed_formats: Iterable[str]) -> None:
    """Raise ValidationError when validate_file() rejects the file."""
    result = validate_file(file, max_file_size, allowed_formats)
    if not result.valid:
        raise ValidationError(result.error, code=result.code)
