"""
Video metadata extraction via ffprobe, with a best-effort ffmpeg thumbnail.
"""

import base64
import json
import logging
import subprocess

from uploader.core.security_utils import run_subprocess_capture, run_subprocess_binary
from uploader.core.error_codes import MetadataError
from uploader.core.constants import (
    FFPROBE_TIMEOUT_SEC, THUMBNAIL_TIMEOUT_SEC, THUMBNAIL_JPEG_QUALITY,
)
from uploader.core.models import VideoFile, VideoMetadata, file_extension

logger = logging.getLogger(__name__)


def probe_video(file: VideoFile) -> dict:
    """
    Run ffprobe on the file and return its parsed JSON report.
    Raises MetadataError if the media cannot be decoded.
    """
    args = [
        "ffprobe",
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(file.path),
    ]

    try:
        result = run_subprocess_capture(args, timeout=FFPROBE_TIMEOUT_SEC)
    except FileNotFoundError:
        raise MetadataError("ffprobe is not installed")
    except subprocess.TimeoutExpired:
        raise MetadataError(f"ffprobe timed out after {FFPROBE_TIMEOUT_SEC}s")
    except OSError as e:
        raise MetadataError(f"ffprobe could not be started: {e}")

    if result.returncode != 0:
        stderr = result.stderr or ""
        raise MetadataError(f"Failed to load video metadata: {stderr[:200] or 'unknown error'}")

    try:
        return json.loads(result.stdout)
    except (json.JSONDecodeError, TypeError) as e:
        raise MetadataError(f"Failed to parse ffprobe JSON: {e}")


def _first_video_stream(report: dict) -> dict | None:
    for stream in report.get('streams', []):
        if stream.get('codec_type') == 'video':
            return stream
    return None


def _as_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def generate_thumbnail(file: VideoFile) -> str | None:
    """
    Render the first frame as a JPEG data URL.
    Never raises: a failure is logged and None returned.
    """
    args = [
        "ffmpeg",
        "-v", "error",
        "-i", str(file.path),
        "-frames:v", "1",
        "-q:v", str(THUMBNAIL_JPEG_QUALITY),
        "-f", "image2pipe",
        "-vcodec", "mjpeg",
        "pipe:1",
    ]

    try:
        result = run_subprocess_binary(args, timeout=THUMBNAIL_TIMEOUT_SEC)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Failed to generate thumbnail for %s: %s", file.name, e)
        return None

    if result.returncode != 0 or not result.stdout:
        logger.warning("Failed to generate thumbnail for %s (rc=%s)", file.name, result.returncode)
        return None

    encoded = base64.b64encode(result.stdout).decode('ascii')
    return f"data:image/jpeg;base64,{encoded}"


def extract_metadata(file: VideoFile, with_thumbnail: bool = True) -> VideoMetadata:
    """
    Extract duration, resolution and bitrate for a validated video file.
    Raises MetadataError when the file has no decodable video stream.
    """
    report = probe_video(file)
    stream = _first_video_stream(report)
    if stream is None:
        raise MetadataError(f"No video stream found in {file.name}")

    fmt = report.get('format', {})
    duration = _as_float(fmt.get('duration'))
    if duration is None:
        duration = _as_float(stream.get('duration'))

    metadata = VideoMetadata(
        size=file.size,
        duration=duration,
        width=_as_int(stream.get('width')),
        height=_as_int(stream.get('height')),
        bitrate=_as_int(fmt.get('bit_rate')),
        format=file_extension(file.name) or None,
    )

    if with_thumbnail:
        metadata.thumbnail = generate_thumbnail(file)

    logger.info("Metadata for %s: %sx%s, %.1fs", file.name,
                metadata.width, metadata.height, metadata.duration or 0.0)
    return metadata
