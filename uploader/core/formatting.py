"""
Human-readable sizes, durations and progress lines for display.
"""

import math

from uploader.core.constants import UploadStatus
from uploader.core.models import UploadJob

_SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB', 'TB']


def format_file_size(num_bytes: int) -> str:
    """Format a byte count with binary units, e.g. 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    k = 1024
    i = 0
    while num_bytes >= k ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = round(num_bytes / (k ** i), 2)
    # Drop trailing zeros: 2.0 -> '2', 1.50 -> '1.5'
    text = f"{value:.2f}".rstrip('0').rstrip('.')
    return f"{text} {_SIZE_UNITS[i]}"


def format_duration(seconds: float) -> str:
    """m:ss below an hour, h:mm:ss otherwise."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_speed(bytes_per_sec: float) -> str:
    if bytes_per_sec <= 0 or math.isinf(bytes_per_sec):
        return "-"
    return f"{format_file_size(int(bytes_per_sec))}/s"


def format_eta(seconds: float) -> str:
    if seconds is None or math.isinf(seconds) or math.isnan(seconds):
        return "unknown"
    return format_duration(seconds)


def format_progress_line(job: UploadJob) -> str:
    """One-line status summary, e.g. for a terminal progress display."""
    progress = job.progress
    if job.status == UploadStatus.UPLOADING:
        return (
            f"Uploading {job.file.name}: {progress.percentage:.0f}% "
            f"({format_file_size(progress.uploaded)} of {format_file_size(progress.total)}, "
            f"chunk {job.uploaded_chunk_count}/{len(job.chunks)}, "
            f"{format_speed(progress.speed)}, {format_eta(progress.remaining)} left)"
        )
    if job.status == UploadStatus.PROCESSING:
        return f"Processing {job.file.name}..."
    if job.status == UploadStatus.COMPLETED:
        return f"Uploaded {job.file.name}"
    if job.status == UploadStatus.ERROR:
        return f"Upload failed: {job.error or 'Upload failed'}"
    return f"Ready to upload {job.file.name}"
