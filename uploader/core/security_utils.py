"""
Security utilities for CourseVideoUploader.
- Title sanitization for names derived from user files
- Safe subprocess execution (argument arrays only)
"""

import re
import subprocess
import logging

from uploader.core.constants import UNSAFE_FILENAME_CHARS, MAX_TITLE_LEN

logger = logging.getLogger(__name__)


# ── Title safety ──────────────────────────────────────────────────────

def sanitize_title(title: str) -> str:
    """Sanitize a file-derived title before it is sent to the server."""
    if not title:
        return ""
    # Replace unsafe characters with underscore
    safe = re.sub(UNSAFE_FILENAME_CHARS, '_', title)
    # Collapse multiple underscores/spaces
    safe = re.sub(r'[_\s]+', ' ', safe).strip()
    # Truncate
    if len(safe) > MAX_TITLE_LEN:
        safe = safe[:MAX_TITLE_LEN].rstrip()
    safe = safe.strip('.')
    return safe if safe else ""


def redact_token(token: str | None) -> str:
    """Printable stand-in for an auth token."""
    if not token:
        return "<none>"
    return f"<{len(token)} chars>"


# ── Subprocess safety ─────────────────────────────────────────────────

def run_subprocess(args: list[str], **kwargs) -> subprocess.CompletedProcess:
    """
    Execute a subprocess using argument arrays only.
    shell=True is explicitly forbidden.
    """
    if not isinstance(args, (list, tuple)):
        raise TypeError("Subprocess args must be a list/tuple, not a string")

    # Force shell=False: remove any caller-supplied value, then set it once
    kwargs.pop('shell', None)

    logger.debug("Running subprocess: %s", ' '.join(str(a) for a in args))
    return subprocess.run(args, shell=False, **kwargs)


def run_subprocess_capture(args: list[str], timeout: int = 300, **kwargs) -> subprocess.CompletedProcess:
    """Run subprocess and capture stdout/stderr as text."""
    return run_subprocess(
        args,
        capture_output=True,
        text=True,
        timeout=timeout,
        **kwargs,
    )


def run_subprocess_binary(args: list[str], timeout: int = 300, **kwargs) -> subprocess.CompletedProcess:
    """Run subprocess and capture stdout/stderr as bytes (e.g. image frames)."""
    return run_subprocess(
        args,
        capture_output=True,
        timeout=timeout,
        **kwargs,
    )
