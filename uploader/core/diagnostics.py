"""
Diagnostics: media tool version detection and system checks.
"""

import logging
import subprocess

from uploader.core.security_utils import run_subprocess_capture
from uploader.core.constants import APP_VERSION, CONFIG_PATH, LOG_FILE

logger = logging.getLogger(__name__)


def _tool_version(tool: str) -> str:
    """Return the first line of `<tool> -version`, or an error message."""
    try:
        result = run_subprocess_capture([tool, "-version"], timeout=10)
    except FileNotFoundError:
        return "Not installed"
    except (OSError, subprocess.SubprocessError) as e:
        return f"Error: {e}"

    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip().splitlines()[0]
    return f"Error (rc={result.returncode})"


def get_ffprobe_version() -> str:
    return _tool_version("ffprobe")


def get_ffmpeg_version() -> str:
    return _tool_version("ffmpeg")


def get_diagnostics() -> dict:
    """Gather all diagnostic information."""
    return {
        "app_version": APP_VERSION,
        "ffprobe_version": get_ffprobe_version(),
        "ffmpeg_version": get_ffmpeg_version(),
        "config_path": str(CONFIG_PATH),
        "config_exists": CONFIG_PATH.exists(),
        "log_file": str(LOG_FILE),
    }
