"""
Shared constants for CourseVideoUploader.
Single source of truth: imported by every other module.
"""

import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "CourseVideoUploader"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

APP_DATA_DIR = HOME / ".course_video_uploader"
CONFIG_PATH = APP_DATA_DIR / "config.json"
LOG_DIR = APP_DATA_DIR / "logs"
LOG_FILE = LOG_DIR / "uploader.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# ── Job status values ─────────────────────────────────────────────────
class UploadStatus:
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

ACTIVE_STATUSES = {UploadStatus.UPLOADING, UploadStatus.PROCESSING}

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    # Non-retryable
    FILE_TOO_LARGE = "ERR_FILE_TOO_LARGE"
    UNSUPPORTED_FORMAT = "ERR_UNSUPPORTED_FORMAT"
    NOT_A_VIDEO = "ERR_NOT_A_VIDEO"
    MISSING_FIELD = "ERR_MISSING_FIELD"
    METADATA = "ERR_METADATA"
    CHUNK_REJECTED = "ERR_CHUNK_REJECTED"
    INCOMPLETE_UPLOAD = "ERR_INCOMPLETE_UPLOAD"
    SESSION_INIT_FAILED = "ERR_SESSION_INIT_FAILED"
    COMPLETION_FAILED = "ERR_COMPLETION_FAILED"
    CANCELLED = "ERR_CANCELLED"
    FILE_READ = "ERR_FILE_READ"
    UNEXPECTED = "ERR_UNEXPECTED"

    # Retryable
    CHUNK_TRANSFER_FAILED = "ERR_CHUNK_TRANSFER_FAILED"
    NETWORK_TRANSIENT = "ERR_NETWORK_TRANSIENT"
    REQUEST_TIMEOUT = "ERR_REQUEST_TIMEOUT"

RETRYABLE_ERRORS = {
    ErrorCode.CHUNK_TRANSFER_FAILED,
    ErrorCode.NETWORK_TRANSIENT,
    ErrorCode.REQUEST_TIMEOUT,
}

# HTTP statuses worth another attempt on the same chunk
RETRYABLE_HTTP_STATUSES = {408, 429, 500, 502, 503, 504}

# ── Upload defaults ───────────────────────────────────────────────────
MIB = 1024 * 1024

DEFAULT_CHUNK_SIZE = 5 * MIB
DEFAULT_MAX_FILE_SIZE = 2 * 1024 * MIB     # 2 GB
SUPPORTED_FORMATS = ['mp4', 'avi', 'mov', 'wmv', 'flv', 'webm', 'mkv', 'm4v']

# Used when the platform mimetypes table does not know the extension
VIDEO_MEDIA_TYPES = {
    'mp4': 'video/mp4',
    'avi': 'video/x-msvideo',
    'mov': 'video/quicktime',
    'wmv': 'video/x-ms-wmv',
    'flv': 'video/x-flv',
    'webm': 'video/webm',
    'mkv': 'video/x-matroska',
    'm4v': 'video/x-m4v',
}

DEFAULT_REQUEST_TIMEOUT_SEC = 120
DEFAULT_CHUNK_MAX_RETRIES = 2
CHUNK_RETRY_BASE_DELAY = 1.0   # seconds: doubles each retry with jitter

# ── Service endpoints ─────────────────────────────────────────────────
DEFAULT_API_BASE_URL = "http://localhost:3000"
UPLOAD_INIT_PATH = "/api/cloudinary/init"
UPLOAD_COMPLETE_PATH = "/api/cloudinary/complete"

# ── Form options ──────────────────────────────────────────────────────
QUALITY_OPTIONS = ['auto', '1080p', '720p', '480p', '360p']
OUTPUT_FORMAT_OPTIONS = ['mp4', 'webm', 'mov', 'avi']
PRIVACY_OPTIONS = ['public', 'private', 'unlisted']
DIFFICULTY_OPTIONS = ['beginner', 'intermediate', 'advanced']

# ── Metadata extraction ───────────────────────────────────────────────
FFPROBE_TIMEOUT_SEC = 30
THUMBNAIL_TIMEOUT_SEC = 30
THUMBNAIL_JPEG_QUALITY = 3     # ffmpeg -q:v scale, 2 (best) .. 31 (worst)

# Characters forbidden in titles derived from file names
UNSAFE_FILENAME_CHARS = r'[<>:"/\\|?*\x00-\x1f]'
MAX_TITLE_LEN = 200

# Error bodies are truncated before they reach logs or messages
MAX_ERROR_BODY_CHARS = 300
