"""
Standardised error handling for CourseVideoUploader.
"""

from uploader.core.constants import ErrorCode, RETRYABLE_ERRORS


class UploadError(Exception):
    """Raised when an upload encounters a known error condition."""

    default_code = ErrorCode.NETWORK_TRANSIENT

    def __init__(self, message: str, code: str | None = None, retryable: bool | None = None):
        self.code = code or self.default_code
        self.message = message
        # auto-detect retryable from code if not explicitly set
        self.retryable = retryable if retryable is not None else (self.code in RETRYABLE_ERRORS)
        super().__init__(f"[{self.code}] {message}")


class ValidationError(UploadError):
    """File or form rejected locally; never reaches the server."""

    default_code = ErrorCode.UNSUPPORTED_FORMAT


class MetadataError(UploadError):
    """The media decoder could not read the file."""

    default_code = ErrorCode.METADATA


class ChunkTransferError(UploadError):
    default_code = ErrorCode.CHUNK_TRANSFER_FAILED

    def __init__(self, message: str, chunk_index: int | None = None,
                 status_code: int | None = None, code: str | None = None,
                 retryable: bool | None = None):
        self.chunk_index = chunk_index
        self.status_code = status_code
        super().__init__(message, code=code, retryable=retryable)


class SessionInitError(UploadError):
    default_code = ErrorCode.SESSION_INIT_FAILED


class CompletionError(UploadError):
    default_code = ErrorCode.COMPLETION_FAILED


class UploadCancelled(UploadError):
    default_code = ErrorCode.CANCELLED


def is_retryable(code: str) -> bool:
    return code in RETRYABLE_ERRORS
