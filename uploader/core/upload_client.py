"""
HTTP client for the upload services.
- Upload Session Service: issues the upload id and chunk endpoint
- Chunk endpoint: receives one multipart body per chunk
- Video Processing Service: finalizes the assembled upload
"""

import json
import logging

import requests

from uploader.core.error_codes import (
    ChunkTransferError, CompletionError, SessionInitError,
)
from uploader.core.constants import (
    ErrorCode, UPLOAD_INIT_PATH, UPLOAD_COMPLETE_PATH,
    DEFAULT_REQUEST_TIMEOUT_SEC, RETRYABLE_HTTP_STATUSES, MAX_ERROR_BODY_CHARS,
)
from uploader.core.models import UploadChunk, UploadSession

logger = logging.getLogger(__name__)


def _body_excerpt(resp) -> str:
    text = resp.text
    return text[:MAX_ERROR_BODY_CHARS] if text else "No response body"


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class UploadApiClient:
    """Thin wrapper around a requests.Session for the three upload calls."""

    def __init__(self, api_base_url: str, auth_token: str | None = None,
                 timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC,
                 session: requests.Session | None = None):
        self.api_base_url = api_base_url.rstrip('/')
        self.timeout = timeout
        self._auth_token = auth_token
        self.session = session or requests.Session()

    def _service_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    def close(self):
        self.session.close()

    # ── Upload Session Service ────────────────────────────────────────

    def init_session(self, file_name: str, file_size: int, course_id: str) -> UploadSession:
        """Open an upload session. Raises SessionInitError on any failure."""
        url = f"{self.api_base_url}{UPLOAD_INIT_PATH}"
        body = {"fileName": file_name, "fileSize": file_size, "courseId": course_id}

        try:
            resp = self.session.post(url, data=json.dumps(body),
                                     headers=self._service_headers(),
                                     timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise SessionInitError("Upload session request timed out", retryable=True)
        except requests.exceptions.ConnectionError:
            raise SessionInitError("Network error connecting to upload service", retryable=True)
        except requests.exceptions.RequestException as e:
            raise SessionInitError(f"Upload session request failed: {e}")

        if not _is_success(resp.status_code):
            raise SessionInitError(
                f"Failed to initialize upload ({resp.status_code}): {_body_excerpt(resp)}",
                retryable=resp.status_code in RETRYABLE_HTTP_STATUSES,
            )

        try:
            data = resp.json()
        except ValueError:
            raise SessionInitError("Failed to parse upload session response JSON")

        if not isinstance(data, dict) or not data.get('uploadId') or not data.get('uploadUrl'):
            raise SessionInitError("Upload session response is missing uploadId or uploadUrl")

        session = UploadSession(
            upload_id=str(data['uploadId']),
            upload_url=str(data['uploadUrl']),
            upload_preset=str(data.get('uploadPreset') or ""),
            cloud_name=str(data.get('cloudName') or ""),
        )
        logger.info("Upload session %s opened for %s (%d bytes)",
                    session.upload_id, file_name, file_size)
        return session

    # ── Chunk transfer ────────────────────────────────────────────────

    def upload_chunk(self, session: UploadSession, chunk: UploadChunk,
                     data: bytes, total_chunks: int, file_name: str = "blob"):
        """
        Send one chunk as multipart/form-data to the session's upload URL.
        Any 2xx is success; everything else raises ChunkTransferError.
        """
        form = {
            "upload_preset": session.upload_preset,
            "chunk_index": str(chunk.index),
            "total_chunks": str(total_chunks),
            "upload_id": session.upload_id,
        }
        files = {"file": (file_name, data, "application/octet-stream")}

        try:
            resp = self.session.post(session.upload_url, data=form, files=files,
                                     timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ChunkTransferError(f"Chunk {chunk.index} upload timed out",
                                     chunk_index=chunk.index,
                                     code=ErrorCode.REQUEST_TIMEOUT)
        except requests.exceptions.ConnectionError:
            raise ChunkTransferError(f"Network error uploading chunk {chunk.index}",
                                     chunk_index=chunk.index,
                                     code=ErrorCode.NETWORK_TRANSIENT)
        except requests.exceptions.RequestException as e:
            raise ChunkTransferError(f"Chunk {chunk.index} upload failed: {e}",
                                     chunk_index=chunk.index)

        if not _is_success(resp.status_code):
            retryable = resp.status_code in RETRYABLE_HTTP_STATUSES
            raise ChunkTransferError(
                f"Failed to upload chunk {chunk.index} ({resp.status_code}): {_body_excerpt(resp)}",
                chunk_index=chunk.index,
                status_code=resp.status_code,
                code=ErrorCode.CHUNK_TRANSFER_FAILED if retryable else ErrorCode.CHUNK_REJECTED,
            )

    # ── Video Processing Service ──────────────────────────────────────

    def complete_upload(self, payload: dict) -> str | None:
        """
        Ask the server to assemble and process the upload.
        Returns the resulting video URL (may be None if the server omits it).
        """
        url = f"{self.api_base_url}{UPLOAD_COMPLETE_PATH}"

        try:
            resp = self.session.post(url, data=json.dumps(payload),
                                     headers=self._service_headers(),
                                     timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise CompletionError("Upload completion request timed out", retryable=True)
        except requests.exceptions.ConnectionError:
            raise CompletionError("Network error connecting to video service", retryable=True)
        except requests.exceptions.RequestException as e:
            raise CompletionError(f"Upload completion request failed: {e}")

        if not _is_success(resp.status_code):
            raise CompletionError(
                f"Failed to complete upload ({resp.status_code}): {_body_excerpt(resp)}",
                retryable=resp.status_code in RETRYABLE_HTTP_STATUSES,
            )

        try:
            data = resp.json()
        except ValueError:
            raise CompletionError("Failed to parse upload completion response JSON")

        video = data.get('video') if isinstance(data, dict) else None
        video_url = video.get('url') if isinstance(video, dict) else None
        logger.info("Upload %s completed: %s", payload.get('uploadId'), video_url)
        return video_url
