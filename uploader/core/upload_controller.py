"""
Chunked upload controller.
Drives one upload job through initialize → transfer → complete,
one chunk at a time, and reports progress through callbacks.
"""

import logging
import random
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from uploader.core.constants import (
    UploadStatus, ErrorCode, ACTIVE_STATUSES, CHUNK_RETRY_BASE_DELAY,
)
from uploader.core.config import UploadConfig
from uploader.core.models import (
    UploadJob, UploadProgress, UploadSession, UploadChunk, VideoFile, VideoMetadata,
)
from uploader.core.error_codes import (
    UploadError, ValidationError, MetadataError, ChunkTransferError, UploadCancelled,
)
from uploader.core.file_validation import ensure_valid_file
from uploader.core.video_metadata import extract_metadata
from uploader.core.chunking import create_chunk_manifest, read_chunk, missing_chunks
from uploader.core.upload_client import UploadApiClient
from uploader.core.upload_form import UploadForm

logger = logging.getLogger(__name__)


class ChunkedUploadController:
    """
    Owns the upload state machine for a single course.
    Runs at most one job at a time; start() blocks until the job is
    completed or failed and never raises for network or server errors.
    """

    def __init__(self, course_id: str, client: UploadApiClient,
                 config: UploadConfig | None = None, *,
                 chunk_size: int | None = None,
                 max_file_size: int | None = None,
                 allowed_formats: list[str] | None = None,
                 enable_resume: bool | None = None,
                 chunk_max_retries: int | None = None,
                 generate_thumbnail: bool | None = None,
                 on_success: Optional[Callable[[str | None], None]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if not course_id:
            raise ValueError("course_id is required")
        config = config or UploadConfig()

        self.course_id = course_id
        self.client = client
        self.chunk_size = chunk_size if chunk_size is not None else config.chunk_size
        self.max_file_size = max_file_size if max_file_size is not None else config.max_file_size
        self.allowed_formats = list(allowed_formats or config.allowed_formats)
        self.enable_resume = enable_resume if enable_resume is not None else config.enable_resume
        self.chunk_max_retries = (chunk_max_retries if chunk_max_retries is not None
                                  else config.chunk_max_retries)
        self.generate_thumbnail = (generate_thumbnail if generate_thumbnail is not None
                                   else config.generate_thumbnail)
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

        self.form = UploadForm()
        self.job: Optional[UploadJob] = None
        self.metadata: Optional[VideoMetadata] = None
        self.metadata_error: Optional[str] = None

        self._clock = clock
        self._sleep = sleep
        self._cancel_event = threading.Event()

        # Callbacks
        self.on_success = on_success
        self.on_progress: Optional[Callable[[UploadJob], None]] = None
        self.on_status_changed: Optional[Callable[[UploadJob], None]] = None

    # ── File selection ────────────────────────────────────────────────

    def is_busy(self) -> bool:
        return self.job is not None and self.job.status in ACTIVE_STATUSES

    def select_file(self, path: Path | str, media_type: str | None = None) -> VideoFile:
        """
        Validate a file and attach it to the form.
        Raises ValidationError before anything is sent to the server.
        A metadata failure is recorded but does not reject the file.
        """
        if self.is_busy():
            raise RuntimeError("Cannot change the file while an upload is in progress")

        file = VideoFile.from_path(path, media_type)
        ensure_valid_file(file, self.max_file_size, self.allowed_formats)

        self.form.apply_file(file)
        self.metadata = None
        self.metadata_error = None
        try:
            self.metadata = extract_metadata(file, with_thumbnail=self.generate_thumbnail)
        except MetadataError as e:
            logger.warning("Metadata unavailable for %s: %s", file.name, e.message)
            self.metadata_error = e.message

        logger.info("File selected: %s (%d bytes)", file.name, file.size)
        return file

    # ── Job lifecycle ─────────────────────────────────────────────────

    def start(self) -> UploadJob:
        """
        Run a full upload for the current form.
        Raises ValidationError (and sends nothing) if the form or file is
        invalid; every later failure is reported on the returned job.
        """
        if self.is_busy():
            raise RuntimeError("An upload is already in progress")

        self.form.validate()
        file = self.form.file
        ensure_valid_file(file, self.max_file_size, self.allowed_formats)
        if file.size <= 0:
            raise ValidationError(f"{file.name} is empty", code=ErrorCode.NOT_A_VIDEO)

        self._cancel_event.clear()
        job = UploadJob(file=file, chunk_size=self.chunk_size)
        self.job = job

        try:
            session = self._initialize(job)
            self._transfer(job, session)
            self._complete(job)
        except UploadError as e:
            self._fail(job, e)
        except Exception as e:
            logger.error("Unexpected error uploading %s: %s", file.name, e, exc_info=True)
            self._fail(job, UploadError(str(e)[:2000], code=ErrorCode.UNEXPECTED))

        if job.status == UploadStatus.COMPLETED:
            self._finish(job)
        return job

    def cancel(self):
        """Stop the current job before its next chunk and reset the form."""
        self._cancel_event.set()
        if not self.is_busy():
            self.job = None
            self.form.reset()

    def close(self):
        """
        Abandon the current job without telling the server.
        Chunks already sent are left for the server to clean up.
        """
        self._cancel_event.set()
        self.job = None
        self.metadata = None
        self.metadata_error = None

    # ── Phases ────────────────────────────────────────────────────────

    def _initialize(self, job: UploadJob) -> UploadSession:
        session = self.client.init_session(job.file.name, job.file.size, self.course_id)
        job.upload_id = session.upload_id
        job.chunks = create_chunk_manifest(job.file.size, job.chunk_size)
        job.progress = UploadProgress(total=job.file.size)
        self._set_status(job, UploadStatus.UPLOADING)
        logger.info("Uploading %s in %d chunks of %d bytes",
                    job.file.name, len(job.chunks), job.chunk_size)
        return session

    def _transfer(self, job: UploadJob, session: UploadSession):
        total_chunks = len(job.chunks)
        started_at = self._clock()

        try:
            handle = open(job.file.path, 'rb')
        except OSError as e:
            raise UploadError(f"Could not read {job.file.name}: {e}", code=ErrorCode.FILE_READ)

        with handle:
            for chunk in job.chunks:
                if self._cancel_event.is_set():
                    raise UploadCancelled("Upload cancelled by user")

                try:
                    data = read_chunk(handle, chunk)
                except OSError as e:
                    raise UploadError(f"Could not read chunk {chunk.index}: {e}",
                                      code=ErrorCode.FILE_READ)

                try:
                    self._send_chunk(job, session, chunk, data, total_chunks)
                except ChunkTransferError as e:
                    if not self.enable_resume:
                        raise
                    logger.warning("Chunk %d/%d failed (%s): continuing with next chunk",
                                   chunk.index + 1, total_chunks, e.message)
                    continue

                chunk.uploaded = True
                self._record_progress(job, chunk, started_at)

        # Cancelled while the last chunk was in flight
        if self._cancel_event.is_set():
            raise UploadCancelled("Upload cancelled by user")

        missing = missing_chunks(job.chunks)
        if missing:
            indexes = ', '.join(str(c.index) for c in missing)
            raise ChunkTransferError(
                f"{len(missing)} of {total_chunks} chunks failed to upload (chunks {indexes})",
                chunk_index=missing[0].index,
                code=ErrorCode.INCOMPLETE_UPLOAD,
                retryable=False,
            )

    def _send_chunk(self, job: UploadJob, session: UploadSession, chunk: UploadChunk,
                    data: bytes, total_chunks: int):
        """Send one chunk, retrying retryable failures with exponential backoff."""
        for attempt in range(self.chunk_max_retries + 1):
            chunk.attempts += 1
            try:
                self.client.upload_chunk(session, chunk, data, total_chunks,
                                         file_name=job.file.name)
                return
            except ChunkTransferError as e:
                if not e.retryable or attempt >= self.chunk_max_retries:
                    raise
                # Exponential backoff with jitter: 1s, 2s, 4s ... (+/- 10%)
                delay = CHUNK_RETRY_BASE_DELAY * (2 ** attempt)
                delay *= 1 + random.uniform(-0.1, 0.1)
                logger.warning(
                    "Chunk %d failed (%s): retrying in %.1fs (attempt %d/%d)",
                    chunk.index, e.message, delay, attempt + 1, self.chunk_max_retries,
                )
                self._sleep(delay)
                if self._cancel_event.is_set():
                    raise UploadCancelled("Upload cancelled by user")

    def _record_progress(self, job: UploadJob, chunk: UploadChunk, started_at: float):
        progress = job.progress
        progress.uploaded += chunk.size
        elapsed = self._clock() - started_at
        progress.speed = progress.uploaded / elapsed if elapsed > 0 else 0.0

        outstanding = progress.total - progress.uploaded
        if outstanding <= 0:
            progress.remaining = 0.0
        elif progress.speed > 0:
            progress.remaining = outstanding / progress.speed
        else:
            progress.remaining = float('inf')

        if self.on_progress:
            self.on_progress(job)

    def _complete(self, job: UploadJob):
        self._set_status(job, UploadStatus.PROCESSING)
        payload = self.form.completion_payload(job.upload_id, self.course_id)
        job.video_url = self.client.complete_upload(payload)
        self._set_status(job, UploadStatus.COMPLETED)

    def _finish(self, job: UploadJob):
        """Hand the result to the caller, then discard the job."""
        logger.info("Upload successful: %s -> %s", job.file.name, job.video_url)
        self.form.reset()
        self.job = None
        self.metadata = None
        if self.on_success:
            self.on_success(job.video_url)

    def _fail(self, job: UploadJob, error: UploadError):
        job.error = error.message
        job.error_code = error.code
        if isinstance(error, UploadCancelled):
            logger.info("Upload of %s cancelled", job.file.name)
            self.form.reset()
        else:
            logger.error("Upload of %s failed: [%s] %s", job.file.name, error.code, error.message)
        self._set_status(job, UploadStatus.ERROR)

    def _set_status(self, job: UploadJob, status: str):
        job.status = status
        if self.on_status_changed:
            self.on_status_changed(job)
