#!/usr/bin/env python3
"""
Tests for the chunked upload controller and the upload service client.
HTTP is replaced by the scripted session in upload_fakes.
"""

import json
import math
import sys
import tempfile
from pathlib import Path
from unittest import mock

# Add project root and tests dir to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import unittest

import requests

from uploader.core.constants import (
    ErrorCode, UploadStatus, UPLOAD_INIT_PATH, UPLOAD_COMPLETE_PATH,
)
from uploader.core.config import UploadConfig
from uploader.core.error_codes import (
    ChunkTransferError, CompletionError, MetadataError, SessionInitError, ValidationError,
)
from uploader.core.models import UploadChunk, UploadJob, UploadSession, VideoFile, VideoMetadata
from uploader.core.upload_client import UploadApiClient
from uploader.core.upload_controller import ChunkedUploadController

from upload_fakes import (
    API_BASE, UPLOAD_URL, VIDEO_URL, FakeClock, FakeResponse, FakeSession,
)

FILE_BYTES = bytes(range(25))   # 3 chunks of 10, 10, 5 bytes


class ControllerTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.video_path = self.root / "lesson.mp4"
        self.video_path.write_bytes(FILE_BYTES)

        patcher = mock.patch(
            "uploader.core.upload_controller.extract_metadata",
            return_value=VideoMetadata(size=len(FILE_BYTES), duration=12.0, width=640, height=360),
        )
        self.extract_metadata = patcher.start()
        self.addCleanup(patcher.stop)

        self.sleeps = []
        self.successes = []
        self.statuses = []
        self.percentages = []

    def tearDown(self):
        self.tmpdir.cleanup()

    def make_controller(self, session, clock=None, **overrides):
        options = dict(chunk_size=10, chunk_max_retries=0, enable_resume=True,
                       generate_thumbnail=False)
        options.update(overrides)
        client = UploadApiClient(API_BASE, auth_token="secret-token", session=session)
        controller = ChunkedUploadController(
            "course-42", client, UploadConfig(self.root / "config.json"),
            on_success=self.successes.append,
            clock=clock or FakeClock(),
            sleep=self.sleeps.append,
            **options,
        )
        controller.on_status_changed = lambda job: self.statuses.append(job.status)
        controller.on_progress = lambda job: self.percentages.append(job.progress.percentage)
        return controller


class TestSuccessfulUpload(ControllerTestCase):

    def test_full_upload(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        controller.form.set("description", "First steps")

        job = controller.start()

        self.assertEqual(job.status, UploadStatus.COMPLETED)
        self.assertEqual(job.video_url, VIDEO_URL)
        self.assertEqual(job.upload_id, "up-1")
        self.assertTrue(all(c.uploaded for c in job.chunks))
        self.assertEqual(self.successes, [VIDEO_URL])
        self.assertEqual(self.statuses, [UploadStatus.UPLOADING, UploadStatus.PROCESSING,
                                         UploadStatus.COMPLETED])

        # Job is discarded and the form is back to defaults
        self.assertIsNone(controller.job)
        self.assertEqual(controller.form.title, "")
        self.assertIsNone(controller.form.file)

    def test_session_request(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        controller.start()

        init_calls = session.calls_to(UPLOAD_INIT_PATH)
        self.assertEqual(len(init_calls), 1)
        body = json.loads(init_calls[0]["data"])
        self.assertEqual(body, {"fileName": "lesson.mp4", "fileSize": 25, "courseId": "course-42"})
        self.assertEqual(init_calls[0]["headers"]["Authorization"], "Bearer secret-token")

    def test_chunk_requests_in_order(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        controller.start()

        calls = session.chunk_calls
        self.assertEqual(len(calls), 3)
        sent = b""
        for i, call in enumerate(calls):
            self.assertEqual(call["data"], {
                "upload_preset": "course-videos",
                "chunk_index": str(i),
                "total_chunks": "3",
                "upload_id": "up-1",
            })
            self.assertNotIn("headers", call)
            sent += call["files"]["file"][1]
        self.assertEqual(sent, FILE_BYTES)

    def test_completion_request(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        controller.form.update(tags="intro, basics", difficulty="advanced", privacy="unlisted")
        controller.start()

        complete_calls = session.calls_to(UPLOAD_COMPLETE_PATH)
        self.assertEqual(len(complete_calls), 1)
        payload = json.loads(complete_calls[0]["data"])
        self.assertEqual(payload["uploadId"], "up-1")
        self.assertEqual(payload["courseId"], "course-42")
        self.assertEqual(payload["title"], "lesson")
        self.assertEqual(payload["tags"], ["intro", "basics"])
        self.assertEqual(payload["difficulty"], "advanced")
        self.assertEqual(payload["privacy"], "unlisted")
        self.assertEqual(payload["quality"], "auto")

        # Completion is the last request
        self.assertTrue(session.calls[-1][0].endswith(UPLOAD_COMPLETE_PATH))

    def test_progress_monotonic_and_reaches_100(self):
        controller = self.make_controller(FakeSession())
        controller.select_file(self.video_path)
        controller.start()

        self.assertEqual(self.percentages, [40.0, 80.0, 100.0])
        self.assertEqual(self.percentages, sorted(self.percentages))

    def test_speed_and_remaining(self):
        snapshots = []
        controller = self.make_controller(FakeSession(), clock=FakeClock(step=2.0))
        controller.on_progress = lambda job: snapshots.append(
            (job.progress.uploaded, job.progress.speed, job.progress.remaining))
        controller.select_file(self.video_path)
        controller.start()

        # 10 bytes after 2s, 20 after 4s, 25 after 6s
        self.assertEqual(snapshots[0], (10, 5.0, 3.0))
        self.assertEqual(snapshots[1], (20, 5.0, 1.0))
        self.assertEqual(snapshots[2][0], 25)
        self.assertEqual(snapshots[2][2], 0.0)

    def test_zero_speed_reports_unknown_remaining(self):
        snapshots = []
        controller = self.make_controller(FakeSession(), clock=lambda: 0.0)
        controller.on_progress = lambda job: snapshots.append(
            (job.progress.speed, job.progress.remaining))
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.COMPLETED)
        self.assertEqual(snapshots[0][0], 0.0)
        self.assertTrue(math.isinf(snapshots[0][1]))

    def test_retry_then_success(self):
        session = FakeSession(chunk_results=[503, 200])
        controller = self.make_controller(session, chunk_max_retries=2, enable_resume=False)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.COMPLETED)
        self.assertEqual(job.chunks[0].attempts, 2)
        self.assertEqual(len(session.chunk_calls), 4)
        self.assertEqual(len(self.sleeps), 1)
        self.assertEqual([c["data"]["chunk_index"] for c in session.chunk_calls],
                         ["0", "0", "1", "2"])

    def test_metadata_failure_is_not_fatal(self):
        self.extract_metadata.side_effect = MetadataError("Failed to load video metadata")
        controller = self.make_controller(FakeSession())

        file = controller.select_file(self.video_path)
        self.assertEqual(file.name, "lesson.mp4")
        self.assertIsNone(controller.metadata)
        self.assertEqual(controller.metadata_error, "Failed to load video metadata")

        job = controller.start()
        self.assertEqual(job.status, UploadStatus.COMPLETED)


class TestRejectedBeforeNetwork(ControllerTestCase):

    def test_txt_file_rejected(self):
        notes = self.root / "notes.txt"
        notes.write_text("not a video")
        session = FakeSession()
        controller = self.make_controller(session)

        with self.assertRaises(ValidationError) as ctx:
            controller.select_file(notes)
        self.assertEqual(ctx.exception.code, ErrorCode.UNSUPPORTED_FORMAT)
        self.assertEqual(session.calls, [])
        self.extract_metadata.assert_not_called()

    def test_txt_file_set_directly_rejected_on_start(self):
        notes = self.root / "notes.txt"
        notes.write_text("not a video")
        session = FakeSession()
        controller = self.make_controller(session)
        controller.form.title = "Notes"
        controller.form.file = VideoFile.from_path(notes)

        with self.assertRaises(ValidationError):
            controller.start()
        self.assertEqual(session.calls, [])
        self.assertIsNone(controller.job)

    def test_oversized_file_rejected(self):
        session = FakeSession()
        controller = self.make_controller(session, max_file_size=10)
        with self.assertRaises(ValidationError) as ctx:
            controller.select_file(self.video_path)
        self.assertEqual(ctx.exception.code, ErrorCode.FILE_TOO_LARGE)
        self.assertEqual(session.calls, [])

    def test_missing_title(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        controller.form.set("title", "   ")

        with self.assertRaises(ValidationError):
            controller.start()
        self.assertEqual(session.calls, [])

    def test_missing_file(self):
        controller = self.make_controller(FakeSession())
        controller.form.set("title", "Intro")
        with self.assertRaises(ValidationError):
            controller.start()

    def test_empty_file(self):
        empty = self.root / "empty.mp4"
        empty.write_bytes(b"")
        session = FakeSession()
        controller = self.make_controller(session)
        controller.select_file(empty)
        with self.assertRaises(ValidationError):
            controller.start()
        self.assertEqual(session.calls, [])


class TestChunkFailures(ControllerTestCase):

    def test_failed_chunk_with_resume_continues(self):
        session = FakeSession(chunk_results=[200, 500, 200])
        controller = self.make_controller(session, enable_resume=True)
        controller.select_file(self.video_path)
        job = controller.start()

        # Chunk 1 left unmarked, chunk 2 still sent
        self.assertEqual([c.uploaded for c in job.chunks], [True, False, True])
        self.assertEqual([c["data"]["chunk_index"] for c in session.chunk_calls], ["0", "1", "2"])

        # Incomplete chunk set is not handed to the video service
        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.INCOMPLETE_UPLOAD)
        self.assertIn("chunks 1", job.error)
        self.assertEqual(session.calls_to(UPLOAD_COMPLETE_PATH), [])
        self.assertEqual(self.successes, [])

    def test_failed_chunk_without_resume_aborts(self):
        session = FakeSession(chunk_results=[200, 500])
        controller = self.make_controller(session, enable_resume=False)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.CHUNK_TRANSFER_FAILED)
        self.assertEqual(len(session.chunk_calls), 2)
        self.assertEqual(session.calls_to(UPLOAD_COMPLETE_PATH), [])
        self.assertEqual(self.statuses[-1], UploadStatus.ERROR)
        self.assertEqual(self.successes, [])

    def test_client_error_not_retried(self):
        session = FakeSession(chunk_results=[400])
        controller = self.make_controller(session, chunk_max_retries=3, enable_resume=False)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.error_code, ErrorCode.CHUNK_REJECTED)
        self.assertEqual(len(session.chunk_calls), 1)
        self.assertEqual(self.sleeps, [])

    def test_retries_exhausted(self):
        session = FakeSession(chunk_results=[500, 502, 503])
        controller = self.make_controller(session, chunk_max_retries=2, enable_resume=False)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.chunks[0].attempts, 3)
        self.assertEqual(len(self.sleeps), 2)
        self.assertLess(self.sleeps[0], self.sleeps[1])

    def test_network_error(self):
        session = FakeSession(chunk_results=[requests.exceptions.ConnectionError("reset")])
        controller = self.make_controller(session, enable_resume=False)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.NETWORK_TRANSIENT)


class TestHandshakeFailures(ControllerTestCase):

    def test_completion_failure(self):
        session = FakeSession(complete_response=FakeResponse(500, text="transcode failed"))
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.COMPLETION_FAILED)
        self.assertIn("500", job.error)
        self.assertEqual(self.successes, [])
        self.assertEqual(self.statuses, [UploadStatus.UPLOADING, UploadStatus.PROCESSING,
                                         UploadStatus.ERROR])
        # Form is kept so the user can try again
        self.assertEqual(controller.form.title, "lesson")

    def test_session_init_failure(self):
        session = FakeSession(init_response=FakeResponse(503, text="busy"))
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.SESSION_INIT_FAILED)
        self.assertEqual(session.chunk_calls, [])
        self.assertEqual(self.statuses, [UploadStatus.ERROR])

    def test_restart_after_error(self):
        session = FakeSession(complete_response=FakeResponse(500))
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        self.assertEqual(controller.start().status, UploadStatus.ERROR)

        session.complete_response = FakeResponse(200, {"video": {"url": VIDEO_URL}})
        self.assertEqual(controller.start().status, UploadStatus.COMPLETED)
        self.assertEqual(self.successes, [VIDEO_URL])

    def test_new_file_after_error_gets_its_own_title(self):
        other_path = self.root / "Week 2.mp4"
        other_path.write_bytes(FILE_BYTES)
        session = FakeSession(complete_response=FakeResponse(500))
        controller = self.make_controller(session)
        controller.select_file(self.video_path)
        self.assertEqual(controller.start().status, UploadStatus.ERROR)

        controller.select_file(other_path)
        self.assertEqual(controller.form.title, "Week 2")


class TestCancellation(ControllerTestCase):

    def test_cancel_between_chunks(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.on_progress = lambda job: controller.cancel()
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.CANCELLED)
        self.assertEqual(len(session.chunk_calls), 1)
        self.assertEqual(session.calls_to(UPLOAD_COMPLETE_PATH), [])
        self.assertIsNone(controller.form.file)

    def test_cancel_during_last_chunk(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.on_progress = (
            lambda job: controller.cancel() if job.progress.uploaded == job.progress.total else None
        )
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.status, UploadStatus.ERROR)
        self.assertEqual(job.error_code, ErrorCode.CANCELLED)
        self.assertEqual(len(session.chunk_calls), 3)
        self.assertEqual(session.calls_to(UPLOAD_COMPLETE_PATH), [])
        self.assertEqual(self.successes, [])

    def test_close_during_last_chunk(self):
        session = FakeSession()
        controller = self.make_controller(session)
        controller.on_progress = (
            lambda job: controller.close() if job.progress.uploaded == job.progress.total else None
        )
        controller.select_file(self.video_path)
        job = controller.start()

        self.assertEqual(job.error_code, ErrorCode.CANCELLED)
        self.assertEqual(session.calls_to(UPLOAD_COMPLETE_PATH), [])
        self.assertEqual(self.successes, [])

    def test_cancel_when_idle_resets_form(self):
        controller = self.make_controller(FakeSession())
        controller.select_file(self.video_path)
        controller.cancel()
        self.assertIsNone(controller.form.file)
        self.assertEqual(controller.form.title, "")

    def test_start_while_busy(self):
        controller = self.make_controller(FakeSession())
        controller.select_file(self.video_path)
        controller.job = UploadJob(file=controller.form.file, chunk_size=10,
                                   status=UploadStatus.UPLOADING)
        with self.assertRaises(RuntimeError):
            controller.start()
        with self.assertRaises(RuntimeError):
            controller.select_file(self.video_path)

    def test_close_discards_job(self):
        controller = self.make_controller(FakeSession(complete_response=FakeResponse(500)))
        controller.select_file(self.video_path)
        controller.start()
        controller.close()
        self.assertIsNone(controller.job)
        self.assertIsNone(controller.metadata)


class TestUploadApiClient(unittest.TestCase):
    """Response handling of the service client on its own."""

    def setUp(self):
        self.upload_session = UploadSession(upload_id="up-1", upload_url=UPLOAD_URL,
                                            upload_preset="p", cloud_name="c")
        self.chunk = UploadChunk(index=4, start=0, end=3)

    def test_init_missing_fields(self):
        session = FakeSession(init_response=FakeResponse(200, {"uploadId": "x"}))
        client = UploadApiClient(API_BASE, session=session)
        with self.assertRaises(SessionInitError):
            client.init_session("a.mp4", 3, "c1")

    def test_init_bad_json(self):
        session = FakeSession(init_response=FakeResponse(200, None, text="<html>"))
        client = UploadApiClient(API_BASE, session=session)
        with self.assertRaises(SessionInitError):
            client.init_session("a.mp4", 3, "c1")

    def test_no_auth_header_without_token(self):
        session = FakeSession()
        client = UploadApiClient(API_BASE + "/", session=session)
        client.init_session("a.mp4", 3, "c1")
        url, kwargs = session.calls[0]
        self.assertEqual(url, API_BASE + UPLOAD_INIT_PATH)
        self.assertNotIn("Authorization", kwargs["headers"])

    def test_chunk_success_any_2xx(self):
        session = FakeSession(chunk_results=[201, 204])
        client = UploadApiClient(API_BASE, session=session)
        client.upload_chunk(self.upload_session, self.chunk, b"abc", 5)
        client.upload_chunk(self.upload_session, self.chunk, b"abc", 5)
        self.assertEqual(len(session.chunk_calls), 2)

    def test_chunk_timeout(self):
        session = FakeSession(chunk_results=[requests.exceptions.Timeout("slow")])
        client = UploadApiClient(API_BASE, session=session)
        with self.assertRaises(ChunkTransferError) as ctx:
            client.upload_chunk(self.upload_session, self.chunk, b"abc", 5)
        self.assertEqual(ctx.exception.code, ErrorCode.REQUEST_TIMEOUT)
        self.assertEqual(ctx.exception.chunk_index, 4)
        self.assertTrue(ctx.exception.retryable)

    def test_chunk_server_error(self):
        session = FakeSession(chunk_results=[502])
        client = UploadApiClient(API_BASE, session=session)
        with self.assertRaises(ChunkTransferError) as ctx:
            client.upload_chunk(self.upload_session, self.chunk, b"abc", 5)
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertTrue(ctx.exception.retryable)

    def test_complete_without_video_url(self):
        session = FakeSession(complete_response=FakeResponse(200, {"status": "queued"}))
        client = UploadApiClient(API_BASE, session=session)
        self.assertIsNone(client.complete_upload({"uploadId": "up-1"}))

    def test_complete_bad_json(self):
        session = FakeSession(complete_response=FakeResponse(200, None))
        client = UploadApiClient(API_BASE, session=session)
        with self.assertRaises(CompletionError):
            client.complete_upload({"uploadId": "up-1"})


if __name__ == "__main__":
    unittest.main()
