#!/usr/bin/env python3
"""
course-video-uploader v1.0.0: command-line entry point.
Uploads a course video to the LMS backend in resumable chunks.
"""

import logging
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer

from uploader.core.constants import (
    APP_NAME, APP_VERSION, LOG_FILE, LOG_FORMAT, UploadStatus,
)
from uploader.core.config import UploadConfig
from uploader.core.error_codes import MetadataError, ValidationError
from uploader.core.file_validation import validate_file
from uploader.core.formatting import (
    format_duration, format_file_size, format_progress_line,
)
from uploader.core.models import VideoFile, VideoMetadata
from uploader.core.diagnostics import get_diagnostics
from uploader.core.security_utils import redact_token
from uploader.core.upload_client import UploadApiClient
from uploader.core.upload_controller import ChunkedUploadController
from uploader.core.video_metadata import extract_metadata

logger = logging.getLogger("course-video-uploader")

TOKEN_ENV_VAR = "COURSE_UPLOAD_TOKEN"

cli = typer.Typer(add_completion=False, help="Upload course videos in resumable chunks")


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Privacy(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    UNLISTED = "unlisted"


class Quality(str, Enum):
    AUTO = "auto"
    HD_1080 = "1080p"
    HD_720 = "720p"
    SD_480 = "480p"
    SD_360 = "360p"


class OutputFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    MOV = "mov"
    AVI = "avi"


def configure_logging(verbose: bool = False, log_file: Path = LOG_FILE):
    """File logging always; console logging only with --verbose."""
    handlers: list[logging.Handler] = []
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    except OSError as e:
        print(f"Warning: cannot write log file {log_file}: {e}", file=sys.stderr)
    if verbose:
        handlers.append(logging.StreamHandler(sys.stderr))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _load_config(config_path: Optional[Path]) -> UploadConfig:
    return UploadConfig(config_path) if config_path else UploadConfig()


@cli.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Video file to upload"),
    course_id: str = typer.Option(..., "--course-id", "-c", help="Course the video belongs to"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Defaults to the file name"),
    description: str = typer.Option("", "--description", "-d"),
    position: int = typer.Option(0, "--position", help="Video position in course"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Repeat for several tags"),
    difficulty: Difficulty = typer.Option(Difficulty.BEGINNER, "--difficulty"),
    privacy: Privacy = typer.Option(Privacy.PUBLIC, "--privacy"),
    quality: Quality = typer.Option(Quality.AUTO, "--quality"),
    output_format: OutputFormat = typer.Option(OutputFormat.MP4, "--format"),
    preview: bool = typer.Option(False, "--preview", help="Free preview lesson"),
    enable_downloads: bool = typer.Option(False, "--downloads", help="Allow downloads"),
    watermark: bool = typer.Option(False, "--watermark", help="Add the course watermark"),
    subtitles: bool = typer.Option(False, "--subtitles", help="Generate subtitles"),
    no_comments: bool = typer.Option(False, "--no-comments", help="Disable comments"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="LMS base URL"),
    token: Optional[str] = typer.Option(None, "--token", envvar=TOKEN_ENV_VAR,
                                        help="Auth token for the upload services"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Chunk size in bytes"),
    no_resume: bool = typer.Option(False, "--no-resume",
                                   help="Abort on the first failed chunk"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Upload PATH to the course and print the resulting video URL."""
    configure_logging(verbose)
    logger.info("%s v%s upload started at %s",
                APP_NAME, APP_VERSION, datetime.now().isoformat())

    config = _load_config(config_path)
    config.override(api_base_url=api_url, chunk_size_bytes=chunk_size)
    if no_resume:
        config.override(enable_resume=False)
    logger.info("API: %s, token: %s", config.api_base_url, redact_token(token))

    client = UploadApiClient(config.api_base_url, auth_token=token,
                             timeout=config.request_timeout)
    # No thumbnail: a terminal cannot show it
    controller = ChunkedUploadController(course_id, client, config, generate_thumbnail=False)
    controller.on_progress = lambda job: typer.echo(format_progress_line(job))
    controller.on_status_changed = _echo_status

    try:
        file = controller.select_file(path)
        typer.echo(f"File selected: {file.name} ({format_file_size(file.size)})")
        if controller.metadata:
            _echo_metadata(controller.metadata)
        if controller.metadata_error:
            typer.echo(f"Warning: {controller.metadata_error}", err=True)

        # Options go on after selection, which derives the default title
        controller.form.update(
            title=title, description=description, position=position, tags=tag or [],
            difficulty=difficulty.value, privacy=privacy.value, quality=quality.value,
            format=output_format.value, is_preview=preview,
            enable_downloads=enable_downloads, enable_comments=not no_comments,
            enable_watermark=watermark, enable_subtitles=subtitles,
        )

        job = controller.start()
    except ValidationError as e:
        typer.echo(f"Invalid file: {e.message}", err=True)
        raise typer.Exit(code=2)
    except KeyboardInterrupt:
        controller.close()
        typer.echo("Upload abandoned.", err=True)
        raise typer.Exit(code=130)
    finally:
        client.close()

    if job.status != UploadStatus.COMPLETED:
        typer.echo(f"Upload failed: {job.error}. Please try again.", err=True)
        raise typer.Exit(code=1)

    typer.echo("Upload successful: Video uploaded and processed successfully")
    if job.video_url:
        typer.echo(job.video_url)


def _echo_metadata(metadata: VideoMetadata):
    if metadata.duration is not None:
        typer.echo(f"Duration: {format_duration(metadata.duration)}")
    if metadata.width and metadata.height:
        typer.echo(f"Resolution: {metadata.width}x{metadata.height}")
    if metadata.bitrate:
        typer.echo(f"Bitrate: {metadata.bitrate // 1000} kbps")


def _echo_status(job):
    if job.status in (UploadStatus.PROCESSING, UploadStatus.ERROR):
        typer.echo(format_progress_line(job))


@cli.command()
def inspect(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config JSON file"),
) -> None:
    """Validate PATH and show its video metadata without uploading."""
    configure_logging()
    config = _load_config(config_path)
    file = VideoFile.from_path(path)

    result = validate_file(file, config.max_file_size, config.allowed_formats)
    typer.echo(f"File: {file.name} ({format_file_size(file.size)}, {file.media_type})")
    if not result.valid:
        typer.echo(f"Invalid: {result.error}")
        raise typer.Exit(code=2)
    typer.echo("Valid: yes")

    try:
        metadata = extract_metadata(file, with_thumbnail=False)
    except MetadataError as e:
        typer.echo(f"Metadata unavailable: {e.message}")
        return
    _echo_metadata(metadata)


@cli.command()
def diagnostics() -> None:
    """Show tool versions and file locations."""
    for key, value in get_diagnostics().items():
        typer.echo(f"{key}: {value}")


def main():
    cli()


if __name__ == "__main__":
    main()
