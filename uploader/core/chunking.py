"""
Byte-range chunking for uploads.
Chunks are contiguous, non-overlapping and cover the whole file.
"""

import logging
from typing import BinaryIO

from uploader.core.models import UploadChunk

logger = logging.getLogger(__name__)


def create_chunk_manifest(file_size: int, chunk_size: int) -> list[UploadChunk]:
    """
    Partition [0, file_size) into chunks of chunk_size bytes.
    The final chunk may be shorter. A zero-byte file yields no chunks.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must not be negative, got {file_size}")

    chunks = []
    idx = 0
    start = 0

    while start < file_size:
        end = min(start + chunk_size, file_size)
        chunks.append(UploadChunk(index=idx, start=start, end=end))
        idx += 1
        start = end

    logger.debug("Partitioned %d bytes into %d chunks of %d", file_size, len(chunks), chunk_size)
    return chunks


def read_chunk(handle: BinaryIO, chunk: UploadChunk) -> bytes:
    """Read exactly the chunk's byte range from an open binary file."""
    handle.seek(chunk.start)
    data = handle.read(chunk.size)
    if len(data) != chunk.size:
        raise IOError(
            f"Short read for chunk {chunk.index}: expected {chunk.size} bytes, got {len(data)}"
        )
    return data


def missing_chunks(chunks: list[UploadChunk]) -> list[UploadChunk]:
    """Chunks not yet acknowledged by the server."""
    return [c for c in chunks if not c.uploaded]
