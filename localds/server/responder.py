"""Streaming of dataset files, whole or as a single byte range."""

from __future__ import annotations

import logging
import os
import re
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    '.json': 'application/json',
    '.jsonl': 'application/jsonl',
    '.parquet': 'application/octet-stream',
    '.mp4': 'video/mp4',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
}
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

_RANGE_RE = re.compile(r'bytes=(\d+)-(\d*)')


class RangeNotSatisfiable(Exception):
    """The requested byte range does not overlap the file."""

    def __init__(self, header: str, file_size: int):
        super().__init__(f'Range {header!r} not satisfiable for {file_size} bytes')
        self.header = header
        self.file_size = file_size


class FileReadError(Exception):
    """A resolved file could not be read."""


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, file_size: int) -> str:
        return f'bytes {self.start}-{self.end}/{file_size}'


def content_type(path: str | os.PathLike) -> str:
    ext = os.path.splitext(os.fspath(path))[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def parse_range(header: str | None, file_size: int) -> ByteRange | None:
    """Parse a `bytes=<start>-<end?>` header.

    Returns None when there is no header or it has a different shape, in which
    case the whole file is served. An `end` past the last byte is clamped.

    Raises:
        RangeNotSatisfiable: `start` is at or beyond the end of the file, or `end < start`.
    """
    if not header:
        return None
    match = _RANGE_RE.search(header)
    if match is None:
        return None

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else file_size - 1
    if start >= file_size or end < start:
        raise RangeNotSatisfiable(header, file_size)
    return ByteRange(start, min(end, file_size - 1))


def _iter_file_range(source: BinaryIO, start: int, length: int, chunk_size: int) -> Iterator[bytes]:
    with source:
        source.seek(start)
        remaining = length
        while remaining > 0:
            chunk = source.read(min(chunk_size, remaining))
            if not chunk:
                # Headers already promised `length` bytes; a short body must not look complete.
                raise OSError(f'Unexpected end of file with {remaining} bytes still to send')
            remaining -= len(chunk)
            yield chunk


def serve_file(
    path: str | os.PathLike,
    range_header: str | None = None,
    *,
    cache_max_age: int = 3600,
    chunk_size: int = 64 * 1024,
) -> StreamingResponse:
    """Build a streaming response for an already validated file.

    The file is stat-ed and opened before the response is created, so failures
    that can be detected up front surface as `FileReadError` instead of a broken stream.

    Raises:
        FileReadError: The file cannot be stat-ed or opened, or is not a regular file.
        RangeNotSatisfiable: See `parse_range`.
    """
    try:
        st = os.stat(path)
    except OSError as e:
        raise FileReadError(f'Cannot stat {path}') from e
    if not stat.S_ISREG(st.st_mode):
        raise FileReadError(f'{path} is not a regular file')

    file_size = st.st_size
    byte_range = parse_range(range_header, file_size)

    try:
        source = open(path, 'rb')
    except OSError as e:
        raise FileReadError(f'Cannot open {path}') from e

    headers = {'Accept-Ranges': 'bytes', 'Cache-Control': f'public, max-age={cache_max_age}'}
    if byte_range is None:
        headers['Content-Length'] = str(file_size)
        body = _iter_file_range(source, 0, file_size, chunk_size)
        status_code = 200
    else:
        headers['Content-Range'] = byte_range.content_range(file_size)
        headers['Content-Length'] = str(byte_range.length)
        body = _iter_file_range(source, byte_range.start, byte_range.length, chunk_size)
        status_code = 206
        logger.debug(f'Serving {headers["Content-Range"]} of {path}')

    return StreamingResponse(body, status_code=status_code, media_type=content_type(path), headers=headers)
