"""Low-level GLB envelope handling: header checks, chunk bounds and writing."""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from io import BytesIO

from .errors import (
    ChunkExceedsFileError,
    FileTooSmallError,
    InvalidMagicError,
    NotBinChunkError,
    NotJsonChunkError,
    UnsupportedVersionError,
)

log = logging.getLogger(__name__)


GLB_MAGIC = 0x46546C67  # b"glTF"
GLB_VERSION_SUPPORTED = 2

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"

HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8
JSON_CHUNK_START = HEADER_SIZE + CHUNK_HEADER_SIZE

JSON_PAD_BYTE = b" "
BIN_PAD_BYTE = b"\x00"


def padded_length(length: int) -> int:
    return (length + 3) // 4 * 4


@dataclass(frozen=True)
class ChunkInfo:
    json_length: int
    json_start: int
    json_end: int
    bin_chunk_offset: int

    @property
    def bin_data_offset(self) -> int:
        return self.bin_chunk_offset + CHUNK_HEADER_SIZE


def validate_header(data: bytes) -> None:
    if len(data) < HEADER_SIZE:
        raise FileTooSmallError("Invalid GLB: file too small")

    magic, version = struct.unpack_from("<II", data, 0)
    if magic != GLB_MAGIC:
        raise InvalidMagicError("Invalid GLB: bad magic")
    if version != GLB_VERSION_SUPPORTED:
        raise UnsupportedVersionError(f"Unsupported GLB version: {version} (expected {GLB_VERSION_SUPPORTED})")


def validate_json_chunk(data: bytes, json_length: int) -> None:
    if len(data) < JSON_CHUNK_START:
        raise FileTooSmallError("Invalid GLB: truncated JSON chunk header")

    (chunk_type,) = struct.unpack_from("<I", data, 16)
    if chunk_type != CHUNK_TYPE_JSON:
        raise NotJsonChunkError("Invalid GLB: first chunk is not JSON")
    if JSON_CHUNK_START + json_length > len(data):
        raise ChunkExceedsFileError("Invalid GLB: JSON chunk extends beyond file size")


def validate_binary_chunk(data: bytes, offset: int) -> bool:
    if len(data) - offset < CHUNK_HEADER_SIZE:
        return False

    (chunk_type,) = struct.unpack_from("<I", data, offset + 4)
    if chunk_type != CHUNK_TYPE_BIN:
        raise NotBinChunkError("Invalid GLB: second chunk is not BIN")
    return True


def locate_chunks(data: bytes) -> ChunkInfo:
    if len(data) < JSON_CHUNK_START:
        raise FileTooSmallError("Invalid GLB: truncated JSON chunk header")
    (json_length,) = struct.unpack_from("<I", data, HEADER_SIZE)
    json_end = JSON_CHUNK_START + json_length
    return ChunkInfo(
        json_length=json_length,
        json_start=JSON_CHUNK_START,
        json_end=json_end,
        bin_chunk_offset=json_end,
    )


def read_chunks(data: bytes) -> ChunkInfo:
    """Validate the header and JSON chunk, returning the chunk layout."""
    validate_header(data)
    chunks = locate_chunks(data)
    validate_json_chunk(data, chunks.json_length)
    log.debug("GLB size %d bytes, JSON chunk %d bytes", len(data), chunks.json_length)
    return chunks


def read_bin_chunk(data: bytes, chunks: ChunkInfo) -> bytes | None:
    """Return the BIN chunk payload, clamped to the end of the file.

    An overlong declared length is tolerated; buffers that reach past the
    available bytes are rejected when they are sliced.
    """
    if not validate_binary_chunk(data, chunks.bin_chunk_offset):
        return None
    (length,) = struct.unpack_from("<I", data, chunks.bin_chunk_offset)
    end = chunks.bin_data_offset + length
    if end > len(data):
        log.warning("BIN chunk declares %d bytes but only %d are present", length, len(data) - chunks.bin_data_offset)
        end = len(data)
    return data[chunks.bin_data_offset : end]


class GlbWriter:
    """Accumulates chunks and emits a complete GLB with a consistent header."""

    def __init__(self) -> None:
        self._body = BytesIO()

    def write_padded_chunk(self, chunk_type: int, payload: bytes, pad_byte: bytes) -> None:
        padding = padded_length(len(payload)) - len(payload)
        self._body.write(struct.pack("<II", len(payload) + padding, chunk_type))
        self._body.write(payload)
        if padding:
            self._body.write(pad_byte * padding)

    def finish(self) -> bytes:
        body = self._body.getvalue()
        total_length = HEADER_SIZE + len(body)
        header = struct.pack("<III", GLB_MAGIC, GLB_VERSION_SUPPORTED, total_length)
        return header + body
