from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterator
from urllib.parse import unquote_to_bytes

from .container import ChunkInfo, padded_length, read_bin_chunk
from .document import BufferDescriptor, SceneDocument
from .errors import (
    BufferIndexNotFoundError,
    BufferOutOfBoundsError,
    ExternalUriUnsupportedError,
    MalformedDocumentError,
    MissingBinChunkError,
)

log = logging.getLogger(__name__)


def is_data_uri(uri: str) -> bool:
    return uri.startswith("data:")


def decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep:
        raise MalformedDocumentError("Invalid data URI: missing ',' separator")
    if header.endswith(";base64"):
        # tolerate stripped "=" padding and wrapped lines
        payload = "".join(payload.split())
        payload += "=" * (-len(payload) % 4)
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise MalformedDocumentError(f"Invalid base64 in data URI: {exc}") from exc
    return unquote_to_bytes(payload)


def bin_regions(buffers: list[BufferDescriptor]) -> Iterator[tuple[int, int, int]]:
    """Yield ``(buffer_index, offset, byte_length)`` for buffers stored in BIN.

    Offsets are relative to the start of the BIN chunk payload. Every region
    starts on a 4-byte boundary, so each offset depends on the padded lengths
    of all preceding BIN-resident buffers.
    """
    offset = 0
    for index, buffer in enumerate(buffers):
        if not buffer.in_bin_chunk:
            continue
        yield index, offset, buffer.byte_length
        offset += padded_length(buffer.byte_length)


def _slice_region(bin_chunk: bytes, index: int, offset: int, length: int) -> bytes:
    if offset + length > len(bin_chunk):
        raise BufferOutOfBoundsError(
            f"Buffer {index} extends beyond BIN chunk ({offset + length} > {len(bin_chunk)})"
        )
    return bin_chunk[offset : offset + length]


def read_bin_buffers(
    doc: SceneDocument,
    data: bytes,
    chunks: ChunkInfo,
    exclude: int | None = None,
) -> dict[int, bytes]:
    """Read the bytes of every BIN-resident buffer, keyed by buffer index.

    The buffer at ``exclude`` is neither read nor bounds-checked.
    """
    regions = [region for region in bin_regions(doc.buffers) if region[0] != exclude]
    if not regions:
        return {}

    bin_chunk = read_bin_chunk(data, chunks)
    if bin_chunk is None:
        raise MissingBinChunkError("Invalid GLB: buffers reference a missing BIN chunk")
    return {index: _slice_region(bin_chunk, index, offset, length) for index, offset, length in regions}


def extract_buffer(doc: SceneDocument, data: bytes, chunks: ChunkInfo, buffer_index: int) -> bytes:
    if not 0 <= buffer_index < len(doc.buffers):
        raise BufferIndexNotFoundError(f"Buffer index {buffer_index} exceeds buffer count {len(doc.buffers)}")

    buffer = doc.buffers[buffer_index]
    if buffer.uri:
        if not is_data_uri(buffer.uri):
            raise ExternalUriUnsupportedError(f"External URI buffers are not supported (buffer {buffer_index})")
        return decode_data_uri(buffer.uri)

    bin_chunk = read_bin_chunk(data, chunks)
    if bin_chunk is None:
        raise MissingBinChunkError(f"No BIN chunk found at offset {chunks.bin_chunk_offset}")

    offset, length = next((o, n) for i, o, n in bin_regions(doc.buffers) if i == buffer_index)
    log.debug("Extracting buffer %d at BIN offset %d (%d bytes)", buffer_index, offset, length)
    return _slice_region(bin_chunk, buffer_index, offset, length)
