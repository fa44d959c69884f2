from __future__ import annotations

import logging

from .buffers import bin_regions, read_bin_buffers
from .container import (
    BIN_PAD_BYTE,
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    JSON_PAD_BYTE,
    ChunkInfo,
    GlbWriter,
    padded_length,
    read_bin_chunk,
)
from .document import BufferDescriptor, SceneDocument, encode_document

log = logging.getLogger(__name__)


def rebuild_json_only(data: bytes, chunks: ChunkInfo, doc: SceneDocument) -> bytes:
    """Re-encode the JSON chunk and carry the existing BIN chunk over unchanged."""
    bin_chunk = read_bin_chunk(data, chunks)

    writer = GlbWriter()
    writer.write_padded_chunk(CHUNK_TYPE_JSON, encode_document(doc), JSON_PAD_BYTE)
    if bin_chunk is not None:
        writer.write_padded_chunk(CHUNK_TYPE_BIN, bin_chunk, BIN_PAD_BYTE)
    return writer.finish()


def _set_bin_buffer(doc: SceneDocument, buffer_index: int, byte_length: int) -> None:
    descriptor = BufferDescriptor(byte_length=byte_length)
    if buffer_index == len(doc.buffers):
        doc.buffers.append(descriptor)
    elif 0 <= buffer_index < len(doc.buffers):
        doc.buffers[buffer_index] = descriptor
    else:
        raise IndexError(f"Buffer index {buffer_index} is not writable ({len(doc.buffers)} buffers)")


def rebuild_with_buffer(
    data: bytes,
    chunks: ChunkInfo,
    doc: SceneDocument,
    buffer_index: int,
    payload: bytes,
) -> bytes:
    """Rebuild the container with ``payload`` stored as buffer ``buffer_index``.

    Existing BIN-resident buffers are read with the layout of the incoming
    document, then every BIN-resident buffer is written back in document
    order. The target buffer keeps its position; a new buffer lands last.
    """
    existing = read_bin_buffers(doc, data, chunks, exclude=buffer_index)

    _set_bin_buffer(doc, buffer_index, len(payload))

    bin_payload = bytearray()
    for index, _offset, length in bin_regions(doc.buffers):
        region = payload if index == buffer_index else existing[index]
        bin_payload.extend(region)
        bin_payload.extend(BIN_PAD_BYTE * (padded_length(length) - length))

    json_bytes = encode_document(doc)
    writer = GlbWriter()
    writer.write_padded_chunk(CHUNK_TYPE_JSON, json_bytes, JSON_PAD_BYTE)
    writer.write_padded_chunk(CHUNK_TYPE_BIN, bytes(bin_payload), BIN_PAD_BYTE)
    result = writer.finish()

    log.debug(
        "Rebuilt GLB: %d bytes total, JSON chunk %d bytes, BIN chunk %d bytes",
        len(result),
        padded_length(len(json_bytes)),
        len(bin_payload),
    )
    return result
