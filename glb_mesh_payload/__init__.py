"""Attach opaque per-mesh payloads to GLB (binary glTF 2.0) containers."""
from __future__ import annotations

from .errors import (
    BufferIndexNotFoundError,
    BufferOutOfBoundsError,
    ChunkExceedsFileError,
    EncodingError,
    ExternalUriUnsupportedError,
    FileTooSmallError,
    GlbError,
    InvalidMagicError,
    MalformedDocumentError,
    MissingBinChunkError,
    NotBinChunkError,
    NotJsonChunkError,
    StructuralError,
    UnsupportedReferenceError,
    UnsupportedVersionError,
)
from .manager import PayloadInfo, Remove, Upsert, apply, associate, get, has_payload, list_payloads
from .payload import DEFAULT_SETTINGS, decode_payload, encode_payload, payload_operation

__version__ = "0.1.0"
