from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import MalformedDocumentError

log = logging.getLogger(__name__)


MESH_BINARY_EXTENSION = "BLORK_mesh_binary_data"
ASSOCIATIONS_KEY = "meshBinaryAssociations"
MESH_INDEX_KEY = "meshIndex"
BUFFER_INDEX_KEY = "bufferIndex"
LEGACY_BUFFER_INDEX_KEY = "binaryData"


@dataclass
class BufferDescriptor:
    byte_length: int | None = None
    uri: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def in_bin_chunk(self) -> bool:
        # an empty uri means the bytes live in BIN
        return not self.uri

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.extra)
        if self.uri is not None:
            out["uri"] = self.uri
        if self.byte_length is not None:
            out["byteLength"] = self.byte_length
        return out


@dataclass
class MeshBinaryAssociation:
    mesh_index: int
    buffer_index: int

    def to_dict(self) -> dict[str, Any]:
        return {MESH_INDEX_KEY: self.mesh_index, BUFFER_INDEX_KEY: self.buffer_index}


@dataclass
class MeshBinaryExtension:
    associations: list[MeshBinaryAssociation] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.extra)
        out[ASSOCIATIONS_KEY] = [assoc.to_dict() for assoc in self.associations]
        return out


@dataclass
class SceneDocument:
    buffers: list[BufferDescriptor] = field(default_factory=list)
    mesh_binary: MeshBinaryExtension | None = None
    extensions: dict[str, Any] = field(default_factory=dict)
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.fields)
        if self.buffers:
            out["buffers"] = [buffer.to_dict() for buffer in self.buffers]
        extensions = dict(self.extensions)
        if self.mesh_binary is not None:
            extensions[MESH_BINARY_EXTENSION] = self.mesh_binary.to_dict()
        if extensions:
            out["extensions"] = extensions
        return out


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _parse_buffer(index: int, value: Any) -> BufferDescriptor:
    if not isinstance(value, dict):
        raise MalformedDocumentError(f"buffers[{index}] is not an object")
    extra = {k: v for k, v in value.items() if k not in ("uri", "byteLength")}

    uri = value.get("uri")
    if uri is not None and not isinstance(uri, str):
        raise MalformedDocumentError(f"buffers[{index}].uri must be a string")

    byte_length = value.get("byteLength")
    if uri and byte_length is None:
        return BufferDescriptor(uri=uri, extra=extra)
    if not _is_index(byte_length):
        raise MalformedDocumentError(f"buffers[{index}].byteLength missing/invalid")

    return BufferDescriptor(byte_length=byte_length, uri=uri, extra=extra)


def _parse_association(index: int, value: Any) -> MeshBinaryAssociation:
    if not isinstance(value, dict):
        raise MalformedDocumentError(f"{ASSOCIATIONS_KEY}[{index}] is not an object")
    mesh_index = value.get(MESH_INDEX_KEY)
    buffer_index = value.get(BUFFER_INDEX_KEY, value.get(LEGACY_BUFFER_INDEX_KEY))
    if not _is_index(mesh_index):
        raise MalformedDocumentError(f"{ASSOCIATIONS_KEY}[{index}].{MESH_INDEX_KEY} missing/invalid")
    if not _is_index(buffer_index):
        raise MalformedDocumentError(f"{ASSOCIATIONS_KEY}[{index}].{BUFFER_INDEX_KEY} missing/invalid")
    return MeshBinaryAssociation(mesh_index=mesh_index, buffer_index=buffer_index)


def _parse_mesh_binary(value: Any) -> MeshBinaryExtension:
    if not isinstance(value, dict):
        raise MalformedDocumentError(f"extensions.{MESH_BINARY_EXTENSION} is not an object")
    raw_associations = value.get(ASSOCIATIONS_KEY, [])
    if not isinstance(raw_associations, list):
        raise MalformedDocumentError(f"{ASSOCIATIONS_KEY} is not a list")
    extra = {k: v for k, v in value.items() if k != ASSOCIATIONS_KEY}
    associations = [_parse_association(i, item) for i, item in enumerate(raw_associations)]
    return MeshBinaryExtension(associations=associations, extra=extra)


def document_from_dict(gltf: dict[str, Any]) -> SceneDocument:
    fields = {k: v for k, v in gltf.items() if k not in ("buffers", "extensions")}

    raw_buffers = gltf.get("buffers", [])
    if not isinstance(raw_buffers, list):
        raise MalformedDocumentError("buffers is not a list")
    buffers = [_parse_buffer(i, item) for i, item in enumerate(raw_buffers)]

    raw_extensions = gltf.get("extensions", {})
    if not isinstance(raw_extensions, dict):
        raise MalformedDocumentError("extensions is not an object")
    extensions = dict(raw_extensions)
    mesh_binary = None
    if MESH_BINARY_EXTENSION in extensions:
        mesh_binary = _parse_mesh_binary(extensions.pop(MESH_BINARY_EXTENSION))

    return SceneDocument(buffers=buffers, mesh_binary=mesh_binary, extensions=extensions, fields=fields)


def decode_document(raw: bytes) -> SceneDocument:
    try:
        gltf = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedDocumentError(f"Invalid GLB JSON chunk: {exc}") from exc

    if not isinstance(gltf, dict):
        raise MalformedDocumentError("Invalid GLB: JSON root is not an object")

    doc = document_from_dict(gltf)
    log.debug(
        "Decoded scene description: %d buffers, %d associations",
        len(doc.buffers),
        len(doc.mesh_binary.associations) if doc.mesh_binary else 0,
    )
    return doc


def encode_document(doc: SceneDocument) -> bytes:
    return json.dumps(doc.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
