"""Attach, read and remove per-mesh payloads in a GLB container.

All functions take the container as ``bytes`` and never modify it; mutating
calls return a complete new container which the caller keeps as the new
source of truth.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .associations import find_association, is_removal, iter_associations, remove_association, upsert_association
from .buffers import extract_buffer
from .container import ChunkInfo, read_chunks
from .document import MeshBinaryAssociation, SceneDocument, decode_document
from .rebuild import rebuild_json_only, rebuild_with_buffer

log = logging.getLogger(__name__)

MAX_MESH_INDEX = 0xFFFFFFFF


@dataclass(frozen=True)
class Upsert:
    payload: bytes

    def __post_init__(self) -> None:
        if is_removal(self.payload):
            raise ValueError("Upsert requires a non-empty payload; use Remove() to detach")


@dataclass(frozen=True)
class Remove:
    pass


Operation = Union[Upsert, Remove]


@dataclass(frozen=True)
class PayloadInfo:
    mesh_index: int
    buffer_index: int
    byte_length: int | None


def _check_mesh_index(mesh_index: int) -> None:
    if not isinstance(mesh_index, int) or isinstance(mesh_index, bool):
        raise ValueError(f"mesh_index must be an int, got {type(mesh_index).__name__}")
    if not 0 <= mesh_index <= MAX_MESH_INDEX:
        raise ValueError(f"mesh_index out of range: {mesh_index}")


def _load(container: bytes) -> tuple[ChunkInfo, SceneDocument]:
    chunks = read_chunks(container)
    doc = decode_document(container[chunks.json_start : chunks.json_end])
    return chunks, doc


def apply(container: bytes, mesh_index: int, operation: Operation) -> bytes:
    _check_mesh_index(mesh_index)
    container = bytes(container)
    chunks, doc = _load(container)

    if isinstance(operation, Remove):
        if not remove_association(doc, mesh_index):
            log.debug("Mesh %d has no payload, nothing to remove", mesh_index)
            return container
        log.debug("Removing payload for mesh %d", mesh_index)
        return rebuild_json_only(container, chunks, doc)

    if not isinstance(operation, Upsert):
        raise TypeError(f"Unsupported operation: {operation!r}")

    log.debug("Associating %d bytes with mesh %d", len(operation.payload), mesh_index)
    buffer_index = upsert_association(doc, mesh_index)
    return rebuild_with_buffer(container, chunks, doc, buffer_index, bytes(operation.payload))


def associate(container: bytes, mesh_index: int, payload: bytes) -> bytes:
    """Attach ``payload`` to ``mesh_index``; an empty payload removes it."""
    operation: Operation = Remove() if is_removal(payload) else Upsert(bytes(payload))
    return apply(container, mesh_index, operation)


def _lookup(doc: SceneDocument, mesh_index: int) -> MeshBinaryAssociation | None:
    assoc = find_association(doc, mesh_index)
    if assoc is None:
        return None
    if assoc.buffer_index >= len(doc.buffers):
        log.debug("Buffer %d not found for mesh %d", assoc.buffer_index, mesh_index)
        return None
    return assoc


def get(container: bytes, mesh_index: int) -> bytes | None:
    _check_mesh_index(mesh_index)
    container = bytes(container)
    chunks, doc = _load(container)

    assoc = _lookup(doc, mesh_index)
    if assoc is None:
        return None
    return extract_buffer(doc, container, chunks, assoc.buffer_index)


def has_payload(container: bytes, mesh_index: int) -> bool:
    _check_mesh_index(mesh_index)
    _, doc = _load(bytes(container))
    return _lookup(doc, mesh_index) is not None


def list_payloads(container: bytes) -> list[PayloadInfo]:
    _, doc = _load(bytes(container))
    infos = []
    for assoc in iter_associations(doc):
        if assoc.buffer_index >= len(doc.buffers):
            continue
        infos.append(
            PayloadInfo(
                mesh_index=assoc.mesh_index,
                buffer_index=assoc.buffer_index,
                byte_length=doc.buffers[assoc.buffer_index].byte_length,
            )
        )
    return infos
