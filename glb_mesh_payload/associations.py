from __future__ import annotations

import logging
from typing import Iterator

from .document import MeshBinaryAssociation, MeshBinaryExtension, SceneDocument

log = logging.getLogger(__name__)


def is_removal(payload: bytes) -> bool:
    return len(payload) == 0


def ensure_extension(doc: SceneDocument) -> MeshBinaryExtension:
    if doc.mesh_binary is None:
        doc.mesh_binary = MeshBinaryExtension()
    return doc.mesh_binary


def iter_associations(doc: SceneDocument) -> Iterator[MeshBinaryAssociation]:
    if doc.mesh_binary is None:
        return
    seen: set[int] = set()
    for assoc in doc.mesh_binary.associations:
        # first entry wins, later duplicates are unreachable
        if assoc.mesh_index in seen:
            continue
        seen.add(assoc.mesh_index)
        yield assoc


def find_association(doc: SceneDocument, mesh_index: int) -> MeshBinaryAssociation | None:
    if doc.mesh_binary is None:
        return None
    for assoc in doc.mesh_binary.associations:
        if assoc.mesh_index == mesh_index:
            return assoc
    return None


def remove_association(doc: SceneDocument, mesh_index: int) -> bool:
    """Drop the association for ``mesh_index``.

    The extension block is removed with its last association; an emptied
    ``extensions`` map is left out when the document is encoded.
    """
    if doc.mesh_binary is None:
        return False

    associations = doc.mesh_binary.associations
    for i, assoc in enumerate(associations):
        if assoc.mesh_index == mesh_index:
            del associations[i]
            break
    else:
        return False

    log.debug("Removed association for mesh %d (buffer %d)", mesh_index, assoc.buffer_index)
    if not associations:
        doc.mesh_binary = None
    return True


def upsert_association(doc: SceneDocument, mesh_index: int) -> int:
    """Return the buffer index the payload for ``mesh_index`` must be written to.

    An existing association keeps its buffer; otherwise a new association is
    appended that points at a new trailing buffer.
    """
    buffer_index = len(doc.buffers)
    existing = find_association(doc, mesh_index)
    if existing is not None:
        if existing.buffer_index < buffer_index:
            log.debug("Updating mesh %d in place at buffer %d", mesh_index, existing.buffer_index)
            return existing.buffer_index
        log.warning(
            "Association for mesh %d points at missing buffer %d, moving it to buffer %d",
            mesh_index,
            existing.buffer_index,
            buffer_index,
        )
        existing.buffer_index = buffer_index
        return buffer_index

    ensure_extension(doc).associations.append(
        MeshBinaryAssociation(mesh_index=mesh_index, buffer_index=buffer_index)
    )
    log.debug("Associating mesh %d with new buffer %d", mesh_index, buffer_index)
    return buffer_index
