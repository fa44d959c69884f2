from __future__ import annotations


class GlbError(RuntimeError):
    pass


class StructuralError(GlbError):
    pass


class FileTooSmallError(StructuralError):
    pass


class InvalidMagicError(StructuralError):
    pass


class UnsupportedVersionError(StructuralError):
    pass


class NotJsonChunkError(StructuralError):
    pass


class ChunkExceedsFileError(StructuralError):
    pass


class NotBinChunkError(StructuralError):
    pass


class MissingBinChunkError(StructuralError):
    pass


class BufferOutOfBoundsError(StructuralError):
    pass


class EncodingError(GlbError):
    pass


class MalformedDocumentError(EncodingError):
    pass


class UnsupportedReferenceError(GlbError):
    pass


class ExternalUriUnsupportedError(UnsupportedReferenceError):
    pass


class BufferIndexNotFoundError(GlbError, LookupError):
    pass
