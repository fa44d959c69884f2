import pytest

from glb_mesh_payload import (
    ExternalUriUnsupportedError,
    FileTooSmallError,
    InvalidMagicError,
    PayloadInfo,
    Remove,
    Upsert,
    apply,
    associate,
    get,
    has_payload,
    list_payloads,
)
from glb_mesh_payload.document import MESH_BINARY_EXTENSION
from tests.helpers.glb import assert_aligned, build_glb, empty_glb, parse_glb, scene_glb


def _associations(data):
    gltf, _, _ = parse_glb(data)
    return gltf.get("extensions", {}).get(MESH_BINARY_EXTENSION, {}).get("meshBinaryAssociations", [])


def test_hello_on_minimal_glb():
    result = associate(empty_glb(), 0, b"hello")

    gltf, bin_chunk, _ = parse_glb(result)
    assert bin_chunk == b"hello\x00\x00\x00"
    assert gltf["buffers"] == [{"byteLength": 5}]
    assert _associations(result) == [{"meshIndex": 0, "bufferIndex": 0}]
    assert get(result, 0) == b"hello"
    assert get(result, 1) is None


@pytest.mark.parametrize("payload", [b"x", b"ab", b"abc", b"abcd", b"\x00" * 5, bytes(range(256)) * 3])
@pytest.mark.parametrize("mesh_index", [0, 1, 17])
def test_round_trip(mesh_index, payload):
    result = associate(scene_glb(), mesh_index, payload)
    assert_aligned(result)
    assert get(result, mesh_index) == payload


def test_scene_content_is_preserved():
    original = scene_glb()
    result = associate(original, 1, b"abc")

    gltf, bin_chunk, _ = parse_glb(result)
    original_gltf, _, _ = parse_glb(original)
    assert bin_chunk[:12] == bytes(range(12))
    assert bin_chunk[12:16] == b"abc\x00"
    for key in ("asset", "meshes", "accessors", "bufferViews"):
        assert gltf[key] == original_gltf[key]
    assert gltf["buffers"][:2] == original_gltf["buffers"]
    assert gltf["buffers"][2] == {"byteLength": 3}
    assert _associations(result) == [{"meshIndex": 1, "bufferIndex": 2}]


def test_header_matches_length():
    result = associate(scene_glb(), 0, b"12345")
    assert int.from_bytes(result[8:12], "little") == len(result)


def test_unaffected_meshes_are_preserved():
    container = associate(empty_glb(), 0, b"first")
    container = associate(container, 1, b"second")

    updated = associate(container, 2, b"third")
    assert get(updated, 0) == b"first"
    assert get(updated, 1) == b"second"
    assert get(updated, 2) == b"third"

    removed = associate(updated, 1, b"")
    assert get(removed, 0) == b"first"
    assert get(removed, 2) == b"third"


def test_update_replaces_existing_association():
    container = associate(empty_glb(), 0, b"first-payload")
    container = associate(container, 1, b"second")
    container = associate(container, 0, b"x" * 21)

    assert [a["meshIndex"] for a in _associations(container)].count(0) == 1
    assert get(container, 0) == b"x" * 21
    assert get(container, 1) == b"second"
    gltf, _, _ = parse_glb(container)
    assert len(gltf["buffers"]) == 2


def test_removal_drops_extension_and_keeps_bin():
    container = associate(scene_glb(), 0, b"payload")
    _, bin_before, _ = parse_glb(container)

    removed = associate(container, 0, b"")

    assert_aligned(removed)
    gltf, bin_after, _ = parse_glb(removed)
    assert "extensions" not in gltf
    assert bin_after == bin_before
    assert get(removed, 0) is None


def test_removal_keeps_other_extensions():
    gltf = {"extensions": {"EXT_other": {"a": 1}}}
    container = associate(build_glb(gltf), 3, b"data")
    removed = associate(container, 3, b"")
    assert parse_glb(removed)[0]["extensions"] == {"EXT_other": {"a": 1}}


def test_removal_is_idempotent():
    container = associate(associate(empty_glb(), 0, b"abc"), 1, b"def")
    once = associate(container, 0, b"")
    twice = associate(once, 0, b"")
    assert twice == once
    assert get(twice, 1) == b"def"


def test_removal_without_association_returns_input():
    original = scene_glb()
    assert associate(original, 4, b"") == original
    assert apply(original, 4, Remove()) == original


def test_reattach_after_removal():
    container = associate(empty_glb(), 0, b"one")
    container = associate(container, 0, b"")
    container = associate(container, 0, b"two")
    assert get(container, 0) == b"two"
    assert len(_associations(container)) == 1


def test_input_is_not_mutated():
    original = bytearray(scene_glb())
    snapshot = bytes(original)
    associate(original, 0, b"payload")
    assert bytes(original) == snapshot


def test_replacing_data_uri_buffer():
    gltf = {
        "buffers": [{"uri": "data:application/octet-stream;base64,AQID", "byteLength": 3}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 0}]}},
    }
    container = build_glb(gltf)
    assert get(container, 0) == b"\x01\x02\x03"

    updated = associate(container, 0, b"new")
    assert parse_glb(updated)[0]["buffers"] == [{"byteLength": 3}]
    assert get(updated, 0) == b"new"


def test_external_uri_payload_is_an_error():
    gltf = {
        "buffers": [{"uri": "payload.bin", "byteLength": 4}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 0}]}},
    }
    with pytest.raises(ExternalUriUnsupportedError):
        get(build_glb(gltf), 0)


def test_untouched_uri_buffer_without_byte_length_is_preserved():
    gltf = {"buffers": [{"uri": "data:application/octet-stream;base64,AQID"}]}
    updated = associate(build_glb(gltf), 0, b"x")

    assert parse_glb(updated)[0]["buffers"] == [
        {"uri": "data:application/octet-stream;base64,AQID"},
        {"byteLength": 1},
    ]
    assert get(updated, 0) == b"x"
    assert list_payloads(updated) == [PayloadInfo(mesh_index=0, buffer_index=1, byte_length=1)]


def test_replacing_payload_whose_region_overruns_bin():
    gltf = {
        "buffers": [{"byteLength": 4}, {"byteLength": 64}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 1}]}},
    }
    updated = associate(build_glb(gltf, b"AAAAbbbb"), 0, b"fixed")

    assert_aligned(updated)
    assert get(updated, 0) == b"fixed"
    gltf, bin_chunk, _ = parse_glb(updated)
    assert gltf["buffers"] == [{"byteLength": 4}, {"byteLength": 5}]
    assert bin_chunk.startswith(b"AAAA")


def test_empty_uri_buffer_lives_in_bin():
    gltf = {
        "buffers": [{"uri": "", "byteLength": 2}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 0}]}},
    }
    container = build_glb(gltf, b"hi")
    assert get(container, 0) == b"hi"

    updated = associate(container, 1, b"more")
    assert parse_glb(updated)[0]["buffers"][0] == {"uri": "", "byteLength": 2}
    assert get(updated, 0) == b"hi"
    assert get(updated, 1) == b"more"


def test_unpadded_data_uri_payload():
    gltf = {
        "buffers": [{"uri": "data:application/octet-stream;base64,AQI", "byteLength": 2}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 0}]}},
    }
    assert get(build_glb(gltf), 0) == b"\x01\x02"


def test_bin_chunk_declared_past_end_of_file():
    gltf = {
        "buffers": [{"byteLength": 4}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 0}]}},
    }
    container = build_glb(gltf, b"abcdEFGH")
    truncated = container[:-4]
    truncated = truncated[:8] + len(truncated).to_bytes(4, "little") + truncated[12:]

    assert get(truncated, 0) == b"abcd"


def test_dangling_association_reads_as_missing():
    gltf = {"extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 0, "bufferIndex": 4}]}}}
    container = build_glb(gltf)
    assert get(container, 0) is None
    assert has_payload(container, 0) is False
    assert list_payloads(container) == []

    repaired = associate(container, 0, b"fixed")
    assert _associations(repaired) == [{"meshIndex": 0, "bufferIndex": 0}]
    assert get(repaired, 0) == b"fixed"


def test_legacy_files_are_readable():
    gltf = {
        "buffers": [{"byteLength": 2}],
        "extensions": {MESH_BINARY_EXTENSION: {"meshBinaryAssociations": [{"meshIndex": 2, "binaryData": 0}]}},
    }
    assert get(build_glb(gltf, b"hi"), 2) == b"hi"


def test_apply_operations():
    container = apply(empty_glb(), 5, Upsert(b"abc"))
    assert get(container, 5) == b"abc"
    assert get(apply(container, 5, Remove()), 5) is None


def test_upsert_rejects_empty_payload():
    with pytest.raises(ValueError):
        Upsert(b"")


def test_apply_rejects_unknown_operation():
    with pytest.raises(TypeError):
        apply(empty_glb(), 0, "delete")


@pytest.mark.parametrize("mesh_index", [-1, 2**32, True, 1.0, "0"])
def test_invalid_mesh_index(mesh_index):
    with pytest.raises(ValueError):
        associate(empty_glb(), mesh_index, b"x")
    with pytest.raises(ValueError):
        get(empty_glb(), mesh_index)


def test_structural_errors_propagate():
    with pytest.raises(FileTooSmallError):
        associate(b"junk", 0, b"x")
    with pytest.raises(InvalidMagicError):
        get(b"\x00" * 24, 0)


def test_has_payload_and_list_payloads():
    container = associate(scene_glb(), 1, b"abc")
    container = associate(container, 0, b"hello world")

    assert has_payload(container, 0)
    assert has_payload(container, 1)
    assert not has_payload(container, 2)
    assert list_payloads(container) == [
        PayloadInfo(mesh_index=1, buffer_index=2, byte_length=3),
        PayloadInfo(mesh_index=0, buffer_index=3, byte_length=11),
    ]
    assert list_payloads(empty_glb()) == []
