from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .errors import GlbError
from .manager import Remove, Upsert, apply, get, list_payloads
from .payload import decode_payload, payload_operation


def _mesh_index(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"Mesh index must be non-negative: {value}")
    return parsed


def _load_settings(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as exc:
        raise GlbError(f"Failed to read settings JSON: {path} ({exc})") from exc
    if not isinstance(data, dict):
        raise GlbError(f"Settings JSON root must be an object: {path}")
    return data


def _read_glb(path: Path) -> bytes:
    if not path.is_file():
        raise GlbError(f"Input not found: {path}")
    return path.read_bytes()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Attach, read and remove per-mesh payloads stored inside a GLB.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List meshes that carry a payload")
    list_parser.add_argument("glb", type=Path, help="Input .glb file")

    get_parser = subparsers.add_parser("get", help="Read the payload attached to a mesh")
    get_parser.add_argument("glb", type=Path, help="Input .glb file")
    get_parser.add_argument("mesh", type=_mesh_index, help="Mesh index")
    get_parser.add_argument("--out", type=Path, default=None, help="Write raw payload bytes to this file (default: stdout)")
    get_parser.add_argument("--decode", action="store_true", help="Decode the payload as text + settings JSON")

    set_parser = subparsers.add_parser("set", help="Attach or replace the payload of a mesh")
    set_parser.add_argument("glb", type=Path, help="Input .glb file")
    set_parser.add_argument("mesh", type=_mesh_index, help="Mesh index")
    source = set_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=Path, default=None, help="Attach the raw bytes of this file")
    source.add_argument("--text", default=None, help="Attach this text, encoded with optional --settings")
    set_parser.add_argument("--settings", type=Path, default=None, help="Settings JSON stored alongside --text")
    set_parser.add_argument("--out", type=Path, default=None, help="Output .glb path (default: overwrite input)")

    remove_parser = subparsers.add_parser("remove", help="Remove the payload of a mesh")
    remove_parser.add_argument("glb", type=Path, help="Input .glb file")
    remove_parser.add_argument("mesh", type=_mesh_index, help="Mesh index")
    remove_parser.add_argument("--out", type=Path, default=None, help="Output .glb path (default: overwrite input)")

    return parser.parse_args(argv)


def _cmd_list(args: argparse.Namespace) -> int:
    for info in list_payloads(_read_glb(args.glb)):
        size = "unknown size" if info.byte_length is None else f"{info.byte_length} bytes"
        print(f"mesh {info.mesh_index}: buffer {info.buffer_index}, {size}")
    return 0


def _cmd_get(args: argparse.Namespace) -> int:
    payload = get(_read_glb(args.glb), args.mesh)
    if payload is None:
        print(f"mesh {args.mesh} has no payload", file=sys.stderr)
        return 1

    if args.decode:
        text, settings = decode_payload(payload)
        output = json.dumps({"text": text, "settings": settings}, ensure_ascii=False, indent=2) + "\n"
        if args.out:
            args.out.write_text(output, encoding="utf-8")
        else:
            sys.stdout.write(output)
        return 0

    if args.out:
        args.out.write_bytes(payload)
    else:
        sys.stdout.buffer.write(payload)
        sys.stdout.flush()
    return 0


def _cmd_set(args: argparse.Namespace) -> int:
    if args.settings is not None and args.text is None:
        raise GlbError("--settings can only be combined with --text")

    if args.file is not None:
        if not args.file.is_file():
            raise GlbError(f"Payload file not found: {args.file}")
        data = args.file.read_bytes()
        operation = Upsert(data) if data else Remove()
    else:
        settings = _load_settings(args.settings) if args.settings is not None else None
        operation = payload_operation(args.text, settings)

    result = apply(_read_glb(args.glb), args.mesh, operation)
    (args.out or args.glb).write_bytes(result)
    return 0


def _cmd_remove(args: argparse.Namespace) -> int:
    result = apply(_read_glb(args.glb), args.mesh, Remove())
    (args.out or args.glb).write_bytes(result)
    return 0


_COMMANDS = {
    "list": _cmd_list,
    "get": _cmd_get,
    "set": _cmd_set,
    "remove": _cmd_remove,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return _COMMANDS[args.command](args)


def run() -> None:
    try:
        raise SystemExit(main())
    except GlbError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    run()
