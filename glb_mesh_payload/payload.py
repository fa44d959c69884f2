"""Text + settings codec for the per-mesh payload bytes.

Layout: UTF-8 text, optionally followed by a NUL byte and a compact JSON
settings object. Readers that only understand plain text stop at the NUL.
"""
from __future__ import annotations

import copy
import json
import logging
from typing import Any

from .manager import Operation, Remove, Upsert

log = logging.getLogger(__name__)

SETTINGS_SEPARATOR = b"\x00"

DEFAULT_SETTINGS: dict[str, Any] = {
    "previewMode": "threejs",
    "playbackSpeed": 1.0,
    "animation": {"type": "play"},
    "display": {"showBorders": True},
}


def default_settings() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_SETTINGS)


def encode_payload(text: str, settings: dict[str, Any] | None = None) -> bytes:
    if "\x00" in text:
        raise ValueError("Payload text must not contain NUL characters")
    data = text.encode("utf-8")
    if settings is not None:
        data += SETTINGS_SEPARATOR + json.dumps(settings, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return data


def decode_payload(data: bytes) -> tuple[str, dict[str, Any] | None]:
    text_bytes, _, settings_bytes = bytes(data).partition(SETTINGS_SEPARATOR)
    text = text_bytes.decode("utf-8", errors="replace")

    settings_bytes = settings_bytes.rstrip(SETTINGS_SEPARATOR)
    if not settings_bytes:
        return text, None

    try:
        settings = json.loads(settings_bytes.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        log.warning("Ignoring undecodable payload settings: %s", exc)
        return text, None
    if not isinstance(settings, dict):
        log.warning("Ignoring payload settings that are not an object")
        return text, None
    return text, settings


def is_default_settings(settings: dict[str, Any] | None) -> bool:
    return settings is None or settings == DEFAULT_SETTINGS


def payload_operation(text: str, settings: dict[str, Any] | None = None) -> Operation:
    """Blank text with default settings detaches; anything else is stored."""
    if text.strip() == "" and is_default_settings(settings):
        return Remove()
    return Upsert(encode_payload(text, settings))
