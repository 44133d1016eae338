"""JSON-safe tagged encoding of byte strings.

``{"type": "Buffer", "data": <str>, "encoding": <name>}``. Text encodings are
tried first and used only if they round-trip the original bytes exactly;
otherwise the body is stored as base64.
"""

import base64
import binascii
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TEXT_ENCODINGS = ["utf-8"]

_DECODERS: Dict[str, Callable[[str], bytes]] = {
    "utf-8": lambda data: data.encode("utf-8"),
    "utf8": lambda data: data.encode("utf-8"),
    "ascii": lambda data: data.encode("ascii"),
    "latin1": lambda data: data.encode("latin-1"),
    "base64": lambda data: base64.b64decode(data, validate=True),
    "hex": bytes.fromhex,
}


def is_buffer_json(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("type") == "Buffer"
        and isinstance(value.get("data"), str)
        and value.get("encoding") in _DECODERS
    )


def bytes_to_json(value: bytes) -> Dict[str, str]:
    for encoding in TEXT_ENCODINGS:
        try:
            data = value.decode(encoding)
        except UnicodeDecodeError:
            continue
        if data.encode(encoding) == value:
            return {"type": "Buffer", "data": data, "encoding": encoding}

    return {
        "type": "Buffer",
        "data": base64.b64encode(value).decode("ascii"),
        "encoding": "base64",
    }


def json_to_bytes(value: Any) -> Optional[bytes]:
    """Decode a tagged value, or return None when it is not decodable."""
    if isinstance(value, bytes):
        return value
    if not is_buffer_json(value):
        return None
    try:
        return _DECODERS[value["encoding"]](value["data"])
    except (ValueError, UnicodeEncodeError, binascii.Error) as e:
        logger.debug(f"Undecodable {value['encoding']} buffer: {e}")
        return None
