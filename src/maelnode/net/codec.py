# src/maelnode/net/codec.py
from __future__ import annotations

import json
from typing import Any, Dict

from pydantic import ValidationError

from maelnode.net.errors import ParseError, SchemaError, WireEncodeError
from maelnode.net.messages import Envelope

Json = Dict[str, Any]


def dumps_json(obj: Any) -> str:
    # Key order is kept as built so replies read type, caller fields, then correlation ids.
    try:
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise WireEncodeError("encode_failed", f"encode failed: {e}") from e


def loads_json(data: bytes | str) -> Any:
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
    except UnicodeDecodeError as e:
        raise ParseError("invalid_utf8", f"invalid utf-8: {e}") from e
    except (ValueError, RecursionError) as e:
        # also covers int digit limits and nesting past the recursion limit
        raise ParseError("invalid_json", f"invalid json: {e}") from e


def _schema_code(err: ValidationError) -> str:
    for item in err.errors():
        if "missing_msg_id" in str(item.get("msg", "")):
            return "missing_msg_id"
    for item in err.errors():
        loc = item.get("loc") or ()
        if loc and loc[0] == "body":
            return "invalid_message_shape"
    return "invalid_envelope"


def _summarize(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc") or ())
        parts.append(f"{loc or '<root>'}: {item.get('msg', '')}")
    return "; ".join(parts)


def decode_envelope(line: bytes | str) -> Envelope:
    raw = loads_json(line)
    if not isinstance(raw, dict):
        raise SchemaError("invalid_envelope", "envelope must be a JSON object")
    try:
        return Envelope.model_validate(raw)
    except ValidationError as e:
        raise SchemaError(_schema_code(e), _summarize(e)) from e


def build_envelope(src: str, dest: str, body: Json) -> Envelope:
    """Validate an outbound envelope; shape errors surface as SchemaError."""
    try:
        return Envelope.model_validate({"src": src, "dest": dest, "body": dict(body)})
    except ValidationError as e:
        raise SchemaError(_schema_code(e), _summarize(e)) from e


def encode_envelope(envelope: Envelope) -> str:
    return dumps_json(envelope.to_wire())
