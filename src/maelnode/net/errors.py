from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from maelnode.net.messages import ErrorCode, MsgId


class NodeError(RuntimeError):
    pass


# ---------------------------------------------------------------------
# Wire
# ---------------------------------------------------------------------


class WireDecodeError(NodeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class ParseError(WireDecodeError):
    """Line is not valid JSON text."""


class SchemaError(WireDecodeError):
    """Line is JSON but not a valid envelope."""


class WireEncodeError(NodeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


# ---------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------


class IdentityError(NodeError):
    pass


class IdentityAlreadyInitialized(IdentityError):
    def __init__(self, current: str, attempted: str) -> None:
        super().__init__(f"node identity already set to {current!r}; refusing {attempted!r}")
        self.current = current
        self.attempted = attempted


class NodeNotInitialized(IdentityError):
    pass


# ---------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------


class DuplicatePendingReply(NodeError):
    def __init__(self, msg_id: MsgId) -> None:
        super().__init__(f"a reply is already pending for msg_id {msg_id!r}")
        self.msg_id = msg_id


@dataclass
class RPCError(Exception):
    """An ``error`` reply delivered to a request future."""

    code: int
    text: str = ""
    envelope: Any | None = None

    @classmethod
    def from_envelope(cls, envelope: Any) -> "RPCError":
        body = envelope.body
        return cls(code=int(body.get("code", ErrorCode.CRASH)), text=str(body.get("text", "") or ""), envelope=envelope)

    @property
    def error_code(self) -> Union[ErrorCode, int]:
        try:
            return ErrorCode(self.code)
        except ValueError:
            return self.code

    @property
    def definite(self) -> bool:
        ec = self.error_code
        return ec.is_definite if isinstance(ec, ErrorCode) else True

    def __str__(self) -> str:  # pragma: no cover
        if not self.text:
            return f"error {self.code}"
        return f"error {self.code}: {self.text}"
