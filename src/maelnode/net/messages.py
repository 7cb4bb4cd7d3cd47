from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, StrictInt, StrictStr, Tag, model_validator

Json = Dict[str, Any]

# Message ids travel as JSON numbers or strings; bool is never accepted.
MsgId = Union[StrictInt, StrictStr]
NodeId = str

INIT = "init"
INIT_OK = "init_ok"
ERROR = "error"

# Body keys the runtime stamps itself; everything else belongs to the caller.
CORRELATION_KEYS = ("msg_id", "in_reply_to")


class ErrorCode(IntEnum):
    TIMEOUT = 0
    NODE_NOT_FOUND = 1
    NOT_SUPPORTED = 10
    TEMPORARILY_UNAVAILABLE = 11
    MALFORMED_REQUEST = 12
    CRASH = 13
    ABORT = 14
    KEY_DOES_NOT_EXIST = 20
    KEY_ALREADY_EXISTS = 21
    PRECONDITION_FAILED = 22
    TXN_CONFLICT = 30

    @property
    def is_definite(self) -> bool:
        """False when the failed operation may still have taken effect."""
        return self not in (ErrorCode.TIMEOUT, ErrorCode.CRASH)


# ----------------------------
# Bodies
# ----------------------------


class MessageBody(BaseModel):
    """Open message body.

    Any ``type`` string is accepted and unknown keys are kept as extras so that
    application handlers see every field the sender put on the wire.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: StrictStr = Field(min_length=1)
    msg_id: Optional[MsgId] = None
    in_reply_to: Optional[MsgId] = None

    @model_validator(mode="after")
    def _msg_id_unless_reply(self) -> "MessageBody":
        # Replies built by the runtime carry only in_reply_to.
        if self.msg_id is None and self.in_reply_to is None:
            raise ValueError("missing_msg_id")
        return self

    @property
    def is_reply(self) -> bool:
        return self.in_reply_to is not None

    def get(self, key: str, default: Any = None) -> Any:
        if key in type(self).model_fields:
            v = getattr(self, key)
            return default if v is None else v
        return (self.model_extra or {}).get(key, default)

    def to_wire(self) -> Json:
        out: Json = {"type": self.type}
        for name in type(self).model_fields:
            if name == "type" or name in CORRELATION_KEYS:
                continue
            v = getattr(self, name)
            if v is not None:
                out[name] = v
        out.update(self.model_extra or {})
        if self.msg_id is not None:
            out["msg_id"] = self.msg_id
        if self.in_reply_to is not None:
            out["in_reply_to"] = self.in_reply_to
        return out


class InitBody(MessageBody):
    type: Literal["init"]
    node_id: StrictStr = Field(min_length=1)
    node_ids: List[StrictStr]


class ErrorBody(MessageBody):
    type: Literal["error"]
    code: Optional[StrictInt] = None
    text: Optional[StrictStr] = None

    @property
    def error_code(self) -> Union[ErrorCode, int]:
        # A peer that omits the code gives no guarantee about the outcome.
        if self.code is None:
            return ErrorCode.CRASH
        try:
            return ErrorCode(self.code)
        except ValueError:
            return self.code


_VARIANTS = {INIT: "init", ERROR: "error"}


def _body_tag(v: Any) -> str:
    t = v.get("type") if isinstance(v, dict) else getattr(v, "type", None)
    if isinstance(t, str) and t in _VARIANTS:
        return _VARIANTS[t]
    return "message"


Body = Annotated[
    Union[
        Annotated[InitBody, Tag("init")],
        Annotated[ErrorBody, Tag("error")],
        Annotated[MessageBody, Tag("message")],
    ],
    Discriminator(_body_tag),
]


# ----------------------------
# Envelope
# ----------------------------


class Envelope(BaseModel):
    # Harness-side keys outside src/dest/body (e.g. a network "id") are ignored.
    model_config = ConfigDict(frozen=True, extra="ignore")

    src: StrictStr = Field(min_length=1)
    dest: StrictStr = Field(min_length=1)
    body: Body

    @property
    def type(self) -> str:
        return self.body.type

    def to_wire(self) -> Json:
        return {"src": self.src, "dest": self.dest, "body": self.body.to_wire()}
