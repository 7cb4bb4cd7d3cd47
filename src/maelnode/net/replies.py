from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from maelnode.net.errors import DuplicatePendingReply
from maelnode.net.messages import ERROR, Envelope, MsgId
from maelnode.runtime.metrics import set_gauge

ReplyCallback = Callable[[Envelope], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class PendingReply:
    msg_id: MsgId
    on_success: ReplyCallback
    on_failure: ReplyCallback
    dest: str = ""
    created_ms: int = 0


class ReplyTable:
    """Outstanding requests keyed by the msg_id they were sent with.

    Each entry is removed before its callback runs, so one entry fires at most
    once: ``on_failure`` for an ``error`` reply, ``on_success`` otherwise.
    There is no timeout; an unanswered request stays here until a reply
    arrives. ``size()`` exposes how many are outstanding.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[MsgId, PendingReply] = {}

    def await_reply(
        self,
        msg_id: MsgId,
        on_success: ReplyCallback,
        on_failure: ReplyCallback,
        *,
        dest: str = "",
    ) -> PendingReply:
        entry = PendingReply(msg_id=msg_id, on_success=on_success, on_failure=on_failure, dest=dest, created_ms=_now_ms())
        with self._lock:
            if msg_id in self._pending:
                raise DuplicatePendingReply(msg_id)
            self._pending[msg_id] = entry
            n = len(self._pending)
        set_gauge("pending_replies", n)
        return entry

    def resolve(self, envelope: Envelope) -> bool:
        """Deliver a reply; False when nothing is waiting for it."""
        key = envelope.body.in_reply_to
        if key is None:
            return False
        with self._lock:
            entry = self._pending.pop(key, None)
            n = len(self._pending)
        if entry is None:
            return False
        set_gauge("pending_replies", n)

        # Callbacks run outside the lock so they may send further requests.
        if envelope.body.type == ERROR:
            entry.on_failure(envelope)
        else:
            entry.on_success(envelope)
        return True

    def discard(self, msg_id: MsgId) -> Optional[PendingReply]:
        with self._lock:
            entry = self._pending.pop(msg_id, None)
            n = len(self._pending)
        set_gauge("pending_replies", n)
        return entry

    def get(self, msg_id: MsgId) -> Optional[PendingReply]:
        with self._lock:
            return self._pending.get(msg_id)

    def oldest(self) -> Optional[PendingReply]:
        """The longest-waiting request, or None when nothing is outstanding."""
        with self._lock:
            if not self._pending:
                return None
            return min(self._pending.values(), key=lambda e: e.created_ms)

    def oldest_age_ms(self, now_ms: Optional[int] = None) -> int:
        entry = self.oldest()
        if entry is None:
            return 0
        now = _now_ms() if now_ms is None else int(now_ms)
        return max(0, now - entry.created_ms)

    def pending_ids(self) -> Tuple[MsgId, ...]:
        with self._lock:
            return tuple(self._pending)

    def size(self) -> int:
        with self._lock:
            return len(self._pending)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, msg_id: object) -> bool:
        with self._lock:
            return msg_id in self._pending
