from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

from maelnode.net.errors import IdentityAlreadyInitialized, IdentityError


@dataclass(frozen=True, slots=True)
class IdentitySnapshot:
    node_id: str = ""
    node_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_initialized(self) -> bool:
        return bool(self.node_id)


class NodeIdentity:
    """Own node id plus the cluster roster, set once by the init handshake.

    Before init every accessor returns the empty snapshot instead of failing.
    State is replaced as one immutable snapshot, so readers never see a new id
    paired with an old roster.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snap = IdentitySnapshot()

    def initialize(self, node_id: str, node_ids: Iterable[str]) -> IdentitySnapshot:
        if not isinstance(node_id, str) or not node_id:
            raise IdentityError("node_id must be a non-empty string")
        roster = frozenset(str(n) for n in node_ids)
        with self._lock:
            if self._snap.is_initialized:
                raise IdentityAlreadyInitialized(self._snap.node_id, node_id)
            self._snap = IdentitySnapshot(node_id=node_id, node_ids=roster)
            return self._snap

    def snapshot(self) -> IdentitySnapshot:
        with self._lock:
            return self._snap

    @property
    def is_initialized(self) -> bool:
        return self.snapshot().is_initialized

    @property
    def node_id(self) -> str:
        return self.snapshot().node_id

    @property
    def node_ids(self) -> FrozenSet[str]:
        return self.snapshot().node_ids

    def other_node_ids(self) -> FrozenSet[str]:
        snap = self.snapshot()
        return snap.node_ids - {snap.node_id}
