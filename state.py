# state.py
"""Node-local enforcement bookkeeping shared by the reconciler and the probe client.

One EnforcementStateIndex is created by the application and handed to both
sides. Every method takes the index lock, so a single read or write is atomic
per key and callers never lock on their own. The probe client is the only
writer of program handles and map fds; the reconciler only reads handles.
Nothing is ever removed (deletion cleanup is not handled yet).
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

SEPARATOR = "/"


def policy_identifier(namespace: str, name: str) -> str:
    """Key correlating a PolicyEndpoints object with its programs on this node.

    Kubernetes names never contain '/', so "<namespace>/<name>" cannot alias
    two different objects.
    """
    if not namespace or not name:
        raise ValueError(f"namespace and name are required (got {namespace!r}, {name!r})")
    if SEPARATOR in namespace or SEPARATOR in name:
        raise ValueError(f"{SEPARATOR!r} is not allowed in {namespace!r}/{name!r}")
    return f"{namespace}{SEPARATOR}{name}"


class EnforcementStateIndex:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ingress: Dict[str, Any] = {}
        self._egress: Dict[str, Any] = {}
        self._map_fds: Dict[Any, int] = {}

    # ── program handles, keyed by policy identifier ──
    def set_ingress_program(self, policy_id: str, handle: Any) -> None:
        with self._lock:
            self._ingress[policy_id] = handle

    def set_egress_program(self, policy_id: str, handle: Any) -> None:
        with self._lock:
            self._egress[policy_id] = handle

    def ingress_program(self, policy_id: str) -> Optional[Any]:
        with self._lock:
            return self._ingress.get(policy_id)

    def egress_program(self, policy_id: str) -> Optional[Any]:
        with self._lock:
            return self._egress.get(policy_id)

    # ── program -> map fd, opaque to the reconciler ──
    def set_map_fd(self, handle: Any, map_fd: int) -> None:
        with self._lock:
            self._map_fds[handle] = map_fd

    def map_fd(self, handle: Any) -> Optional[int]:
        with self._lock:
            return self._map_fds.get(handle)

    def policy_ids(self) -> List[str]:
        with self._lock:
            return sorted(set(self._ingress) | set(self._egress))

    def __len__(self) -> int:
        with self._lock:
            return len(set(self._ingress) | set(self._egress))
