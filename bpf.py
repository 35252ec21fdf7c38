# bpf.py
"""Contract for the probe/map subsystem, plus an in-memory dry-run client.

The real loader (attach tc programs to a pod's host veth, write LPM trie
entries) lives outside this agent. Anything implementing BpfClient can be
plugged into the reconciler.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Dict, List, Protocol, Set, Tuple

from config import debug_enabled
from selection import pod_key
from state import EnforcementStateIndex

INGRESS = "ingress"
EGRESS = "egress"


class BpfError(Exception):
    pass


@dataclass(frozen=True)
class ProgramHandle:
    policy_id: str
    direction: str
    prog_fd: int


class BpfClient(Protocol):
    def attach_probes(self, pod: dict, policy_id: str, ingress: bool, egress: bool) -> None:
        """Idempotent: re-attaching the same pod/policy pair must not duplicate programs."""

    def update_table(self, handle: ProgramHandle, cidrs: List[str]) -> None:
        """Converge the program's allow-list to exactly `cidrs` (empty allows nothing)."""


class DryRunBpfClient:
    """Keeps programs and allow-lists in memory; registers handles in the shared index."""

    def __init__(self, index: EnforcementStateIndex) -> None:
        self.index = index
        self._lock = threading.Lock()
        self._fds = itertools.count(100)
        self._programs: Dict[Tuple[str, str], ProgramHandle] = {}
        self._tables: Dict[ProgramHandle, List[str]] = {}
        self._attached: Dict[str, Set[Tuple[str, str]]] = {}

    def _program(self, policy_id: str, direction: str) -> ProgramHandle:
        key = (policy_id, direction)
        handle = self._programs.get(key)
        if handle is None:
            handle = ProgramHandle(policy_id, direction, next(self._fds))
            self._programs[key] = handle
            self.index.set_map_fd(handle, next(self._fds))
            if direction == INGRESS:
                self.index.set_ingress_program(policy_id, handle)
            else:
                self.index.set_egress_program(policy_id, handle)
        return handle

    def attach_probes(self, pod: dict, policy_id: str, ingress: bool, egress: bool) -> None:
        with self._lock:
            if ingress:
                self._program(policy_id, INGRESS)
            if egress:
                self._program(policy_id, EGRESS)
            self._attached.setdefault(policy_id, set()).add(pod_key(pod))
        if debug_enabled():
            ns, name = pod_key(pod)
            print(f"[bpf] dry-run attach pod={ns}/{name} policy={policy_id} ingress={ingress} egress={egress}")

    def update_table(self, handle: ProgramHandle, cidrs: List[str]) -> None:
        with self._lock:
            map_fd = self.index.map_fd(handle)
            if map_fd is None or self._programs.get((handle.policy_id, handle.direction)) != handle:
                raise BpfError(f"unknown program fd={handle.prog_fd} policy={handle.policy_id}")
            self._tables[handle] = list(cidrs)
        if debug_enabled():
            print(f"[bpf] dry-run update {handle.direction} policy={handle.policy_id} map_fd={map_fd} cidrs={cidrs}")

    def table(self, handle: ProgramHandle) -> List[str]:
        with self._lock:
            return list(self._tables.get(handle, []))

    def attached(self, policy_id: str) -> Set[Tuple[str, str]]:
        with self._lock:
            return set(self._attached.get(policy_id, set()))
