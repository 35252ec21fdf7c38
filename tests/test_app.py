from __future__ import annotations

import threading

from kubernetes.client.exceptions import ApiException

from app import enqueue_all, print_summary, run_watch_loop, watch_once
from bpf import DryRunBpfClient
from config import AgentConfig
from state import EnforcementStateIndex
from workqueue import WorkQueue


def _obj(ns: str, name: str) -> dict:
    return {"metadata": {"namespace": ns, "name": name}}


class _PEClient:
    def __init__(self, items=None, events=None):
        self.items = items or []
        self.events = events or []
        self.watch_args = None

    def list_policy_endpoints(self, namespace=""):
        return self.items, "7"

    def watch_policy_endpoints(self, namespace="", resource_version="", timeout_seconds=300):
        self.watch_args = (namespace, resource_version, timeout_seconds)
        yield from self.events


def _drain(q: WorkQueue) -> list:
    out = []
    while True:
        key = q.get(timeout=0)
        if key is None:
            return out
        out.append(key)
        q.done(key)


def test_initial_list_enqueues_every_object() -> None:
    q = WorkQueue()
    rv = enqueue_all(_PEClient(items=[_obj("a", "p1"), _obj("b", "p2")]), q, "")
    assert rv == "7"
    assert _drain(q) == [("a", "p1"), ("b", "p2")]


def test_watch_enqueues_all_event_types_including_deletes() -> None:
    events = [
        ("ADDED", _obj("a", "p1")),
        ("MODIFIED", _obj("a", "p1")),
        ("DELETED", _obj("b", "p2")),
        ("MODIFIED", {"metadata": {}}),
    ]
    pe = _PEClient(events=events)
    q = WorkQueue()
    watch_once(pe, q, AgentConfig(watch_namespace="a", resync_seconds=60), "7")
    assert pe.watch_args == ("a", "7", 60)
    assert _drain(q) == [("a", "p1"), ("b", "p2")]


def test_watch_stops_on_error_event() -> None:
    events = [("ERROR", {"code": 410, "message": "too old"}), ("ADDED", _obj("a", "p1"))]
    q = WorkQueue()
    watch_once(_PEClient(events=events), q, AgentConfig(), "7")
    assert _drain(q) == []


class _FlakyWatchClient(_PEClient):
    """First watch fails with 410 Gone; the second list stops the loop."""

    def __init__(self, stop_event: threading.Event):
        super().__init__(items=[_obj("a", "p1")])
        self.stop_event = stop_event
        self.lists = 0
        self.watches = 0

    def list_policy_endpoints(self, namespace=""):
        self.lists += 1
        if self.lists == 2:
            self.stop_event.set()
        return self.items, str(self.lists)

    def watch_policy_endpoints(self, namespace="", resource_version="", timeout_seconds=300):
        self.watches += 1
        if self.watches == 1:
            raise ApiException(status=410, reason="Gone")
        yield from ()


def test_watch_failure_leads_to_relist() -> None:
    stop = threading.Event()
    pe = _FlakyWatchClient(stop)
    q = WorkQueue()

    run_watch_loop(pe, q, AgentConfig(requeue_seconds=0), stop)

    assert pe.lists == 2
    assert pe.watches == 2
    assert _drain(q) == [("a", "p1")]


def test_summary_reports_tracked_policies(capsys) -> None:
    index = EnforcementStateIndex()
    bpf = DryRunBpfClient(index)
    pod = {"metadata": {"namespace": "a", "name": "web"}, "status": {"hostIP": "10.0.0.1"}}
    bpf.attach_probes(pod, "a/p1", True, False)
    bpf.update_table(index.ingress_program("a/p1"), ["10.0.0.0/24", "10.0.1.0/24"])

    print_summary(index, bpf)

    out = capsys.readouterr().out
    assert "[agent] enforcing 1 policies" in out
    assert "a/p1 pods=1 ingress=2" in out
    assert "egress=" not in out
