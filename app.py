# app.py
from __future__ import annotations

import threading
import time
from typing import List

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from bpf import DryRunBpfClient
from config import AgentConfig, debug_enabled
from imds import local_address
from k8s import PolicyEndpointsClient, object_key
from reconcile import PolicyEndpointsReconciler
from state import EnforcementStateIndex
from workqueue import WorkQueue, run_worker


# ─────────────────────────────────────────────
# Watch loop (change intake)
# ─────────────────────────────────────────────
def enqueue_all(pe_client: PolicyEndpointsClient, queue: WorkQueue, namespace: str) -> str:
    items, rv = pe_client.list_policy_endpoints(namespace)
    for obj in items:
        queue.add(object_key(obj))
    print(f"[agent] listed {len(items)} policyendpoints (resourceVersion={rv or '-'})")
    return rv


def watch_once(pe_client: PolicyEndpointsClient, queue: WorkQueue, cfg: AgentConfig, rv: str) -> None:
    """Stream events until the server closes the watch or reports an error."""
    for event_type, obj in pe_client.watch_policy_endpoints(cfg.watch_namespace, rv, cfg.resync_seconds):
        if event_type == "ERROR":
            status = obj.get("code") or obj.get("status")
            print(f"[agent] watch error ({status}): {obj.get('message', '')}")
            return
        ns, name = object_key(obj)
        if not ns or not name:
            continue
        if debug_enabled():
            print(f"[agent] {event_type} {ns}/{name}")
        queue.add((ns, name))


def run_watch_loop(pe_client: PolicyEndpointsClient, queue: WorkQueue, cfg: AgentConfig, stop_event: threading.Event) -> None:
    # Every pass re-lists, so objects whose events were missed are resynced.
    while not stop_event.is_set():
        try:
            rv = enqueue_all(pe_client, queue, cfg.watch_namespace)
            watch_once(pe_client, queue, cfg, rv)
        except ApiException as e:
            print(f"[agent] watch failed: {e.status} {e.reason}; relisting in {cfg.requeue_seconds}s")
            time.sleep(cfg.requeue_seconds)
        except Exception as e:
            # connection resets surface as urllib3 errors, not ApiException
            print(f"[agent] watch error: {e}; relisting in {cfg.requeue_seconds}s")
            time.sleep(cfg.requeue_seconds)


# ─────────────────────────────────────────────
# Shutdown summary
# ─────────────────────────────────────────────
def print_summary(index: EnforcementStateIndex, bpf_client: DryRunBpfClient) -> None:
    policy_ids = index.policy_ids()
    print(f"[agent] enforcing {len(policy_ids)} policies")
    for policy_id in policy_ids:
        pods = len(bpf_client.attached(policy_id))
        parts = []
        for direction, handle in (
            ("ingress", index.ingress_program(policy_id)),
            ("egress", index.egress_program(policy_id)),
        ):
            if handle is not None:
                parts.append(f"{direction}={len(bpf_client.table(handle))}")
        print(f"[agent]   {policy_id} pods={pods} " + " ".join(parts))


# ─────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────
def main() -> None:
    try:
        config.load_incluster_config()
        print("[agent] using in-cluster config")
    except Exception:
        config.load_kube_config()
        print("[agent] using kubeconfig (local)")

    cfg = AgentConfig.from_env()
    node_ip = local_address(cfg.node_ip, timeout=cfg.imds_timeout_seconds)
    print(f"[agent] node address: {node_ip or '<unknown>'}")

    pe_client = PolicyEndpointsClient(
        client.CustomObjectsApi(),
        client.CoreV1Api(),
        group=cfg.group,
        version=cfg.version,
        plural=cfg.plural,
    )
    index = EnforcementStateIndex()
    bpf_client = DryRunBpfClient(index)
    reconciler = PolicyEndpointsReconciler(pe_client, bpf_client, index, node_ip)

    queue = WorkQueue()
    stop_event = threading.Event()
    workers: List[threading.Thread] = []
    for i in range(cfg.workers):
        t = threading.Thread(
            target=run_worker,
            args=(queue, reconciler, cfg.requeue_seconds, stop_event),
            name=f"reconcile-worker-{i}",
            daemon=True,
        )
        t.start()
        workers.append(t)
    print(f"[agent] started {cfg.workers} workers, watching {cfg.watch_namespace or 'all namespaces'}")

    try:
        run_watch_loop(pe_client, queue, cfg, stop_event)
    except KeyboardInterrupt:
        print("[agent] shutting down")
    finally:
        stop_event.set()
        queue.shutdown()
        for t in workers:
            t.join(timeout=5)
        print_summary(index, bpf_client)


if __name__ == "__main__":
    main()
