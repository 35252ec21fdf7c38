#!/usr/bin/env python3
"""Plan-only runner: prints what the agent would enforce for one PolicyEndpoints object.

Usage:
  NODE_IP=192.168.1.5 python3 tools/plan.py <namespace> <name>

Notes:
- Uses your local kubeconfig (same behavior as app.py).
- Attaches nothing and writes no tables. The index starts empty, so "update"
  is always empty here; it lists the directions a running agent would push.
"""

from __future__ import annotations

import sys
from pathlib import Path

from kubernetes import client, config

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import AgentConfig  # noqa: E402
from imds import local_address  # noqa: E402
from k8s import AgentError, PolicyEndpointsClient  # noqa: E402
from reconcile import plan_reconcile, print_plan  # noqa: E402
from state import EnforcementStateIndex  # noqa: E402


def load_plan(namespace: str, name: str):
    try:
        config.load_incluster_config()
        print("[plan] using in-cluster config", file=sys.stderr)
    except Exception:
        config.load_kube_config()
        print("[plan] using kubeconfig (local)", file=sys.stderr)

    cfg = AgentConfig.from_env()
    pe_client = PolicyEndpointsClient(
        client.CustomObjectsApi(),
        client.CoreV1Api(),
        group=cfg.group,
        version=cfg.version,
        plural=cfg.plural,
    )
    node_ip = local_address(cfg.node_ip, timeout=cfg.imds_timeout_seconds)
    return plan_reconcile(pe_client, EnforcementStateIndex(), node_ip, namespace, name)


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print("usage: tools/plan.py <namespace> <name>", file=sys.stderr)
        return 2
    try:
        plan = load_plan(argv[0], argv[1])
    except AgentError as e:
        print(f"[plan] failed: {e}", file=sys.stderr)
        return 1
    print_plan(plan)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
