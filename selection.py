# selection.py
from __future__ import annotations

from typing import List, Optional, Tuple


def host_ip(pod: dict) -> Optional[str]:
    return ((pod or {}).get("status", {}) or {}).get("hostIP")


def pod_key(pod: dict) -> Tuple[str, str]:
    meta = (pod or {}).get("metadata", {}) or {}
    return meta.get("namespace", "") or "", meta.get("name", "") or ""


def local_pods(pods_client, namespace: str, node_ip: str) -> List[dict]:
    """
    Pods of `namespace` scheduled on this node (status.hostIP == node_ip).
    Every pod in the namespace is a candidate; spec.podSelector is not applied.
    An unknown node address selects nothing. PodListError propagates.
    """
    if not node_ip:
        return []
    return [p for p in pods_client.list_pods(namespace) if host_ip(p) == node_ip]
