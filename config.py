# config.py
from __future__ import annotations

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[agent] ignoring {name}={raw!r}: not an integer, using {default}")
        return default


def debug_enabled() -> bool:
    return os.environ.get("AGENT_DEBUG", "0") == "1"


@dataclass(frozen=True)
class AgentConfig:
    watch_namespace: str = ""
    node_ip: str = ""
    workers: int = 4
    requeue_seconds: int = 1
    resync_seconds: int = 300
    imds_timeout_seconds: int = 2
    group: str = "policy.k8s.aws.nodeagent"
    version: str = "v1alpha1"
    plural: str = "policyendpoints"

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """
        Read agent settings once at startup.
        Empty WATCH_NAMESPACE watches every namespace.
        """
        return cls(
            watch_namespace=os.environ.get("WATCH_NAMESPACE", ""),
            node_ip=os.environ.get("NODE_IP", ""),
            workers=max(1, _int_env("WORKERS", 4)),
            requeue_seconds=max(0, _int_env("REQUEUE_SECONDS", 1)),
            resync_seconds=max(1, _int_env("RESYNC_SECONDS", 300)),
            imds_timeout_seconds=max(1, _int_env("IMDS_TIMEOUT_SECONDS", 2)),
            group=os.environ.get("PE_GROUP", "policy.k8s.aws.nodeagent"),
            version=os.environ.get("PE_VERSION", "v1alpha1"),
            plural=os.environ.get("PE_PLURAL", "policyendpoints"),
        )
