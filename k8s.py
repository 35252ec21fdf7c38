# k8s.py
"""Read-only access to PolicyEndpoints objects and pods."""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from kubernetes import watch
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError


class AgentError(Exception):
    pass


class PolicyFetchError(AgentError):
    """Reading a PolicyEndpoints object failed for a reason other than NotFound."""


class PodListError(AgentError):
    """Listing the pods of a namespace failed."""


def object_key(obj: dict) -> Tuple[str, str]:
    meta = (obj or {}).get("metadata", {}) or {}
    return meta.get("namespace", "") or "", meta.get("name", "") or ""


class PolicyEndpointsClient:
    def __init__(
        self,
        custom_api,
        core_api,
        group: str = "policy.k8s.aws.nodeagent",
        version: str = "v1alpha1",
        plural: str = "policyendpoints",
    ):
        self.custom = custom_api
        self.core = core_api
        self.group = group
        self.version = version
        self.plural = plural

    def get_policy_endpoint(self, namespace: str, name: str) -> Optional[dict]:
        """Return the object, or None when it no longer exists."""
        try:
            return self.custom.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=self.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise PolicyFetchError(f"get {self.plural} {namespace}/{name}: {e.status} {e.reason}") from e
        except HTTPError as e:
            # connection refused, resets, timeouts from the transport
            raise PolicyFetchError(f"get {self.plural} {namespace}/{name}: {e}") from e

    def list_policy_endpoints(self, namespace: str = "") -> Tuple[List[dict], str]:
        if namespace:
            res = self.custom.list_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=self.plural,
            )
        else:
            res = self.custom.list_cluster_custom_object(
                group=self.group,
                version=self.version,
                plural=self.plural,
            )
        items = res.get("items", []) or []
        rv = (res.get("metadata", {}) or {}).get("resourceVersion", "") or ""
        return items, rv

    def watch_policy_endpoints(
        self, namespace: str = "", resource_version: str = "", timeout_seconds: int = 300
    ) -> Iterator[Tuple[str, dict]]:
        w = watch.Watch()
        kwargs = dict(
            group=self.group,
            version=self.version,
            plural=self.plural,
            timeout_seconds=timeout_seconds,
        )
        if resource_version:
            kwargs["resource_version"] = resource_version
        if namespace:
            func = self.custom.list_namespaced_custom_object
            kwargs["namespace"] = namespace
        else:
            func = self.custom.list_cluster_custom_object
        try:
            for event in w.stream(func, **kwargs):
                yield event.get("type", ""), event.get("object", {}) or {}
        finally:
            w.stop()

    def list_pods(self, namespace: str) -> List[dict]:
        """Pods as camelCase dicts (status.hostIP), the same shape the API serves."""
        try:
            res = self.core.list_namespaced_pod(namespace)
        except ApiException as e:
            raise PodListError(f"list pods in {namespace}: {e.status} {e.reason}") from e
        except HTTPError as e:
            raise PodListError(f"list pods in {namespace}: {e}") from e
        serialize = self.core.api_client.sanitize_for_serialization
        return [serialize(p) for p in res.items]
