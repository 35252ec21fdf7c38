# reconcile.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from cidrs import derive_cidrs, direction_flags
from config import debug_enabled
from k8s import PodListError, PolicyFetchError
from selection import local_pods, pod_key
from state import EnforcementStateIndex, policy_identifier


class ReconcilePlan(dict):
    """A small, json-serializable planning object."""

    # kept as dict subclass for easy printing/YAML dumping


@dataclass
class ReconcileResult:
    requeue: bool = False
    pods: List[Tuple[str, str]] = field(default_factory=list)
    attach_failures: int = 0
    update_failures: int = 0


class PolicyEndpointsReconciler:
    """Drive one PolicyEndpoints object's allow-lists into this node's programs.

    One call handles one change signal. The dispatcher guarantees at most one
    call per (namespace, name) in flight; calls for different objects may run
    in parallel and only meet in the shared index.
    """

    def __init__(self, k8s_client, bpf_client, index: EnforcementStateIndex, node_ip: str):
        self.k8s = k8s_client
        self.bpf = bpf_client
        self.index = index
        self.node_ip = node_ip

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        if debug_enabled():
            print(f"[reconciler] request {namespace}/{name}")

        try:
            pe = self.k8s.get_policy_endpoint(namespace, name)
        except PolicyFetchError as e:
            print(f"[reconciler] fetch failed, requeueing: {e}")
            return ReconcileResult(requeue=True)
        if pe is None:
            # TODO: detach programs and clear index entries once deletion cleanup exists
            if debug_enabled():
                print(f"[reconciler] {namespace}/{name} not found, nothing to do")
            return ReconcileResult()

        ingress_cidrs, egress_cidrs = derive_cidrs(pe.get("spec"))
        ingress, egress = direction_flags(ingress_cidrs, egress_cidrs)

        try:
            pods = local_pods(self.k8s, namespace, self.node_ip)
        except PodListError as e:
            print(f"[reconciler] pod list failed, requeueing: {e}")
            return ReconcileResult(requeue=True)

        policy_id = policy_identifier(namespace, name)
        result = ReconcileResult()
        for pod in pods:
            result.pods.append(pod_key(pod))
            self._enforce(pod, policy_id, ingress, egress, ingress_cidrs, egress_cidrs, result)

        print(
            f"[reconciler] {policy_id} node={self.node_ip or '<unknown>'} pods={len(result.pods)} "
            f"ingress={len(ingress_cidrs)} egress={len(egress_cidrs)} "
            f"attach_failures={result.attach_failures} update_failures={result.update_failures} "
            f"tracked_policies={len(self.index)}"
        )
        return result

    def _enforce(
        self,
        pod: dict,
        policy_id: str,
        ingress: bool,
        egress: bool,
        ingress_cidrs: List[str],
        egress_cidrs: List[str],
        result: ReconcileResult,
    ) -> None:
        ns, name = pod_key(pod)
        try:
            self.bpf.attach_probes(pod, policy_id, ingress, egress)
        except Exception as e:
            result.attach_failures += 1
            print(f"[reconciler] attach failed pod={ns}/{name} policy={policy_id}: {e}")

        # Missing handle means attach has not completed yet; a later pass picks it up.
        for direction, handle, cidrs in (
            ("ingress", self.index.ingress_program(policy_id), ingress_cidrs),
            ("egress", self.index.egress_program(policy_id), egress_cidrs),
        ):
            if handle is None:
                continue
            try:
                self.bpf.update_table(handle, cidrs)
            except Exception as e:
                result.update_failures += 1
                print(f"[reconciler] {direction} update failed pod={ns}/{name} policy={policy_id}: {e}")


def plan_reconcile(k8s_client, index: EnforcementStateIndex, node_ip: str, namespace: str, name: str) -> ReconcilePlan:
    """Compute what reconcile() *would* do, without touching any program."""
    pe = k8s_client.get_policy_endpoint(namespace, name)
    if pe is None:
        return ReconcilePlan(namespace=namespace, name=name, found=False)

    ingress_cidrs, egress_cidrs = derive_cidrs(pe.get("spec"))
    ingress, egress = direction_flags(ingress_cidrs, egress_cidrs)
    policy_id = policy_identifier(namespace, name)
    pods = sorted(f"{ns}/{n}" for ns, n in map(pod_key, local_pods(k8s_client, namespace, node_ip)))

    update: List[str] = []
    if index.ingress_program(policy_id) is not None:
        update.append("ingress")
    if index.egress_program(policy_id) is not None:
        update.append("egress")

    return ReconcilePlan(
        namespace=namespace,
        name=name,
        found=True,
        policy_id=policy_id,
        node_ip=node_ip,
        flags={"ingress": ingress, "egress": egress},
        ingress=ingress_cidrs,
        egress=egress_cidrs,
        pods=pods,
        update=update,
    )


def print_plan(plan: ReconcilePlan) -> None:
    ns, name = plan.get("namespace"), plan.get("name")
    if not plan.get("found"):
        print(f"[plan] {ns}/{name} not found; nothing to do")
        return
    flags = plan.get("flags", {})
    print(
        f"[plan] policy={plan.get('policy_id')} node={plan.get('node_ip') or '<unknown>'} "
        f"ingress={flags.get('ingress', False)} egress={flags.get('egress', False)}"
    )
    for k in ("ingress", "egress", "pods", "update"):
        items = plan.get(k, []) or []
        if not items:
            continue
        print(f"[plan] {k}:")
        for item in items:
            print(f"  - {item}")
