# cidrs.py
from __future__ import annotations

from typing import List, Optional, Tuple


def _flatten(rules: Optional[list], peers_key: str) -> List[str]:
    out: List[str] = []
    for rule in rules or []:
        for peer in (rule or {}).get(peers_key, []) or []:
            out.append(str((peer or {}).get("cidr") or ""))
    return out


def derive_cidrs(spec: Optional[dict]) -> Tuple[List[str], List[str]]:
    """Return (ingress, egress) CIDR lists from a PolicyEndpoints spec.

    Rule order, then peer order within a rule. Duplicates and malformed
    ranges pass through untouched.
    """
    spec = spec or {}
    ingress = _flatten(spec.get("ingress"), "from")
    egress = _flatten(spec.get("egress"), "to")
    return ingress, egress


def direction_flags(ingress: List[str], egress: List[str]) -> Tuple[bool, bool]:
    return len(ingress) > 0, len(egress) > 0
