#!/usr/bin/env python3
"""tools/render.py

Render the agent's plan for one PolicyEndpoints object as YAML.

Usage:
  NODE_IP=192.168.1.5 python3 tools/render.py <namespace> <name> > /tmp/plan.yaml

Notes:
- This does NOT attach or update anything.
"""

from __future__ import annotations

import os
import sys

import yaml

# Allow executing from tools/ without installing as a package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from k8s import AgentError  # noqa: E402
from tools.plan import load_plan  # noqa: E402


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print("usage: tools/render.py <namespace> <name>", file=sys.stderr)
        return 2

    try:
        plan = load_plan(argv[0], argv[1])
    except AgentError as e:
        print(f"[plan] failed: {e}", file=sys.stderr)
        return 1
    try:
        yaml.safe_dump(dict(plan), sys.stdout, sort_keys=False)
    except BrokenPipeError:
        # Common when piping to `head`; exit cleanly
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
