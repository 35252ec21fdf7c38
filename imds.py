# imds.py
"""Resolve the address of the node the agent runs on.

NODE_IP (usually wired from the downward API's status.hostIP) wins. Without it
we ask EC2 instance metadata for local-ipv4. Any failure yields "" so the pod
selector matches nothing instead of everything.
"""

from __future__ import annotations

from http.client import HTTPException
from urllib.error import URLError
from urllib.request import Request, urlopen

IMDS_BASE = "http://169.254.169.254/latest"
TOKEN_TTL_SECONDS = "21600"


def _imds_token(timeout: float) -> str | None:
    req = Request(
        f"{IMDS_BASE}/api/token",
        method="PUT",
        headers={"X-aws-ec2-metadata-token-ttl-seconds": TOKEN_TTL_SECONDS},
    )
    try:
        with urlopen(req, timeout=timeout) as resp:
            return resp.read().decode().strip() or None
    except (URLError, OSError, HTTPException, ValueError):
        # IMDSv1-only instances reject the token call
        return None


def get_metadata(path: str, timeout: float = 2.0) -> str:
    headers = {}
    token = _imds_token(timeout)
    if token:
        headers["X-aws-ec2-metadata-token"] = token
    req = Request(f"{IMDS_BASE}/meta-data/{path}", headers=headers)
    with urlopen(req, timeout=timeout) as resp:
        return resp.read().decode().strip()


def local_address(env_override: str = "", timeout: float = 2.0) -> str:
    if env_override:
        return env_override.strip()
    try:
        return get_metadata("local-ipv4", timeout=timeout)
    except (URLError, OSError, HTTPException, ValueError) as e:
        print(f"[imds] could not resolve node address: {e}; no pods will be selected")
        return ""
