from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .config import Settings
from .constants import LIVENESS_DELAY_SEC, LIVENESS_MAX_RETRIES, SANDBOX_ENDPOINT
from .errors import SandboxError


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SandboxNode:
    rpc_url: str
    mnemonic: str
    sandbox_id: str


def make_sandbox_id(repo_name: str, commit_sha: str) -> str:
    return f"{repo_name}-{commit_sha[:8]}-{os.urandom(4).hex()}"


def create_sandbox(
    settings: Settings,
    *,
    repo_name: str,
    commit_sha: str,
    chain_id: int,
    block_number: Optional[int] = None,
    client: Optional[httpx.Client] = None,
) -> SandboxNode:
    """Ask the provisioning API for a forked sandbox node."""
    if not settings.token:
        raise SandboxError("A bearer token is required to create a sandbox (set BUILDBEAR_TOKEN)")
    sandbox_id = make_sandbox_id(repo_name, commit_sha)
    url = settings.api_base_url.rstrip("/") + SANDBOX_ENDPOINT
    body = {"chainId": int(chain_id), "nodeName": sandbox_id}
    if block_number is not None:
        body["blockNumber"] = int(block_number)

    own_client = client is None
    http = client or httpx.Client(timeout=settings.http_timeout)
    try:
        resp = http.post(url, json=body, headers=settings.auth_headers())
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as exc:
        raise SandboxError(f"Sandbox creation failed with {exc.response.status_code}: {exc.response.text[:200]}") from exc
    except (httpx.HTTPError, ValueError) as exc:
        raise SandboxError(f"Sandbox creation failed: {exc}") from exc
    finally:
        if own_client:
            http.close()

    try:
        node = SandboxNode(rpc_url=data["rpcUrl"], mnemonic=data["mnemonic"], sandbox_id=sandbox_id)
    except (KeyError, TypeError) as exc:
        raise SandboxError(f"Unexpected sandbox response, missing {exc}") from exc
    log.info("Created sandbox %s at %s", sandbox_id, node.rpc_url)
    return node


def check_node_liveness(
    rpc_url: str,
    *,
    max_retries: int = LIVENESS_MAX_RETRIES,
    delay: float = LIVENESS_DELAY_SEC,
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``eth_chainId`` until the node answers or retries run out."""
    request = {"jsonrpc": "2.0", "id": 1, "method": "eth_chainId", "params": []}
    own_client = client is None
    http = client or httpx.Client(timeout=delay or None)
    try:
        for attempt in range(1, max_retries + 1):
            try:
                resp = http.post(rpc_url, json=request)
                if resp.status_code == 200 and resp.json().get("result"):
                    log.info("Sandbox is live: %s", rpc_url)
                    return True
            except (httpx.HTTPError, ValueError, AttributeError) as exc:
                log.debug("liveness check error: %s", exc)
            log.warning("Attempt %d: sandbox is not live yet. Retrying...", attempt)
            if attempt < max_retries:
                sleep(delay)
    finally:
        if own_client:
            http.close()
    log.error("Node did not become live after %d attempts.", max_retries)
    return False
