from __future__ import annotations

import base64
import logging
import os
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .constants import (
    ARTIFACT_CONTENT_TYPE,
    STATUS_SUCCESS,
    WEBHOOK_TASK_AUTO_VERIFICATION,
    WEBHOOK_TASK_SIMULATE_TEST,
)
from .context import ActionContext
from .errors import ArchiveIOError, WebhookError
from .manifest import iso_timestamp


log = logging.getLogger(__name__)


def _envelope(
    task: str,
    context: ActionContext,
    meta: Dict[str, Any],
    default_message: str,
    now: str,
) -> Dict[str, Any]:
    return {
        "status": meta.get("status") or STATUS_SUCCESS,
        "task": task,
        "timestamp": now,
        "payload": {
            "repositoryName": context.repo_name,
            "repositoryOwner": context.repo_owner,
            "actionUrl": context.action_url,
            "commitHash": context.commit_sha,
            "workflow": context.workflow_name,
            "message": meta.get("message") or default_message,
        },
    }


def build_webhook_payload(
    archive_path: str,
    context: ActionContext,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Shape an archive and its run metadata into the backend's webhook body."""
    meta = metadata or {}
    try:
        with open(archive_path, "rb") as fh:
            data = base64.b64encode(fh.read()).decode("ascii")
    except OSError as exc:
        raise ArchiveIOError(f"Cannot read archive {archive_path}: {exc}") from exc
    now = iso_timestamp()
    body = _envelope(WEBHOOK_TASK_SIMULATE_TEST, context, meta, f"Test artifacts uploaded at {now}", now)
    body["payload"]["testsArtifacts"] = {
        "filename": os.path.basename(archive_path),
        "contentType": ARTIFACT_CONTENT_TYPE,
        "data": data,
        "metadata": {
            "originalSize": meta.get("originalSize", 0),
            "compressedSize": meta.get("compressedSize", 0),
            "fileCount": meta.get("fileCount", 0),
            "timestamp": meta.get("timestamp") or now,
        },
    }
    return body


def build_contract_artifacts_payload(
    artifacts: Dict[str, Any],
    context: ActionContext,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Wrap grouped contract artifacts in the ``auto_verification`` webhook body."""
    now = iso_timestamp()
    body = _envelope(
        WEBHOOK_TASK_AUTO_VERIFICATION,
        context,
        metadata or {},
        f"Contract artifacts uploaded at {now}",
        now,
    )
    body["payload"]["artifacts"] = artifacts
    return body


def _post(payload: Dict[str, Any], settings: Settings, client: Optional[httpx.Client], what: str) -> Any:
    url = settings.resolved_webhook_url
    own_client = client is None
    http = client or httpx.Client(timeout=settings.http_timeout)
    try:
        resp = http.post(url, json=payload, headers=settings.auth_headers())
    except httpx.HTTPError as exc:
        raise WebhookError(f"Webhook delivery to {url} failed: {exc}") from exc
    finally:
        if own_client:
            http.close()
    if resp.status_code < 200 or resp.status_code >= 300:
        raise WebhookError(f"Webhook {url} answered {resp.status_code}: {resp.text[:200]}")
    log.info("Successfully sent %s to backend. Status: %d", what, resp.status_code)
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def send_compressed_data(
    archive_path: str,
    context: ActionContext,
    settings: Settings,
    metadata: Optional[Dict[str, Any]] = None,
    *,
    client: Optional[httpx.Client] = None,
) -> Any:
    """POST an archive to the backend webhook and return the decoded reply.

    Raises:
        WebhookError: On transport failure or a non-2xx response.
    """
    payload = build_webhook_payload(archive_path, context, metadata)
    log.info("Sending compressed artifacts to backend: %s", archive_path)
    return _post(payload, settings, client, "test artifacts")


def send_contract_artifacts(
    artifacts: Dict[str, Any],
    context: ActionContext,
    settings: Settings,
    metadata: Optional[Dict[str, Any]] = None,
    *,
    client: Optional[httpx.Client] = None,
) -> Any:
    """POST contract artifacts for auto-verification; same delivery rules as
    :func:`send_compressed_data`."""
    payload = build_contract_artifacts_payload(artifacts, context, metadata)
    log.info("Sending %d contract artifacts to backend", len(artifacts))
    return _post(payload, settings, client, "contract artifacts")
