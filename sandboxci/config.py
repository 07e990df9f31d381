from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import DEFAULT_API_BASE_URL, DEFAULT_HTTP_TIMEOUT, WEBHOOK_ENDPOINT


@dataclass(frozen=True)
class Settings:
    api_base_url: str = DEFAULT_API_BASE_URL
    token: str = ""
    webhook_url: Optional[str] = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    jobs: int = 1

    @property
    def resolved_webhook_url(self) -> str:
        return self.webhook_url or self.api_base_url.rstrip("/") + WEBHOOK_ENDPOINT

    def auth_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        try:
            timeout = float(env.get("SANDBOXCI_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT))
            jobs = int(env.get("SANDBOXCI_JOBS", "1"))
        except ValueError as exc:
            raise ValueError(f"Invalid sandboxci setting in environment: {exc}") from exc
        return cls(
            api_base_url=env.get("BUILDBEAR_BASE_URL") or DEFAULT_API_BASE_URL,
            token=env.get("BUILDBEAR_TOKEN", ""),
            webhook_url=env.get("SANDBOXCI_WEBHOOK_URL") or None,
            http_timeout=timeout,
            jobs=max(1, jobs),
        )
