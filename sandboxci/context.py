from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ActionContext:
    """Identity of the CI run that produced an artifact.

    Passed explicitly to everything that reports to the backend.
    """
    repo_owner: str
    repo_name: str
    run_id: str
    commit_sha: str
    workflow_name: str

    @property
    def action_url(self) -> str:
        return f"https://github.com/{self.repo_owner}/{self.repo_name}/actions/runs/{self.run_id}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ActionContext":
        env = os.environ if environ is None else environ
        repository = env.get("GITHUB_REPOSITORY", "")
        owner, _, name = repository.partition("/")
        return cls(
            repo_owner=owner,
            repo_name=name,
            run_id=env.get("GITHUB_RUN_ID", ""),
            commit_sha=env.get("GITHUB_SHA", ""),
            workflow_name=env.get("GITHUB_WORKFLOW", ""),
        )
