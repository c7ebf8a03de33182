"""Artifact publisher: stores rasters on a per-run branch and returns raw URLs."""

from __future__ import annotations

import asyncio
import base64
import logging

import httpx

from visreg.errors import MissingCredentialError, PublishError
from visreg.models.config import RunConfig
from visreg.publish.github_client import GitHubClient

logger = logging.getLogger(__name__)


def run_branch_name(pr_number: str | None, run_id: str) -> str:
    return f"vr-screenshots-{pr_number or 'local'}-{run_id}"


class ArtifactPublisher:
    """Uploads images to ``screenshots/{filename}`` on the run branch.

    Re-publishing the same filename on the same run updates the file in place.
    Writes are serialized: every content write is a commit on the run branch.
    """

    def __init__(self, config: RunConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client
        self.branch = run_branch_name(config.pr_number, config.run_id)
        self._github: GitHubClient | None = None
        self._branch_ready = False
        self._lock = asyncio.Lock()

    def _get_github(self) -> GitHubClient:
        if not self.config.github_token:
            raise MissingCredentialError("GITHUB_TOKEN required for image upload")
        if self._github is None:
            self._github = GitHubClient(
                token=self.config.github_token,
                owner=self.config.owner,
                repo=self.config.repo_name,
                client=self.client,
                api_base_url=self.config.api_base_url,
            )
        return self._github

    def raw_url(self, path: str) -> str:
        base = self.config.raw_base_url.rstrip("/")
        return f"{base}/{self.config.owner}/{self.config.repo_name}/{self.branch}/{path}"

    async def _ensure_branch(self, github: GitHubClient) -> None:
        main_sha = await github.get_branch_sha(self.config.main_branch)
        if main_sha is None:
            raise PublishError(f"Failed to get {self.config.main_branch} ref: branch not found", status_code=404)

        if await github.get_branch_sha(self.branch) is None:
            logger.debug("Creating branch %s from %s@%s", self.branch, self.config.main_branch, main_sha[:7])
            await github.create_branch(self.branch, main_sha)
        self._branch_ready = True

    async def publish(self, data: bytes, filename: str) -> str:
        """Upload one image and return its stable raw URL.

        Raises MissingCredentialError without a token, PublishError when any
        API call fails.
        """
        github = self._get_github()
        path = f"screenshots/{filename}"

        async with self._lock:
            if not self._branch_ready:
                await self._ensure_branch(github)
            existing_sha = await github.get_file_sha(path, self.branch)
            await github.put_file(
                path,
                base64.b64encode(data).decode("ascii"),
                branch=self.branch,
                message=f"Visual regression: {filename}",
                sha=existing_sha,
            )

        return self.raw_url(path)
