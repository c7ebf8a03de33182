"""Status publisher: keeps exactly one marker-tagged report comment per change request."""

from __future__ import annotations

import logging

import httpx

from visreg.errors import MissingCredentialError
from visreg.models.config import RunConfig
from visreg.publish.github_client import GitHubClient
from visreg.reporter.markdown_report import REPORT_MARKER

logger = logging.getLogger(__name__)


class StatusPublisher:
    """Creates the report comment once, then edits it in place on later runs.

    Only the first page of comments is scanned; on a thread with more
    comments than that, an older report comment can be missed and a second
    one created.
    """

    def __init__(self, config: RunConfig, client: httpx.AsyncClient, marker: str = REPORT_MARKER):
        self.config = config
        self.client = client
        self.marker = marker

    def _get_github(self) -> GitHubClient:
        if not self.config.github_token or not self.config.pr_number:
            raise MissingCredentialError("GITHUB_TOKEN and GITHUB_PR_NUMBER required to post the report")
        return GitHubClient(
            token=self.config.github_token,
            owner=self.config.owner,
            repo=self.config.repo_name,
            client=self.client,
            api_base_url=self.config.api_base_url,
        )

    async def find_existing(self, github: GitHubClient) -> dict | None:
        comments = await github.list_issue_comments(self.config.pr_number)
        for comment in comments:
            body = comment.get("body") or ""
            if body.startswith(self.marker):
                return comment
        return None

    async def upsert(self, body: str) -> str:
        """Update the existing report comment or create one. Returns "updated" or "created"."""
        github = self._get_github()
        existing = await self.find_existing(github)
        if existing:
            await github.update_issue_comment(existing["id"], body)
            action = "updated"
        else:
            await github.create_issue_comment(self.config.pr_number, body)
            action = "created"
        logger.info("PR comment %s", action)
        return action
