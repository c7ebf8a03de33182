"""Minimal GitHub REST client for branch refs, file contents and issue comments."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from visreg.errors import PublishError

logger = logging.getLogger(__name__)


class GitHubClient:
    """Bearer-token authenticated calls against one repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        client: httpx.AsyncClient,
        api_base_url: str = "https://api.github.com",
    ):
        self.owner = owner
        self.repo = repo
        self.client = client
        self.api_base_url = api_base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}/repos/{self.owner}/{self.repo}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            return await self.client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise PublishError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _raise_for(response: httpx.Response, what: str) -> None:
        if not response.is_success:
            raise PublishError(
                f"Failed to {what}: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

    # Git refs

    async def get_branch_sha(self, branch: str) -> Optional[str]:
        """Head commit of a branch, or None if the branch does not exist."""
        response = await self._request("GET", f"git/ref/heads/{branch}")
        if response.status_code == 404:
            return None
        self._raise_for(response, f"get ref {branch}")
        return response.json()["object"]["sha"]

    async def create_branch(self, branch: str, sha: str) -> None:
        response = await self._request(
            "POST", "git/refs", json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        self._raise_for(response, f"create branch {branch}")

    # Contents

    async def get_file_sha(self, path: str, ref: str) -> Optional[str]:
        """Blob sha of an existing file on ``ref``, or None when it is absent."""
        response = await self._request("GET", f"contents/{path}", params={"ref": ref})
        if not response.is_success:
            return None
        data = response.json()
        return data.get("sha") if isinstance(data, dict) else None

    async def put_file(
        self,
        path: str,
        content_b64: str,
        branch: str,
        message: str,
        sha: Optional[str] = None,
    ) -> None:
        body: dict[str, Any] = {"message": message, "content": content_b64, "branch": branch}
        if sha:
            body["sha"] = sha
        response = await self._request("PUT", f"contents/{path}", json=body)
        self._raise_for(response, f"upload {path}")

    # Issue comments

    async def list_issue_comments(self, number: str, per_page: int = 100) -> list[dict[str, Any]]:
        """First page of comments on an issue or pull request."""
        response = await self._request(
            "GET", f"issues/{number}/comments", params={"per_page": per_page},
        )
        self._raise_for(response, f"list comments on #{number}")
        return response.json()

    async def create_issue_comment(self, number: str, body: str) -> dict[str, Any]:
        response = await self._request("POST", f"issues/{number}/comments", json={"body": body})
        self._raise_for(response, f"comment on #{number}")
        return response.json()

    async def update_issue_comment(self, comment_id: int, body: str) -> dict[str, Any]:
        response = await self._request("PATCH", f"issues/comments/{comment_id}", json={"body": body})
        self._raise_for(response, f"update comment {comment_id}")
        return response.json()
