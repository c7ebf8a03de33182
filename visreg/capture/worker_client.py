"""HTTP client for the remote screenshot rendering worker."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from visreg.errors import CaptureError
from visreg.models.capture import CaptureRequest
from visreg.models.config import ViewportConfig

logger = logging.getLogger(__name__)


class WorkerResult(BaseModel):
    """One entry of the worker's batch response."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    image: str = ""  # base64 PNG
    error: Optional[str] = None
    section_id: Optional[str] = Field(default=None, alias="sectionId")
    section_title: Optional[str] = Field(default=None, alias="sectionTitle")


class WorkerResponse(BaseModel):
    results: list[WorkerResult] = Field(default_factory=list)


class RenderingWorkerClient:
    """Sends batched capture requests to ``POST {worker_url}/batch``."""

    def __init__(
        self,
        worker_url: str,
        client: httpx.AsyncClient,
        api_key: str = "",
        viewport: ViewportConfig | None = None,
        hide_sidebar: bool = True,
    ):
        self.worker_url = worker_url.rstrip("/")
        self.client = client
        self.api_key = api_key
        self.viewport = viewport or ViewportConfig()
        self.hide_sidebar = hide_sidebar
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def build_payload(self, base_url: str, requests: list[CaptureRequest]) -> dict:
        return {
            "baseUrl": base_url,
            "pages": [r.to_payload() for r in requests],
            "viewport": {"width": self.viewport.width, "height": self.viewport.height},
            "hideSidebar": self.hide_sidebar,
        }

    async def capture_batch(self, base_url: str, requests: list[CaptureRequest]) -> list[WorkerResult]:
        """Render every request against ``base_url`` in one call.

        Raises CaptureError on a transport failure, a non-2xx status or a
        malformed body; per-entry errors are returned for the caller to skip.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        self._call_count += 1
        url = f"{self.worker_url}/batch"
        logger.debug("POST %s (%d pages, base %s)", url, len(requests), base_url)
        try:
            response = await self.client.post(
                url, json=self.build_payload(base_url, requests), headers=headers,
            )
        except httpx.HTTPError as e:
            raise CaptureError(f"Worker request failed: {e}") from e

        if not response.is_success:
            raise CaptureError(
                f"Worker request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            data = WorkerResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise CaptureError(f"Worker returned an unreadable response: {e}") from e

        logger.debug("Worker returned %d result(s)", len(data.results))
        return data.results
