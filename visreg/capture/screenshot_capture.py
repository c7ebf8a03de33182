"""Screenshot orchestration: one batched capture per side, saved and published per item."""

from __future__ import annotations

import base64
import binascii
import logging
from collections import Counter
from pathlib import Path
from typing import Protocol, Sequence

from visreg.capture.worker_client import RenderingWorkerClient, WorkerResult
from visreg.classifier.rules import ClassificationRules
from visreg.errors import PublishError
from visreg.models.capture import (
    CaptureRequest,
    CapturedScreenshot,
    CaptureResult,
    ItemFailure,
    ScreenshotId,
    ScreenshotVariant,
    format_screenshot_id,
)
from visreg.models.component import Component
from visreg.url_utils import format_name, normalize_path, slug_from_url

logger = logging.getLogger(__name__)


class ImagePublisher(Protocol):
    async def publish(self, data: bytes, filename: str) -> str: ...


def screenshot_filename(side: str, sid: ScreenshotId) -> str:
    return f"{side}-{format_screenshot_id(sid)}.png"


def screenshot_name(display: str, sid: ScreenshotId, section_title: str | None = None) -> str:
    match sid.variant:
        case ScreenshotVariant.SECTION:
            return f"{display} / {section_title or sid.section}"
        case ScreenshotVariant.OPEN:
            return f"{display} (Open)"
        case _:
            return display


class ScreenshotCapturer:
    """Turns a component set into one worker batch and persists the results."""

    def __init__(
        self,
        worker: RenderingWorkerClient,
        output_dir: Path,
        publisher: ImagePublisher | None = None,
        rules: ClassificationRules | None = None,
    ):
        self.worker = worker
        self.output_dir = output_dir
        self.publisher = publisher
        self.rules = rules or ClassificationRules()

    def build_requests(self, components: Sequence[Component]) -> list[CaptureRequest]:
        """Main view per component, plus an interaction view where an action is registered."""
        requests: list[CaptureRequest] = []
        for component in components:
            requests.append(CaptureRequest(
                url=component.url, capture_sections=True, hide_sidebar=self.worker.hide_sidebar,
            ))
            action = self.rules.action_for(component.id)
            if action:
                requests.append(CaptureRequest(
                    url=component.url,
                    capture_sections=False,
                    hide_sidebar=self.worker.hide_sidebar,
                    actions=[action],
                ))
        return requests

    async def capture(self, base_url: str, components: Sequence[Component], side: str) -> CaptureResult:
        """Capture every component on one side ("before" or "after").

        A failed batch call raises CaptureError. Entries the worker could not
        render, and uploads that fail, are recorded as failures and skipped.
        """
        side_dir = self.output_dir / side
        side_dir.mkdir(parents=True, exist_ok=True)

        requests = self.build_requests(components)
        logger.info("Capturing screenshots from %s...", base_url)
        logger.info("  %d components, %d requests", len(components), len(requests))
        if not requests:
            return CaptureResult(side=side)

        results = await self.worker.capture_batch(base_url, requests)
        ids = self._assign_ids(results, requests)

        by_path = {normalize_path(c.url): c for c in components}
        capture = CaptureResult(side=side)
        seen: set[str] = set()

        for result, sid in zip(results, ids):
            if result.error:
                logger.warning("  Error: %s: %s", result.url, result.error)
                capture.failures.append(ItemFailure(stage="capture", item=result.url, reason=result.error))
                continue
            if not result.image:
                logger.warning("  Empty: %s", result.url)
                capture.failures.append(ItemFailure(stage="capture", item=result.url, reason="empty image"))
                continue

            key = format_screenshot_id(sid)
            if key in seen:
                logger.warning("  Duplicate screenshot id %s from %s", key, result.url)
                capture.failures.append(ItemFailure(stage="capture", item=key, reason="duplicate screenshot id"))
                continue

            try:
                image = base64.b64decode(result.image)
            except (binascii.Error, ValueError) as e:
                logger.warning("  Undecodable image for %s: %s", key, e)
                capture.failures.append(ItemFailure(stage="capture", item=key, reason=f"invalid base64: {e}"))
                continue
            seen.add(key)

            component = by_path.get(normalize_path(result.url))
            display = component.name if component else format_name(sid.component_id)
            name = screenshot_name(display, sid, result.section_title)

            filename = screenshot_filename(side, sid)
            path = side_dir / filename
            path.write_bytes(image)

            remote_url = await self._publish(image, filename, name, capture)
            capture.screenshots.append(CapturedScreenshot(
                id=sid, name=name, local_path=str(path), remote_url=remote_url,
            ))

        logger.info("  %d screenshot(s) captured, %d published, %d failure(s)",
                    len(capture.screenshots), capture.published, len(capture.failures))
        return capture

    async def _publish(self, image: bytes, filename: str, name: str, capture: CaptureResult) -> str | None:
        if self.publisher is None:
            logger.info("  OK: %s (local only)", name)
            return None
        try:
            url = await self.publisher.publish(image, filename)
        except PublishError as e:
            logger.warning("  Upload failed for %s: %s", name, e)
            capture.failures.append(ItemFailure(stage="publish", item=filename, reason=str(e)))
            return None
        logger.info("  OK: %s -> %s", name, url)
        return url

    def _assign_ids(self, results: list[WorkerResult], requests: list[CaptureRequest]) -> list[ScreenshotId]:
        """Derive a screenshot id for every result.

        Priority: section id, then the interaction ("open") variant, then the
        plain main view. A non-section result for a URL that was also
        requested with an action is the interaction view when the main view
        came back as sections; otherwise the first such result is the main
        view and any later one the interaction view.
        """
        interactive = {normalize_path(r.url) for r in requests if r.is_interaction}
        has_sections = Counter(normalize_path(r.url) for r in results if r.section_id)
        plain_seen: Counter[str] = Counter()

        ids: list[ScreenshotId] = []
        for result in results:
            path = normalize_path(result.url)
            slug = slug_from_url(path)
            if result.section_id:
                ids.append(ScreenshotId(
                    component_id=slug, variant=ScreenshotVariant.SECTION, section=result.section_id,
                ))
                continue

            plain_seen[path] += 1
            is_open = path in interactive and (has_sections[path] > 0 or plain_seen[path] > 1)
            variant = ScreenshotVariant.OPEN if is_open else ScreenshotVariant.MAIN
            ids.append(ScreenshotId(component_id=slug, variant=variant))
        return ids
