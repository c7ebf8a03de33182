"""Pipeline orchestrator: coordinates discover, classify, capture, compare and publish stages."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import AsyncIterator

import httpx

from visreg.capture.screenshot_capture import ScreenshotCapturer
from visreg.capture.worker_client import RenderingWorkerClient
from visreg.classifier.changed_files import get_changed_files
from visreg.classifier.classifier import classify_changed_files
from visreg.classifier.rules import ClassificationRules
from visreg.comparison.comparator import Comparator
from visreg.discovery.discoverer import discover_components
from visreg.models.comparison import RunSummary
from visreg.models.component import Classification, Component, Scope
from visreg.models.config import RunConfig
from visreg.publish.artifacts import ArtifactPublisher
from visreg.publish.status_comment import StatusPublisher
from visreg.reporter.json_report import generate_json_report
from visreg.reporter.markdown_report import generate_markdown_report

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs one visual regression pass for a change request."""

    def __init__(
        self,
        config: RunConfig,
        force_full: bool = False,
        rules: ClassificationRules | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.force_full = force_full
        self.rules = rules or ClassificationRules()
        self.http_client = http_client
        self.output_dir = config.output_path

    def run(self) -> RunSummary:
        """Execute the complete pipeline."""
        return asyncio.run(self.run_async())

    @contextlib.asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient(
            timeout=self.config.request_timeout_seconds, follow_redirects=True,
        ) as client:
            yield client

    async def run_async(self) -> RunSummary:
        start = time.time()
        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(start))

        async with self._client() as client:
            logger.info("Discovering components from docs site...")
            catalog = await discover_components(self.config.before_url, client)
            logger.info("Found %d components", len(catalog))

            classification = self._classify(catalog)
            summary = RunSummary(
                run_id=self.config.run_id,
                scope=classification.scope.value,
                components=classification.component_ids,
                started_at=started_at,
            )
            if classification.scope == Scope.SKIP:
                logger.info("%s. Skipping visual regression.", classification.reason.capitalize())
                summary.duration_seconds = round(time.time() - start, 2)
                return summary

            components = classification.components
            publisher = ArtifactPublisher(self.config, client)
            worker = RenderingWorkerClient(
                self.config.worker_url,
                client,
                api_key=self.config.worker_api_key,
                viewport=self.config.viewport,
                hide_sidebar=self.config.hide_sidebar,
            )
            capturer = ScreenshotCapturer(worker, self.output_dir, publisher, self.rules)

            try:
                logger.info("=== Capturing BEFORE screenshots ===")
                before = await capturer.capture(self.config.before_url, components, "before")
                logger.info("=== Capturing AFTER screenshots ===")
                after = await capturer.capture(self.config.after_url, components, "after")
                summary.captured_before = len(before.screenshots)
                summary.captured_after = len(after.screenshots)
                summary.failures.extend(before.failures)
                summary.failures.extend(after.failures)

                logger.info("=== Comparing screenshots ===")
                comparator = Comparator(
                    self.output_dir / "diff",
                    publisher=publisher,
                    options=self.config.diff,
                    concurrency=self.config.compare_concurrency,
                )
                outcome = await comparator.compare(before.screenshots, after.screenshots)
                summary.comparisons = outcome.results
                summary.failures.extend(outcome.failures)

                logger.info("=== Generating report ===")
                report = generate_markdown_report(outcome.results)
                report_path = self.output_dir / "report.md"
                report_path.write_text(report)
                summary.report_path = str(report_path)

                summary.comment_action = await StatusPublisher(self.config, client).upsert(report)
            finally:
                # written even when a stage fails
                summary.duration_seconds = round(time.time() - start, 2)
                generate_json_report(summary, self.output_dir / "run_summary.json")

        if summary.failures:
            logger.warning("%d item(s) were left out of the comparison; see run_summary.json",
                           len(summary.failures))
        logger.info("=== Visual regression complete in %.1fs ===", summary.duration_seconds)
        return summary

    def _classify(self, catalog: list[Component]) -> Classification:
        if self.force_full:
            classification = classify_changed_files(None, catalog, self.rules, force_full=True)
            logger.info("Running full visual regression (%d components)...", len(classification.components))
            return classification

        changed_files = get_changed_files(self.config.base_ref)
        classification = classify_changed_files(changed_files, catalog, self.rules)

        match classification.scope:
            case Scope.FULL:
                logger.info("Running full visual regression (%d components, git diff unavailable)...",
                            len(classification.components))
            case Scope.CANARY:
                logger.info("Broad-impact files changed (running canary regression):")
                for path in classification.matched_files[:10]:
                    logger.info("  - %s", path)
                if len(classification.matched_files) > 10:
                    logger.info("  ... and %d more", len(classification.matched_files) - 10)
                logger.info("Running canary regression on %d representative component(s):",
                            len(classification.components))
                for c in classification.components:
                    logger.info("  - %s (%s)", c.name, c.url)
            case Scope.TARGETED:
                logger.info("Found %d affected component(s):", len(classification.components))
                for c in classification.components:
                    logger.info("  - %s (%s)", c.name, c.url)
        return classification
