"""Comparison orchestration: pairs before/after screenshots by id and diffs them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from visreg.capture.screenshot_capture import ImagePublisher
from visreg.diff.image_diff import compare_image_files
from visreg.errors import PublishError
from visreg.models.capture import CapturedScreenshot, ItemFailure
from visreg.models.comparison import ComparisonResult
from visreg.models.config import DiffOptions

logger = logging.getLogger(__name__)


@dataclass
class ComparisonOutcome:
    results: list[ComparisonResult] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)


def paired_ids(before: list[CapturedScreenshot], after: list[CapturedScreenshot]) -> list[str]:
    """Union of screenshot ids: before order first, then ids only seen after."""
    ids: dict[str, None] = {}
    for shot in [*before, *after]:
        ids.setdefault(shot.key, None)
    return list(ids)


class Comparator:
    """Diffs every published before/after pair and publishes changed diff images.

    Pairs are processed in a bounded pool; results keep the capture order.
    """

    def __init__(
        self,
        diff_dir: Path,
        publisher: ImagePublisher | None = None,
        options: DiffOptions | None = None,
        concurrency: int = 4,
    ):
        self.diff_dir = diff_dir
        self.publisher = publisher
        self.options = options or DiffOptions()
        self.concurrency = max(1, concurrency)

    async def compare(
        self,
        before: list[CapturedScreenshot],
        after: list[CapturedScreenshot],
    ) -> ComparisonOutcome:
        before_map = {s.key: s for s in before}
        after_map = {s.key: s for s in after}
        outcome = ComparisonOutcome()

        pairs: list[tuple[str, CapturedScreenshot, CapturedScreenshot]] = []
        for sid in paired_ids(before, after):
            b, a = before_map.get(sid), after_map.get(sid)
            if b is None or a is None:
                side = "after" if b is None else "before"
                logger.info("  %s: skipped (no %s screenshot)", (b or a).name, side)
                continue
            if not b.remote_url or not a.remote_url:
                logger.info("  %s: skipped (upload failed)", b.name)
                continue
            pairs.append((sid, b, a))

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(sid: str, b: CapturedScreenshot, a: CapturedScreenshot):
            async with semaphore:
                return await self._compare_pair(sid, b, a)

        # gather keeps argument order, so completion order cannot reorder the report
        pair_outcomes = await asyncio.gather(*(run(*p) for p in pairs))
        for result, failure in pair_outcomes:
            if result is not None:
                outcome.results.append(result)
            if failure:
                outcome.failures.append(failure)
        return outcome

    async def _compare_pair(
        self, sid: str, before: CapturedScreenshot, after: CapturedScreenshot,
    ) -> tuple[ComparisonResult | None, ItemFailure | None]:
        try:
            diff = await asyncio.to_thread(
                compare_image_files, Path(before.local_path), Path(after.local_path), self.options,
            )
        except OSError as e:
            # PIL.UnidentifiedImageError is an OSError
            logger.warning("  %s: skipped (unreadable image: %s)", before.name, e)
            return None, ItemFailure(stage="compare", item=sid, reason=f"unreadable image: {e}")

        failure: ItemFailure | None = None
        diff_url: str | None = None
        if diff.changed and diff.diff_image:
            filename = f"diff-{sid}.png"
            self.diff_dir.mkdir(parents=True, exist_ok=True)
            (self.diff_dir / filename).write_bytes(diff.diff_image)

            if self.publisher is not None:
                try:
                    diff_url = await self.publisher.publish(diff.diff_image, filename)
                except PublishError as e:
                    logger.warning("  Diff upload failed for %s: %s", before.name, e)
                    failure = ItemFailure(stage="diff_publish", item=filename, reason=str(e))

        if diff.changed:
            logger.info("  %s: CHANGED (%d px, %s%%)", before.name, diff.diff_pixels, diff.diff_percent)
        else:
            logger.info("  %s: unchanged", before.name)

        result = ComparisonResult(
            id=sid,
            name=before.name,
            before_url=before.remote_url,
            after_url=after.remote_url,
            diff_url=diff_url,
            changed=diff.changed,
            diff_pixels=diff.diff_pixels,
            width=diff.width,
            height=diff.height,
        )
        return result, failure
