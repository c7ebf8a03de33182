"""Diff, comparison and run summary data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, computed_field

from visreg.models.capture import ItemFailure


def percent_of(diff_pixels: int, width: int, height: int) -> float:
    """Share of changed pixels, as a percentage rounded to two decimals."""
    total = width * height
    if total <= 0:
        return 0.0
    return round(diff_pixels / total * 100, 2)


class DiffResult(BaseModel):
    changed: bool
    diff_pixels: int = 0
    width: int = 0
    height: int = 0
    diff_image: Optional[bytes] = Field(default=None, repr=False)  # PNG

    @computed_field
    @property
    def diff_percent(self) -> float:
        return percent_of(self.diff_pixels, self.width, self.height)


class ComparisonResult(BaseModel):
    id: str
    name: str
    before_url: str
    after_url: str
    diff_url: Optional[str] = None
    changed: bool
    diff_pixels: int = 0
    width: int = 0
    height: int = 0

    @computed_field
    @property
    def diff_percent(self) -> float:
        return percent_of(self.diff_pixels, self.width, self.height)


class RunSummary(BaseModel):
    run_id: str
    scope: str
    components: list[str] = Field(default_factory=list)
    started_at: str = ""
    duration_seconds: float = 0.0
    captured_before: int = 0
    captured_after: int = 0
    comparisons: list[ComparisonResult] = Field(default_factory=list)
    failures: list[ItemFailure] = Field(default_factory=list)
    report_path: Optional[str] = None
    comment_action: Optional[str] = None  # created, updated

    @property
    def changed(self) -> int:
        return sum(1 for c in self.comparisons if c.changed)

    @property
    def unchanged(self) -> int:
        return sum(1 for c in self.comparisons if not c.changed)
