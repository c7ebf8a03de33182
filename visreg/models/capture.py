"""Capture request and screenshot data structures."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class PageAction(BaseModel):
    type: str  # click, hover
    selector: str
    wait_after: Optional[int] = None  # milliseconds

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type, "selector": self.selector}
        if self.wait_after is not None:
            payload["waitAfter"] = self.wait_after
        return payload


class CaptureRequest(BaseModel):
    url: str
    capture_sections: bool = True
    hide_sidebar: bool = True
    actions: Optional[list[PageAction]] = None

    @property
    def is_interaction(self) -> bool:
        return bool(self.actions)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url": self.url,
            "captureSections": self.capture_sections,
            "hideSidebar": self.hide_sidebar,
        }
        if self.actions:
            payload["actions"] = [a.to_payload() for a in self.actions]
        return payload


class ScreenshotVariant(str, Enum):
    MAIN = "main"
    OPEN = "open"
    SECTION = "section"


class ScreenshotId(BaseModel):
    """Tagged identifier of one screenshot: component plus view variant."""

    model_config = {"frozen": True}

    component_id: str
    variant: ScreenshotVariant = ScreenshotVariant.MAIN
    section: Optional[str] = None

    @model_validator(mode="after")
    def check_section(self) -> "ScreenshotId":
        if (self.variant == ScreenshotVariant.SECTION) != bool(self.section):
            raise ValueError("section is required for, and only for, the SECTION variant")
        return self

    def __str__(self) -> str:
        return format_screenshot_id(self)


def format_screenshot_id(sid: ScreenshotId) -> str:
    """Render a screenshot id as the string used in filenames and reports."""
    match sid.variant:
        case ScreenshotVariant.SECTION:
            return f"{sid.component_id}-{sid.section}"
        case ScreenshotVariant.OPEN:
            return f"{sid.component_id}-open"
        case _:
            return sid.component_id


class CapturedScreenshot(BaseModel):
    id: ScreenshotId
    name: str
    local_path: str
    remote_url: Optional[str] = None

    @property
    def key(self) -> str:
        return format_screenshot_id(self.id)


class ItemFailure(BaseModel):
    """A recoverable per-item failure; the item is left out of the comparison."""

    stage: str  # capture, publish, diff_publish, compare
    item: str
    reason: str


class CaptureResult(BaseModel):
    side: str  # before, after
    screenshots: list[CapturedScreenshot] = Field(default_factory=list)
    failures: list[ItemFailure] = Field(default_factory=list)

    @property
    def published(self) -> int:
        return sum(1 for s in self.screenshots if s.remote_url)
