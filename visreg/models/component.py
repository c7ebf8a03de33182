"""Component catalog and change classification data structures."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Component(BaseModel):
    id: str  # URL slug, e.g. "button"
    name: str
    url: str  # site-relative path, e.g. "/components/button"
    category: str = "components"


class Scope(str, Enum):
    SKIP = "skip"
    TARGETED = "targeted"
    CANARY = "canary"
    FULL = "full"


class Classification(BaseModel):
    scope: Scope
    components: list[Component] = Field(default_factory=list)
    reason: str = ""
    matched_files: list[str] = Field(default_factory=list)

    @property
    def component_ids(self) -> list[str]:
        return [c.id for c in self.components]
