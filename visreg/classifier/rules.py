"""Static path rules that map changed files to visual impact."""

from __future__ import annotations

import re
from functools import lru_cache

from pydantic import BaseModel, Field

from visreg.models.capture import PageAction

# Files that cannot change how any documented surface renders.
SKIPPABLE_PATTERNS = [
    "**/*.md",
    ".changeset/**",
    ".github/**",
    ".vscode/**",
    "ci/**",
    "**/*.test.ts",
    "**/*.test.tsx",
    "**/*.spec.ts",
    "**/*.spec.tsx",
    "**/__tests__/**",
    "**/*.stories.tsx",
    "**/*.snap",
    "pnpm-lock.yaml",
    "package-lock.json",
    "yarn.lock",
    "LICENSE",
    ".gitignore",
    ".prettierrc*",
    "**/eslint.config.*",
]

# Shared visual primitives: a change here can move every component.
BROAD_IMPACT_PATTERNS = [
    "**/shared/**",
    "**/tokens.css",
    "**/tokens/**",
    "**/styles/**",
    "**/theme/**",
    "**/*.theme.css",
    "**/tailwind.config.*",
    "**/primitives/**",
    "**/utils/**",
    "packages/kumo/src/index.ts",
    "packages/kumo/package.json",
]

# One capture group: the component slug.
COMPONENT_PATTERNS = [
    r"(?:^|/)components/([a-z0-9][a-z0-9-]*)/",
    r"(?:^|/)blocks/([a-z0-9][a-z0-9-]*)/",
]

# Representative subset used for canary runs.
CANARY_COMPONENTS = ["button", "input", "select", "dialog", "table", "tabs"]

# Components with an interactive "open" state worth capturing separately.
COMPONENT_ACTIONS: dict[str, PageAction] = {
    "dropdown": PageAction(type="click", selector="[data-demo] button", wait_after=300),
    "select": PageAction(type="click", selector="[data-demo] [role='combobox']", wait_after=300),
    "combobox": PageAction(type="click", selector="[data-demo] input", wait_after=300),
    "popover": PageAction(type="click", selector="[data-demo] button", wait_after=300),
    "dialog": PageAction(type="click", selector="[data-demo] button", wait_after=500),
    "date-range-picker": PageAction(type="click", selector="[data-demo] button", wait_after=300),
    "tooltip": PageAction(type="hover", selector="[data-demo] button", wait_after=300),
}


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern:
    """Compile a path glob.

    '*' and '?' stay within one path segment, '**/' spans any number of
    directories (including none) and a trailing '**' matches everything below.
    """
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out))


def glob_match(path: str, pattern: str) -> bool:
    return _glob_regex(pattern).fullmatch(path) is not None


class ClassificationRules(BaseModel):
    skippable: list[str] = Field(default_factory=lambda: list(SKIPPABLE_PATTERNS))
    broad_impact: list[str] = Field(default_factory=lambda: list(BROAD_IMPACT_PATTERNS))
    component_patterns: list[str] = Field(default_factory=lambda: list(COMPONENT_PATTERNS))
    canary_components: list[str] = Field(default_factory=lambda: list(CANARY_COMPONENTS))
    component_actions: dict[str, PageAction] = Field(
        default_factory=lambda: dict(COMPONENT_ACTIONS)
    )

    def is_skippable(self, path: str) -> bool:
        return any(glob_match(path, p) for p in self.skippable)

    def is_broad_impact(self, path: str) -> bool:
        return any(glob_match(path, p) for p in self.broad_impact)

    def is_ignorable(self, path: str) -> bool:
        """Skippable and matching nothing broader: a broad-impact or component match keeps the file."""
        return (
            self.is_skippable(path)
            and not self.is_broad_impact(path)
            and self.component_for(path) is None
        )

    def component_for(self, path: str) -> str | None:
        """Return the component slug a path belongs to, if any."""
        for pattern in self.component_patterns:
            m = re.search(pattern, path)
            if m:
                return m.group(1)
        return None

    def action_for(self, component_id: str) -> PageAction | None:
        return self.component_actions.get(component_id)
