"""Run configuration for the visual regression pipeline."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_WORKER_URL = "https://kumo-screenshot-worker.design-engineering.workers.dev"
DEFAULT_SITE_URL = "https://kumo-ui.com"
DEFAULT_REPOSITORY = "cloudflare/kumo"
DEFAULT_OUTPUT_DIR = "ci/visual-regression/screenshots"


class ViewportConfig(BaseModel):
    width: int = 1440
    height: int = 900


class DiffOptions(BaseModel):
    """Pixel comparison tuning. Colors are RGB triples."""

    threshold: float = 0.1
    alpha: float = 0.3
    diff_color: tuple[int, int, int] = (255, 0, 0)
    aa_color: tuple[int, int, int] = (255, 255, 0)
    include_anti_aliasing: bool = False

    @field_validator("threshold", "alpha")
    @classmethod
    def check_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"must be between 0 and 1, got {v}")
        return v


def _default_run_id() -> str:
    return str(int(time.time() * 1000))


class RunConfig(BaseModel):
    # Rendering worker
    worker_url: str = DEFAULT_WORKER_URL
    worker_api_key: str = ""
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    hide_sidebar: bool = True

    # Sites under comparison
    before_url: str = DEFAULT_SITE_URL
    after_url: str = DEFAULT_SITE_URL

    # Change request / source hosting
    base_ref: str = "main"
    github_token: Optional[str] = None
    repository: str = DEFAULT_REPOSITORY
    pr_number: Optional[str] = None
    run_id: str = Field(default_factory=_default_run_id)
    main_branch: str = "main"
    api_base_url: str = "https://api.github.com"
    raw_base_url: str = "https://raw.githubusercontent.com"

    # Local output
    output_dir: str = DEFAULT_OUTPUT_DIR

    # Comparison
    diff: DiffOptions = Field(default_factory=DiffOptions)
    compare_concurrency: int = 4
    request_timeout_seconds: Optional[float] = None  # None: no timeout enforced

    @field_validator("repository")
    @classmethod
    def check_repository(cls, v: str) -> str:
        owner, sep, name = v.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"repository must look like 'owner/name', got '{v}'")
        return v

    @field_validator("worker_url", "before_url", "after_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("compare_concurrency")
    @classmethod
    def check_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("compare_concurrency must be at least 1")
        return v

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo_name(self) -> str:
        return self.repository.split("/", 1)[1]

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RunConfig":
        """Build the run configuration from CI environment variables."""
        env = os.environ if environ is None else environ

        def get(*names: str) -> str | None:
            for name in names:
                value = env.get(name)
                if value:
                    return value
            return None

        data: dict = {}
        before_url = get("BEFORE_URL") or DEFAULT_SITE_URL
        data["before_url"] = before_url
        data["after_url"] = get("AFTER_URL", "PREVIEW_URL") or before_url

        simple = {
            "worker_url": "SCREENSHOT_WORKER_URL",
            "worker_api_key": "SCREENSHOT_API_KEY",
            "base_ref": "GITHUB_BASE_REF",
            "github_token": "GITHUB_TOKEN",
            "repository": "GITHUB_REPOSITORY",
            "run_id": "GITHUB_RUN_ID",
            "output_dir": "VISUAL_REGRESSION_OUTPUT_DIR",
        }
        for field_name, env_name in simple.items():
            value = get(env_name)
            if value is not None:
                data[field_name] = value

        pr_number = get("GITHUB_PR_NUMBER", "PR_NUMBER")
        if pr_number is not None:
            data["pr_number"] = pr_number

        diff: dict = {}
        threshold = get("VISUAL_DIFF_THRESHOLD")
        if threshold is not None:
            diff["threshold"] = float(threshold)
        alpha = get("VISUAL_DIFF_ALPHA")
        if alpha is not None:
            diff["alpha"] = float(alpha)
        if diff:
            data["diff"] = DiffOptions(**diff)

        return cls(**data)
