"""Pytest configuration and shared fixtures."""

import base64
import io
import json
import re
from typing import Any, Callable, Optional

import httpx
import pytest
from PIL import Image

from visreg.models.component import Component
from visreg.models.config import RunConfig


# ============================================================================
# Image helpers
# ============================================================================


def make_png(
    width: int = 20,
    height: int = 10,
    color: tuple = (255, 255, 255, 255),
    extra_rows: int = 0,
    extra_color: tuple = (0, 0, 0, 255),
) -> bytes:
    """Encode a solid-color PNG, optionally with extra rows of a second color at the bottom."""
    img = Image.new("RGBA", (width, height + extra_rows), color)
    if extra_rows:
        img.paste(Image.new("RGBA", (width, extra_rows), extra_color), (0, height))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png() -> Callable[..., bytes]:
    """Factory for solid-color PNG bytes."""
    return make_png


# ============================================================================
# Catalog / configuration fixtures
# ============================================================================


CATALOG = [
    ("button", "Button", "components"),
    ("dialog", "Dialog", "components"),
    ("dropdown", "Dropdown", "components"),
    ("input", "Input", "components"),
    ("select", "Select", "components"),
    ("table", "Table", "components"),
    ("tabs", "Tabs", "components"),
    ("tooltip", "Tooltip", "components"),
    ("page-header", "Page Header", "blocks"),
]


@pytest.fixture
def catalog() -> list[Component]:
    """The docs site catalog served by the fake site."""
    return [
        Component(id=slug, name=name, url=f"/{category}/{slug}", category=category)
        for slug, name, category in CATALOG
    ]


@pytest.fixture
def run_config(tmp_path) -> RunConfig:
    """A run configuration pointing at the fake services."""
    return RunConfig(
        worker_url="https://worker.test",
        worker_api_key="worker-key",
        before_url="https://docs.test",
        after_url="https://preview.test",
        github_token="gh-token",
        repository="acme/docs",
        pr_number="42",
        run_id="1001",
        api_base_url="https://api.github.test",
        raw_base_url="https://raw.github.test",
        output_dir=str(tmp_path / "screenshots"),
        compare_concurrency=2,
    )


# ============================================================================
# Fake services
# ============================================================================


def catalog_html(entries=CATALOG) -> str:
    links = "\n".join(
        f'<li><a href="/{category}/{slug}">{name}</a></li>' for slug, name, category in entries
    )
    return f"""<html><body>
      <nav><ul>
        <li><a href="/">Home</a></li>
        <li><a href="/installation">Installation</a></li>
        {links}
      </ul></nav>
      <main><a href="/components/button/">Button</a></main>
    </body></html>"""


class FakeSite:
    """Serves the docs landing page."""

    def __init__(self, html: str | None = None, status: int = 200):
        self.html = catalog_html() if html is None else html
        self.status = status
        self.requests: list[str] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        return httpx.Response(self.status, text=self.html)


class FakeWorker:
    """Rendering worker: one plain screenshot per requested page.

    ``images`` maps (host, page url, has_actions) to PNG bytes; ``render``
    replaces the default behaviour entirely.
    """

    def __init__(self, status: int = 200):
        self.status = status
        self.calls: list[dict[str, Any]] = []
        self.headers: list[httpx.Headers] = []
        self.images: dict[tuple[str, str, bool], bytes] = {}
        self.render: Optional[Callable[[dict], list[dict]]] = None
        self.default_image = make_png()

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.calls.append(payload)
        self.headers.append(request.headers)
        if self.status >= 400:
            return httpx.Response(self.status, text="worker exploded")
        if self.render is not None:
            return httpx.Response(200, json={"results": self.render(payload)})

        host = httpx.URL(payload["baseUrl"]).host
        results = []
        for page in payload["pages"]:
            key = (host, page["url"], bool(page.get("actions")))
            image = self.images.get(key, self.default_image)
            results.append({
                "url": payload["baseUrl"] + page["url"],
                "image": base64.b64encode(image).decode(),
            })
        return httpx.Response(200, json={"results": results})


class FakeGitHub:
    """In-memory subset of the GitHub REST API used by the publishers."""

    def __init__(self, owner: str = "acme", repo: str = "docs"):
        self.prefix = f"/repos/{owner}/{repo}/"
        self.branches: dict[str, str] = {"main": "mainsha0001"}
        self.files: dict[tuple[str, str], dict[str, str]] = {}
        self.comments: list[dict[str, Any]] = []
        self.requests: list[tuple[str, str]] = []
        self.fail_uploads: set[str] = set()
        self.fail_all = False
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if not path.startswith(self.prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        rest = path[len(self.prefix):]
        method = request.method
        self.requests.append((method, rest))

        if self.fail_all:
            return httpx.Response(500, json={"message": "boom"})

        if method == "GET" and rest.startswith("git/ref/heads/"):
            branch = rest[len("git/ref/heads/"):]
            if branch not in self.branches:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"object": {"sha": self.branches[branch]}})

        if method == "POST" and rest == "git/refs":
            body = json.loads(request.content)
            branch = body["ref"].removeprefix("refs/heads/")
            if branch in self.branches:
                return httpx.Response(422, json={"message": "Reference already exists"})
            self.branches[branch] = body["sha"]
            return httpx.Response(201, json={"ref": body["ref"]})

        if rest.startswith("contents/"):
            file_path = rest[len("contents/"):]
            if method == "GET":
                entry = self.files.get((request.url.params.get("ref"), file_path))
                if entry is None:
                    return httpx.Response(404, json={"message": "Not Found"})
                return httpx.Response(200, json={"sha": entry["sha"], "path": file_path})
            if method == "PUT":
                body = json.loads(request.content)
                if file_path.rsplit("/", 1)[-1] in self.fail_uploads:
                    return httpx.Response(500, json={"message": "upload failed"})
                key = (body["branch"], file_path)
                existing = self.files.get(key)
                if existing and body.get("sha") != existing["sha"]:
                    return httpx.Response(409, json={"message": "sha mismatch"})
                self.files[key] = {"sha": f"blob{self._next()}", "content": body["content"]}
                return httpx.Response(200 if existing else 201, json={"content": {"path": file_path}})

        m = re.fullmatch(r"issues/(\d+)/comments", rest)
        if m:
            if method == "GET":
                return httpx.Response(200, json=self.comments)
            if method == "POST":
                comment = {"id": self._next(), "body": json.loads(request.content)["body"]}
                self.comments.append(comment)
                return httpx.Response(201, json=comment)

        m = re.fullmatch(r"issues/comments/(\d+)", rest)
        if m and method == "PATCH":
            for comment in self.comments:
                if comment["id"] == int(m.group(1)):
                    comment["body"] = json.loads(request.content)["body"]
                    return httpx.Response(200, json=comment)
            return httpx.Response(404, json={"message": "Not Found"})

        return httpx.Response(404, json={"message": "Not Found"})

    def uploaded(self) -> list[str]:
        return sorted(path.rsplit("/", 1)[-1] for _, path in self.files)


class FakeServices:
    def __init__(self):
        self.site = FakeSite()
        self.worker = FakeWorker()
        self.github = FakeGitHub()

    def handle(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host in ("docs.test", "preview.test"):
            return self.site.handle(request)
        if host == "worker.test":
            return self.worker.handle(request)
        if host == "api.github.test":
            return self.github.handle(request)
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def services() -> FakeServices:
    """Fake docs site, rendering worker and GitHub API behind one mock transport."""
    return FakeServices()
