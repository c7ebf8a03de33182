"""Tests for the rendering worker client and screenshot capturer."""

import base64
from unittest.mock import AsyncMock

import httpx
import pytest

from visreg.capture.screenshot_capture import (
    ScreenshotCapturer,
    screenshot_filename,
    screenshot_name,
)
from visreg.capture.worker_client import RenderingWorkerClient, WorkerResult
from visreg.errors import CaptureError, MissingCredentialError, PublishError
from visreg.models.capture import (
    CaptureRequest,
    PageAction,
    ScreenshotId,
    ScreenshotVariant,
    format_screenshot_id,
)
from visreg.models.config import ViewportConfig


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def by_id(catalog, *ids):
    return [c for c in catalog if c.id in ids]


# ============================================================================
# Models
# ============================================================================


class TestScreenshotId:
    def test_format_variants(self):
        assert format_screenshot_id(ScreenshotId(component_id="button")) == "button"
        assert format_screenshot_id(
            ScreenshotId(component_id="dropdown", variant=ScreenshotVariant.OPEN)
        ) == "dropdown-open"
        assert str(ScreenshotId(
            component_id="button", variant=ScreenshotVariant.SECTION, section="sizes",
        )) == "button-sizes"

    def test_section_required_for_section_variant(self):
        with pytest.raises(ValueError):
            ScreenshotId(component_id="button", variant=ScreenshotVariant.SECTION)
        with pytest.raises(ValueError):
            ScreenshotId(component_id="button", section="sizes")

    def test_hashable(self):
        ids = {ScreenshotId(component_id="a"), ScreenshotId(component_id="a")}
        assert len(ids) == 1

    def test_filename_and_name(self):
        sid = ScreenshotId(component_id="button", variant=ScreenshotVariant.SECTION, section="sizes")
        assert screenshot_filename("after", sid) == "after-button-sizes.png"
        assert screenshot_name("Button", sid, "Sizes") == "Button / Sizes"
        assert screenshot_name("Button", sid) == "Button / sizes"
        assert screenshot_name(
            "Dropdown", ScreenshotId(component_id="dropdown", variant=ScreenshotVariant.OPEN),
        ) == "Dropdown (Open)"


class TestCaptureRequest:
    def test_payload_uses_worker_field_names(self):
        request = CaptureRequest(
            url="/components/dialog",
            capture_sections=False,
            actions=[PageAction(type="click", selector="button", wait_after=500)],
        )
        assert request.is_interaction
        assert request.to_payload() == {
            "url": "/components/dialog",
            "captureSections": False,
            "hideSidebar": True,
            "actions": [{"type": "click", "selector": "button", "waitAfter": 500}],
        }

    def test_plain_request_has_no_actions_key(self):
        request = CaptureRequest(url="/components/button")
        assert not request.is_interaction
        assert "actions" not in request.to_payload()


# ============================================================================
# Worker client
# ============================================================================


class TestRenderingWorkerClient:
    @pytest.mark.asyncio
    async def test_batch_payload_and_auth_header(self, services):
        async with services.client() as client:
            worker = RenderingWorkerClient(
                "https://worker.test/", client, api_key="secret",
                viewport=ViewportConfig(width=800, height=600),
            )
            results = await worker.capture_batch(
                "https://docs.test", [CaptureRequest(url="/components/button")],
            )

        assert worker.call_count == 1
        assert services.worker.calls == [{
            "baseUrl": "https://docs.test",
            "pages": [{"url": "/components/button", "captureSections": True, "hideSidebar": True}],
            "viewport": {"width": 800, "height": 600},
            "hideSidebar": True,
        }]
        assert services.worker.headers[0]["x-api-key"] == "secret"
        assert len(results) == 1
        assert results[0].url == "https://docs.test/components/button"

    @pytest.mark.asyncio
    async def test_no_key_no_header(self, services):
        async with services.client() as client:
            worker = RenderingWorkerClient("https://worker.test", client)
            await worker.capture_batch("https://docs.test", [CaptureRequest(url="/components/button")])
        assert "x-api-key" not in services.worker.headers[0]

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self, services):
        services.worker.status = 502
        async with services.client() as client:
            worker = RenderingWorkerClient("https://worker.test", client)
            with pytest.raises(CaptureError) as exc_info:
                await worker.capture_batch("https://docs.test", [CaptureRequest(url="/x/y")])
        assert exc_info.value.status_code == 502
        assert "worker exploded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self, services):
        services.worker.render = lambda payload: "not a list"
        async with services.client() as client:
            worker = RenderingWorkerClient("https://worker.test", client)
            with pytest.raises(CaptureError, match="unreadable"):
                await worker.capture_batch("https://docs.test", [CaptureRequest(url="/x/y")])

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with httpx.AsyncClient(transport=transport) as client:
            worker = RenderingWorkerClient("https://worker.test", client)
            with pytest.raises(CaptureError):
                await worker.capture_batch("https://docs.test", [CaptureRequest(url="/x/y")])

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def refuse(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            worker = RenderingWorkerClient("https://worker.test", client)
            with pytest.raises(CaptureError, match="Worker request failed"):
                await worker.capture_batch("https://docs.test", [CaptureRequest(url="/x/y")])

    def test_result_accepts_camel_case_section_fields(self):
        result = WorkerResult.model_validate(
            {"url": "u", "image": "", "sectionId": "sizes", "sectionTitle": "Sizes"}
        )
        assert result.section_id == "sizes"
        assert result.section_title == "Sizes"


# ============================================================================
# Screenshot capturer
# ============================================================================


class TestBuildRequests:
    def test_interaction_request_for_registered_components(self, catalog):
        worker = RenderingWorkerClient("https://worker.test", client=None, hide_sidebar=False)
        capturer = ScreenshotCapturer(worker, output_dir=None)
        requests = capturer.build_requests(by_id(catalog, "button", "dropdown"))

        assert [(r.url, r.is_interaction) for r in requests] == [
            ("/components/button", False),
            ("/components/dropdown", False),
            ("/components/dropdown", True),
        ]
        assert requests[1].capture_sections is True
        assert requests[2].capture_sections is False
        assert all(r.hide_sidebar is False for r in requests)


class TestScreenshotCapturer:
    @pytest.mark.asyncio
    async def test_saves_main_and_open_views(self, services, catalog, tmp_path, png):
        opened = png(color=(0, 0, 255, 255))
        services.worker.images[("docs.test", "/components/dropdown", True)] = opened

        async with services.client() as client:
            worker = RenderingWorkerClient("https://worker.test", client)
            capturer = ScreenshotCapturer(worker, tmp_path)
            result = await capturer.capture(
                "https://docs.test", by_id(catalog, "button", "dropdown"), "before",
            )

        assert [s.key for s in result.screenshots] == ["button", "dropdown", "dropdown-open"]
        assert [s.name for s in result.screenshots] == ["Button", "Dropdown", "Dropdown (Open)"]
        assert result.failures == []
        assert result.published == 0
        assert (tmp_path / "before" / "before-dropdown-open.png").read_bytes() == opened
        assert all(s.remote_url is None for s in result.screenshots)
        assert len(services.worker.calls) == 1

    @pytest.mark.asyncio
    async def test_section_results_make_plain_result_the_open_view(self, services, catalog, tmp_path, png):
        image = b64(png())

        def render(payload):
            results = []
            for page in payload["pages"]:
                url = payload["baseUrl"] + page["url"]
                if page.get("actions"):
                    results.append({"url": url, "image": image})
                else:
                    results.append({"url": url, "image": image, "sectionId": "basic", "sectionTitle": "Basic"})
                    results.append({"url": url, "image": image, "sectionId": "sizes"})
            return results

        services.worker.render = render
        async with services.client() as client:
            capturer = ScreenshotCapturer(RenderingWorkerClient("https://worker.test", client), tmp_path)
            result = await capturer.capture("https://docs.test", by_id(catalog, "dropdown"), "after")

        assert [s.key for s in result.screenshots] == ["dropdown-basic", "dropdown-sizes", "dropdown-open"]
        assert [s.name for s in result.screenshots] == [
            "Dropdown / Basic", "Dropdown / sizes", "Dropdown (Open)",
        ]
        assert result.screenshots[2].id.variant == ScreenshotVariant.OPEN
        assert (tmp_path / "after" / "after-dropdown-basic.png").exists()

    @pytest.mark.asyncio
    async def test_failed_entries_are_recorded_and_skipped(self, services, catalog, tmp_path, png):
        image = b64(png())

        def render(payload):
            base = payload["baseUrl"]
            return [
                {"url": base + "/components/button", "image": image},
                {"url": base + "/components/input", "error": "navigation timeout"},
                {"url": base + "/components/select", "image": ""},
                {"url": base + "/components/table", "image": "abc"},
                {"url": base + "/components/button", "image": image},
            ]

        services.worker.render = render
        async with services.client() as client:
            capturer = ScreenshotCapturer(RenderingWorkerClient("https://worker.test", client), tmp_path)
            result = await capturer.capture(
                "https://docs.test", by_id(catalog, "button", "input", "select", "table"), "before",
            )

        assert [s.key for s in result.screenshots] == ["button"]
        assert [(f.stage, f.reason.split(":")[0]) for f in result.failures] == [
            ("capture", "navigation timeout"),
            ("capture", "empty image"),
            ("capture", "invalid base64"),
            ("capture", "duplicate screenshot id"),
        ]

    @pytest.mark.asyncio
    async def test_line_wrapped_base64_is_accepted(self, services, catalog, tmp_path, png):
        data = png(color=(10, 20, 30, 255))
        encoded = b64(data)
        wrapped = "\r\n".join(encoded[i:i + 20] for i in range(0, len(encoded), 20))
        services.worker.render = lambda payload: [
            {"url": payload["baseUrl"] + "/components/button", "image": wrapped},
        ]

        async with services.client() as client:
            capturer = ScreenshotCapturer(RenderingWorkerClient("https://worker.test", client), tmp_path)
            result = await capturer.capture("https://docs.test", by_id(catalog, "button"), "after")

        assert result.failures == []
        assert (tmp_path / "after" / "after-button.png").read_bytes() == data

    @pytest.mark.asyncio
    async def test_empty_component_set_makes_no_worker_call(self, services, tmp_path):
        async with services.client() as client:
            capturer = ScreenshotCapturer(RenderingWorkerClient("https://worker.test", client), tmp_path)
            result = await capturer.capture("https://docs.test", [], "before")

        assert result.screenshots == []
        assert services.worker.calls == []

    @pytest.mark.asyncio
    async def test_worker_failure_raises(self, services, catalog, tmp_path):
        services.worker.status = 500
        async with services.client() as client:
            capturer = ScreenshotCapturer(RenderingWorkerClient("https://worker.test", client), tmp_path)
            with pytest.raises(CaptureError):
                await capturer.capture("https://docs.test", catalog, "before")

    @pytest.mark.asyncio
    async def test_publishes_each_screenshot(self, services, catalog, tmp_path):
        publisher = AsyncMock()
        publisher.publish.side_effect = lambda data, filename: f"https://raw.test/{filename}"

        async with services.client() as client:
            capturer = ScreenshotCapturer(
                RenderingWorkerClient("https://worker.test", client), tmp_path, publisher,
            )
            result = await capturer.capture("https://docs.test", by_id(catalog, "button", "input"), "after")

        assert [s.remote_url for s in result.screenshots] == [
            "https://raw.test/after-button.png", "https://raw.test/after-input.png",
        ]
        assert result.published == 2
        publisher.publish.assert_any_await(services.worker.default_image, "after-button.png")

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_local_file(self, services, catalog, tmp_path):
        def publish(data, filename):
            if filename == "before-input.png":
                raise PublishError("GitHub API error: 500")
            return f"https://raw.test/{filename}"

        publisher = AsyncMock()
        publisher.publish.side_effect = publish

        async with services.client() as client:
            capturer = ScreenshotCapturer(
                RenderingWorkerClient("https://worker.test", client), tmp_path, publisher,
            )
            result = await capturer.capture("https://docs.test", by_id(catalog, "button", "input"), "before")

        assert result.published == 1
        assert result.screenshots[1].remote_url is None
        assert (tmp_path / "before" / "before-input.png").exists()
        assert [(f.stage, f.item) for f in result.failures] == [("publish", "before-input.png")]

    @pytest.mark.asyncio
    async def test_missing_credentials_abort_capture(self, services, catalog, tmp_path):
        publisher = AsyncMock()
        publisher.publish.side_effect = MissingCredentialError("GITHUB_TOKEN required for image upload")

        async with services.client() as client:
            capturer = ScreenshotCapturer(
                RenderingWorkerClient("https://worker.test", client), tmp_path, publisher,
            )
            with pytest.raises(MissingCredentialError):
                await capturer.capture("https://docs.test", by_id(catalog, "button"), "before")
