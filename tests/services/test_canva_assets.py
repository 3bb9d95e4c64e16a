"""
Tests for uploading trip images to Canva.
"""

import json
import logging

import httpx
import pytest

from tripmatrix.services.canva.assets import asset_name_for, upload_assets
from tripmatrix.services.canva.client import CanvaClient


class FakeClock:
    """Clock and sleep pair; sleeping advances the clock instantly."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


class FakeCanva:
    """Image host plus Canva asset-upload endpoints."""

    def __init__(self, unreachable: set[str] | None = None, async_uploads: bool = False):
        self.unreachable = unreachable or set()
        self.async_uploads = async_uploads
        self.uploads: list[httpx.Request] = []
        self.job_polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.url.host == "images.example.com":
            if url in self.unreachable:
                if url.endswith("refused.jpg"):
                    raise httpx.ConnectError("connection refused", request=request)
                return httpx.Response(404)
            return httpx.Response(200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"})

        if request.method == "POST" and request.url.path == "/rest/v1/asset-uploads":
            self.uploads.append(request)
            n = len(self.uploads)
            if self.async_uploads:
                return httpx.Response(200, json={"job": {"id": f"upload-{n}", "status": "in_progress"}})
            return httpx.Response(
                200,
                json={"job": {"id": f"upload-{n}", "status": "success", "asset": {"id": f"asset-{n}"}}},
            )

        if request.method == "GET" and request.url.path.startswith("/rest/v1/asset-uploads/"):
            self.job_polls += 1
            job_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(
                200,
                json={"job": {"id": job_id, "status": "success", "asset": {"id": f"asset-for-{job_id}"}}},
            )

        return httpx.Response(500)

    def client(self) -> CanvaClient:
        return CanvaClient(transport=httpx.MockTransport(self))


class TestUploadAssets:
    """Tests for upload_assets."""

    @pytest.mark.asyncio
    async def test_unreachable_images_are_skipped(self, caplog):
        urls = [f"https://images.example.com/{name}.jpg" for name in ("a", "b", "missing", "c", "refused")]
        canva = FakeCanva(unreachable={urls[2], urls[4]})

        with caplog.at_level(logging.WARNING):
            asset_map = await upload_assets(canva.client(), "token", urls)

        assert set(asset_map) == {urls[0], urls[1], urls[3]}
        assert len(canva.uploads) == 3
        assert "2 of 5 images could not be uploaded" in caplog.text

    @pytest.mark.asyncio
    async def test_upload_request_shape(self):
        canva = FakeCanva()

        await upload_assets(canva.client(), "token-123", ["https://images.example.com/Eiffel%20Tower.jpg"])

        request = canva.uploads[0]
        assert request.headers["Authorization"] == "Bearer token-123"
        assert request.headers["Content-Type"] == "application/octet-stream"
        metadata = json.loads(request.headers["Asset-Upload-Metadata"])
        assert metadata == {"name_base64": "RWlmZmVsIFRvd2VyLmpwZw=="}
        assert request.content == b"\xff\xd8jpeg"

    @pytest.mark.asyncio
    async def test_duplicates_uploaded_once(self):
        canva = FakeCanva()
        url = "https://images.example.com/a.jpg"

        asset_map = await upload_assets(canva.client(), "token", [url, url, url])

        assert asset_map == {url: "asset-1"}
        assert len(canva.uploads) == 1

    @pytest.mark.asyncio
    async def test_waits_for_asynchronous_upload_jobs(self):
        canva = FakeCanva(async_uploads=True)
        clock = FakeClock()

        asset_map = await upload_assets(
            canva.client(),
            "token",
            ["https://images.example.com/a.jpg"],
            clock=clock,
            sleep=clock.sleep,
        )

        assert asset_map == {"https://images.example.com/a.jpg": "asset-for-upload-1"}
        assert canva.job_polls == 1

    @pytest.mark.asyncio
    async def test_upload_job_that_never_finishes_is_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "images.example.com":
                return httpx.Response(200, content=b"img")
            return httpx.Response(200, json={"job": {"id": "stuck", "status": "in_progress"}})

        clock = FakeClock()
        asset_map = await upload_assets(
            CanvaClient(transport=httpx.MockTransport(handler)),
            "token",
            ["https://images.example.com/a.jpg"],
            poll_interval=1.0,
            timeout=5.0,
            clock=clock,
            sleep=clock.sleep,
        )

        assert asset_map == {}
        assert clock.now <= 5.0

    @pytest.mark.asyncio
    async def test_unparseable_image_url_is_skipped(self):
        canva = FakeCanva()
        good = ["https://images.example.com/a.jpg", "https://images.example.com/b.jpg"]

        asset_map = await upload_assets(
            canva.client(), "token", [good[0], "http://[::1/broken.jpg", good[1]]
        )

        assert set(asset_map) == set(good)
        assert len(canva.uploads) == 2

    @pytest.mark.asyncio
    async def test_upload_job_without_id_is_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "images.example.com":
                return httpx.Response(200, content=b"img")
            return httpx.Response(200, json={"job": {"status": "in_progress"}})

        clock = FakeClock()
        asset_map = await upload_assets(
            CanvaClient(transport=httpx.MockTransport(handler)),
            "token",
            ["https://images.example.com/a.jpg"],
            clock=clock,
            sleep=clock.sleep,
        )

        assert asset_map == {}

    @pytest.mark.asyncio
    async def test_empty_list(self):
        assert await upload_assets(FakeCanva().client(), "token", []) == {}


def test_asset_name_for():
    assert asset_name_for("https://images.example.com/trips/1/Eiffel%20Tower.jpg") == "Eiffel Tower.jpg"
    assert asset_name_for("https://images.example.com/") == "trip-image"
