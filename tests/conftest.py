"""Shared pytest configuration for vdt tests.

``FakeService`` stands in for the device-testing API through
``httpx.MockTransport``; no test touches the network.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx
import pytest

from vdt.api import ApiClient

BASE_URL = "https://api.test"
APP_SLUG = "app-slug"
BUILD_SLUG = "build-slug"
APP_UPLOAD_URL = "https://upload.test/app"
TEST_UPLOAD_URL = "https://upload.test/test"


def make_step(summary: str = "success", *, state: str = "complete",
              model: str = "Pixel2", version: str = "28", locale: str = "en",
              orientation: str = "portrait", **details: dict[str, bool]) -> dict[str, Any]:
    """Build a v1 step document. ``details`` maps e.g. failureDetail={...}."""
    outcome: dict[str, Any] = {"summary": summary}
    outcome.update(details)
    return {
        "state": state,
        "outcome": outcome,
        "dimensionValue": [
            {"key": "Model", "value": model},
            {"key": "Version", "value": version},
            {"key": "Locale", "value": locale},
            {"key": "Orientation", "value": orientation},
        ],
    }


def make_execution(messages: list[str], *, state: str = "RUNNING",
                   model: str = "Pixel2", version: str = "28",
                   outcome: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build a v2 test execution document."""
    doc: dict[str, Any] = {
        "state": state,
        "environment": {"androidDevice": {
            "androidModelId": model,
            "androidVersionId": version,
            "locale": "en",
            "orientation": "portrait",
        }},
        "testDetails": {"progressMessages": list(messages)},
    }
    if outcome is not None:
        doc["outcome"] = outcome
    return doc


class FakeService:
    """Scriptable fake of the device-testing API.

    ``statuses`` is consumed one document per GET; the last one repeats.
    Every request is recorded as ``(method, url, body, headers)``.
    """

    def __init__(self, api_version: str = "v1") -> None:
        self.api_version = api_version
        self.slots_status = 200
        self.slots_body: Any = {"appUrl": APP_UPLOAD_URL, "testAppUrl": TEST_UPLOAD_URL}
        self.upload_status = 200
        self.submit_status = 200
        self.submit_body: Any = {"testMatrixId": "matrix-1"}
        self.statuses: list[Any] = []
        self.requests: list[tuple[str, str, bytes, httpx.Headers]] = []

    @property
    def calls(self) -> list[tuple[str, str]]:
        return [(method, url) for method, url, _, _ in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        url = str(request.url)
        self.requests.append((request.method, url, body, request.headers))

        if request.method == "POST" and url == f"{BASE_URL}/assets/{APP_SLUG}/{BUILD_SLUG}":
            return httpx.Response(self.slots_status, json=self.slots_body)
        if request.method == "PUT" and request.url.host == "upload.test":
            return httpx.Response(self.upload_status)
        if request.method == "POST" and url == f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}":
            if self.api_version == "v1":
                return httpx.Response(self.submit_status)
            return httpx.Response(self.submit_status, json=self.submit_body)
        if request.method == "GET" and url.startswith(f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}"):
            doc = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if isinstance(doc, (bytes, str)):
                return httpx.Response(200, content=doc)
            return httpx.Response(200, content=json.dumps(doc).encode("utf-8"))
        return httpx.Response(404, text="not found")

    def client(self, base_url: str = BASE_URL, api_version: Optional[str] = None) -> ApiClient:
        return ApiClient(
            base_url,
            api_version or self.api_version,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def service_v2() -> FakeService:
    return FakeService(api_version="v2")


@pytest.fixture
def apk_files(tmp_path):
    """Write small app / test packages and return their paths."""
    app = tmp_path / "app.apk"
    app.write_bytes(b"APP" * 100)
    test = tmp_path / "app-test.apk"
    test.write_bytes(b"TEST" * 50)
    return str(app), str(test)


@pytest.fixture(autouse=True)
def _reset_vdt_logging():
    """The CLI reconfigures the ``vdt`` logger; undo it between tests."""
    yield
    root = logging.getLogger("vdt")
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.propagate = True
