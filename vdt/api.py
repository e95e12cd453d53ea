"""HTTP client for the device-testing API.

Endpoints (``{base}`` is the pre-authorized ``api_base_url``):

* ``POST {base}/assets/{app}/{build}``       -> signed upload URLs
* ``PUT  {signed url}``                      <- app / test package bytes
* ``POST {base}/{app}/{build}``              <- test matrix JSON
* ``GET  {base}/{app}/{build}[/{matrix id}]`` -> run status

No request is retried; every failure is raised to the caller.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx

from vdt.errors import (
    DecodeError,
    SubmitError,
    TransportError,
    UploadError,
    UploadSlotError,
)
from vdt.matrix import encode_matrix
from vdt.models import TestMatrix, UploadSlots
from vdt.status import DECODERS, RunStatus, decode_status

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)
# Large packages: no write timeout while streaming the body.
UPLOAD_TIMEOUT = httpx.Timeout(60.0, connect=10.0, write=None)


class ApiClient:
    """Thin wrapper over one ``httpx.Client`` for a single step run.

    Parameters
    ----------
    base_url:
        API root, without trailing slash.
    api_version:
        ``"v1"`` (bare 200 on submit, step-list status) or ``"v2"``
        (``testMatrixId`` token on submit, matrix status).
    transport:
        Optional ``httpx`` transport, used by tests to fake the service.
    """

    def __init__(
        self,
        base_url: str,
        api_version: str = "v1",
        *,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if api_version not in DECODERS:
            raise ValueError(f"Unknown API version: {api_version}")
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def assets_url(self, app_slug: str, build_slug: str) -> str:
        return f"{self.base_url}/assets/{app_slug}/{build_slug}"

    def matrix_url(self, app_slug: str, build_slug: str) -> str:
        return f"{self.base_url}/{app_slug}/{build_slug}"

    def status_url(self, app_slug: str, build_slug: str, token: Optional[str] = None) -> str:
        url = self.matrix_url(app_slug, build_slug)
        if token:
            url += f"/{token}"
        return url

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, url)
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        logger.debug("%s %s -> HTTP %d", method, url, response.status_code)
        return response

    def _json(self, response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                f"Failed to decode {what} response, error: {e}, body: {response.text}"
            ) from e

    def request_upload_slots(self, app_slug: str, build_slug: str) -> UploadSlots:
        """Ask the service for signed app / test package upload URLs."""
        url = self.assets_url(app_slug, build_slug)
        response = self._send("POST", url)
        if not response.is_success:
            raise UploadSlotError(
                f"Failed to get upload URLs from ({url}), "
                f"status code: {response.status_code}, body: {response.text}"
            )
        data = self._json(response, "upload URL")
        if not isinstance(data, dict) or not data.get("appUrl"):
            raise DecodeError(f"Upload URL response missing appUrl: {data!r}")
        return UploadSlots(app_url=data["appUrl"], test_app_url=data.get("testAppUrl") or "")

    def upload_file(self, url: str, path: str) -> None:
        """Stream ``path`` to ``url`` with an explicit Content-Length.

        Raises:
            UploadError: the file cannot be read or the PUT is not answered
                with 200.
            TransportError: the request could not be sent.
        """
        try:
            f = open(path, "rb")
        except OSError as e:
            raise UploadError(f"Failed to open archive file for upload ({path}): {e}") from e
        with f:
            try:
                size = os.fstat(f.fileno()).st_size
            except OSError as e:
                raise UploadError(f"Failed to get file stats of the archive file ({path}): {e}") from e
            try:
                response = self._send(
                    "PUT", url,
                    content=f,
                    headers={"Content-Length": str(size)},
                    timeout=UPLOAD_TIMEOUT,
                )
            except TransportError as e:
                raise TransportError(f"Failed to upload file ({path}) to ({url}): {e}") from e
        if response.status_code != 200:
            raise UploadError(
                f"Failed to upload file ({path}) to ({url}), "
                f"response code was: {response.status_code}"
            )

    def submit(self, app_slug: str, build_slug: str, matrix: TestMatrix) -> Optional[str]:
        """Start the test run.

        Returns the ``testMatrixId`` token for ``v2``, ``None`` for ``v1``.
        """
        url = self.matrix_url(app_slug, build_slug)
        response = self._send(
            "POST", url,
            content=encode_matrix(matrix),
            headers={"Content-Type": "application/json"},
        )
        if self.api_version == "v1":
            if response.status_code != 200:
                raise SubmitError(
                    f"Failed to start test ({url}), status code: {response.status_code}, "
                    f"body: {response.text}"
                )
            return None

        if not response.is_success:
            raise SubmitError(
                f"Failed to start test ({url}), status code: {response.status_code}, "
                f"body: {response.text}"
            )
        data = self._json(response, "start test")
        if not isinstance(data, dict) or not data.get("testMatrixId"):
            raise DecodeError(f"Start test response missing testMatrixId: {data!r}")
        return str(data["testMatrixId"])

    def fetch_status(self, app_slug: str, build_slug: str, token: Optional[str] = None) -> RunStatus:
        """GET the current run status and decode it for this API version."""
        url = self.status_url(app_slug, build_slug, token)
        response = self._send("GET", url)
        if not response.is_success:
            raise TransportError(
                f"GET {url} failed, status code: {response.status_code}, body: {response.text}"
            )
        return decode_status(self.api_version, self._json(response, "test status"))
