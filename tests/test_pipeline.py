"""End-to-end tests for vdt/pipeline.py against the fake service."""

from __future__ import annotations

import json
import threading

import httpx
import pytest

from conftest import (
    APP_SLUG, APP_UPLOAD_URL, BASE_URL, BUILD_SLUG, TEST_UPLOAD_URL,
    make_execution, make_step,
)
from vdt.api import ApiClient
from vdt.config import StepConfig
from vdt.errors import (
    ConfigError, ParseError, PollCancelled, PollTimeoutError, RunFailure, UploadError,
    UploadSlotError,
)
from vdt.pipeline import prepare, run_step


def _config(apk_files, **kw) -> StepConfig:
    app, test = apk_files
    values = dict(
        api_base_url=BASE_URL,
        app_slug=APP_SLUG,
        build_slug=BUILD_SLUG,
        apk_path=app,
        test_apk_path=test,
        test_type="instrumentation",
        test_devices="Pixel2,28,en,portrait\nNexus5,23,en,landscape",
        test_timeout="120",
        app_package_id="com.example.app",
        inst_test_package_id="com.example.app.test",
    )
    values.update(kw)
    return StepConfig(**values)


def _factory(service):
    return lambda base_url, api_version: service.client(base_url, api_version)


class TestRunStepV1:
    def test_full_sequence(self, service, apk_files):
        service.statuses = [
            {"steps": [make_step(state="pending")]},
            {"steps": [make_step(model="Pixel2"), make_step(model="Nexus5")]},
        ]
        result = run_step(_config(apk_files), client_factory=_factory(service), interval=0)

        assert service.calls == [
            ("POST", f"{BASE_URL}/assets/{APP_SLUG}/{BUILD_SLUG}"),
            ("PUT", APP_UPLOAD_URL),
            ("PUT", TEST_UPLOAD_URL),
            ("POST", f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}"),
            ("GET", f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}"),
            ("GET", f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}"),
        ]
        submitted = json.loads(service.requests[3][2])
        assert submitted["testSpecification"]["testTimeout"] == "120s"
        assert [r.model for r in result.rows] == ["Pixel2", "Nexus5"]
        assert result.passed
        assert result.token is None
        assert result.polls == 2
        result.check()

    def test_failed_device_still_reports_rows(self, service, apk_files):
        service.statuses = [{"steps": [
            make_step("success"),
            make_step("failure", failureDetail={"crashed": True}),
        ]}]
        result = run_step(_config(apk_files), client_factory=_factory(service), interval=0)
        assert len(result.rows) == 2
        assert not result.passed
        with pytest.raises(RunFailure, match="1 of 2") as exc_info:
            result.check()
        assert exc_info.value.rows[1].outcome == "failure(Crashed)"

    def test_robo_without_test_apk_skips_second_upload(self, service, apk_files):
        service.statuses = [{"steps": [make_step()]}]
        cfg = _config(apk_files, test_type="robo", test_apk_path="")
        run_step(cfg, client_factory=_factory(service), interval=0)
        puts = [url for method, url in service.calls if method == "PUT"]
        assert puts == [APP_UPLOAD_URL]

    def test_upload_500_aborts_before_submit(self, service, apk_files):
        service.upload_status = 500
        with pytest.raises(UploadError):
            run_step(_config(apk_files), client_factory=_factory(service), interval=0)
        assert ("POST", f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}") not in service.calls
        assert not any(method == "GET" for method, _ in service.calls)

    def test_missing_test_upload_url(self, service, apk_files):
        service.slots_body = {"appUrl": APP_UPLOAD_URL}
        with pytest.raises(UploadSlotError, match="testAppUrl"):
            run_step(_config(apk_files), client_factory=_factory(service), interval=0)

    def test_client_side_ceiling(self, service, apk_files):
        service.statuses = [{"steps": [make_step(state="pending")]}]
        with pytest.raises(PollTimeoutError):
            run_step(_config(apk_files), client_factory=_factory(service),
                     interval=0, max_wait=0.0001)


class TestRunStepV2:
    def test_polls_with_matrix_token(self, service_v2, apk_files):
        service_v2.statuses = [
            {"state": "RUNNING", "testExecutions": [make_execution(["Starting"])]},
            {"state": "FINISHED", "testExecutions": [
                make_execution(["Starting", "Done"], state="FINISHED",
                               outcome={"summary": "success"}),
            ]},
        ]
        cfg = _config(apk_files, api_version="v2")
        result = run_step(cfg, client_factory=_factory(service_v2), interval=0)
        assert result.token == "matrix-1"
        gets = [url for method, url in service_v2.calls if method == "GET"]
        assert gets == [f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}/matrix-1"] * 2
        assert result.passed


class TestNoNetworkOnBadInput:
    def test_bad_device_line(self, service, apk_files):
        cfg = _config(apk_files, test_devices="Pixel2,9.0,en")
        with pytest.raises(ParseError):
            run_step(cfg, client_factory=_factory(service), interval=0)
        assert service.requests == []

    def test_bad_numeric_field(self, service, apk_files):
        cfg = _config(apk_files, test_type="robo", robo_max_steps="many")
        with pytest.raises(ParseError):
            run_step(cfg, client_factory=_factory(service), interval=0)
        assert service.requests == []

    def test_missing_required_input(self, service, apk_files):
        with pytest.raises(ConfigError, match="AppSlug"):
            run_step(_config(apk_files, app_slug=""), client_factory=_factory(service))
        assert service.requests == []

    def test_bad_grace(self, service, apk_files):
        with pytest.raises(ConfigError, match="PollGraceSeconds"):
            run_step(_config(apk_files, poll_grace_seconds="later"),
                     client_factory=_factory(service))
        assert service.requests == []


class TestPrepare:
    def test_returns_matrix(self, apk_files):
        matrix = prepare(_config(apk_files))
        assert len(matrix.devices) == 2
        assert matrix.specification.populated_variants == ["androidInstrumentationTest"]


def _cancel_after_first_upload(service, cancel):
    def handler(request):
        response = service.handler(request)
        if request.method == "PUT":
            cancel.set()
        return response
    return lambda base_url, api_version: ApiClient(
        base_url, api_version, transport=httpx.MockTransport(handler))


class TestCancellation:
    def test_cancelled_before_start_makes_no_requests(self, service, apk_files):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(PollCancelled):
            run_step(_config(apk_files), client_factory=_factory(service),
                     interval=0, cancel=cancel)
        assert service.requests == []

    def test_cancel_during_app_upload_skips_test_upload_and_submit(self, service, apk_files):
        cancel = threading.Event()
        with pytest.raises(PollCancelled, match="test APK"):
            run_step(_config(apk_files), client_factory=_cancel_after_first_upload(service, cancel),
                     interval=0, cancel=cancel)
        assert service.calls == [
            ("POST", f"{BASE_URL}/assets/{APP_SLUG}/{BUILD_SLUG}"),
            ("PUT", APP_UPLOAD_URL),
        ]

    def test_cancel_during_upload_never_submits(self, service, apk_files):
        cancel = threading.Event()
        cfg = _config(apk_files, test_type="robo", test_apk_path="")
        with pytest.raises(PollCancelled, match="starting the test"):
            run_step(cfg, client_factory=_cancel_after_first_upload(service, cancel),
                     interval=0, cancel=cancel)
        assert ("POST", f"{BASE_URL}/{APP_SLUG}/{BUILD_SLUG}") not in service.calls
        assert not any(method == "GET" for method, _ in service.calls)


class TestEmptyResults:
    def test_finished_matrix_without_devices_fails(self, service_v2, apk_files):
        service_v2.statuses = [{"state": "FINISHED"}]
        cfg = _config(apk_files, api_version="v2")
        result = run_step(cfg, client_factory=_factory(service_v2), interval=0)
        assert result.rows == []
        assert not result.passed
        with pytest.raises(RunFailure, match="without reporting any device steps"):
            result.check()
