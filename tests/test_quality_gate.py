"""Tests for QualityGateChecker, SonarTaskSignal and SonarClient."""

from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest

from scanstation.exceptions import QualityGateError
from scanstation.models import QualityGateSource, QualityGateStatus
from scanstation.quality_gate import (
    QualityGateChecker,
    SonarTaskSignal,
    classify_status_response,
)
from scanstation.sonar_client import SonarClient

SONAR_URL = "http://sonar.test"


class FakeSignal:
    def __init__(self, status: str | None = None, exc: Exception | None = None, delay=0.0):
        self.status = status
        self.exc = exc
        self.delay = delay

    async def wait(self) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.status


def _status_json(status: str) -> dict:
    return {"projectStatus": {"status": status, "conditions": [{"status": "OK"}]}}


def _client(handler) -> SonarClient:
    return SonarClient(SONAR_URL, transport=httpx.MockTransport(handler))


def _fallback_ok(request: httpx.Request) -> httpx.Response:
    assert request.url.path == "/api/qualitygates/project_status"
    assert request.url.params["projectKey"] == "demo"
    return httpx.Response(200, json=_status_json("OK"))


def _fallback_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=_status_json("ERROR"))


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def _checker(signal, handler=_unreachable, timeout=1.0, enabled=True) -> QualityGateChecker:
    return QualityGateChecker(signal, _client(handler), "demo", timeout, enabled=enabled)


# ── Checker ──


class TestQualityGateChecker:
    @pytest.mark.asyncio
    async def test_disabled_not_run(self):
        result = await _checker(FakeSignal("OK"), enabled=False).check()
        assert result.status is QualityGateStatus.NOT_RUN
        assert result.status.value == "Not Run"

    @pytest.mark.asyncio
    async def test_primary_ok(self):
        checker = _checker(FakeSignal("OK"))
        result = await checker.check()
        assert result.status is QualityGateStatus.OK
        assert result.source is QualityGateSource.PRIMARY
        assert result.passed
        assert checker.state is QualityGateStatus.OK
        assert not checker.waiting

    @pytest.mark.asyncio
    async def test_primary_non_ok_is_failed(self):
        result = await _checker(FakeSignal("ERROR")).check()
        assert result.status is QualityGateStatus.FAILED
        assert result.source is QualityGateSource.PRIMARY
        assert "ERROR" in result.detail

    @pytest.mark.asyncio
    async def test_timeout_then_fallback_ok(self):
        result = await _checker(FakeSignal("OK", delay=10), _fallback_ok, timeout=0.05).check()
        assert result.status is QualityGateStatus.OK
        assert result.source is QualityGateSource.FALLBACK_API

    @pytest.mark.asyncio
    async def test_timeout_then_fallback_failed(self):
        result = await _checker(FakeSignal("OK", delay=10), _fallback_error, timeout=0.05).check()
        assert result.status is QualityGateStatus.FAILED
        assert result.source is QualityGateSource.FALLBACK_API

    @pytest.mark.asyncio
    async def test_timeout_then_fallback_unreachable(self):
        checker = _checker(FakeSignal("OK", delay=10), _unreachable, timeout=0.05)
        result = await checker.check()
        assert result.status is QualityGateStatus.TIMEOUT
        assert checker.state is QualityGateStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_channel_error_then_fallback_ok(self):
        signal = FakeSignal(exc=QualityGateError("task lookup failed"))
        result = await _checker(signal, _fallback_ok).check()
        assert result.status is QualityGateStatus.OK
        assert result.source is QualityGateSource.FALLBACK_API

    @pytest.mark.asyncio
    async def test_channel_error_then_fallback_unreachable(self):
        signal = FakeSignal(exc=QualityGateError("task lookup failed"))
        result = await _checker(signal, _unreachable).check()
        assert result.status is QualityGateStatus.ERROR
        assert "task lookup failed" in result.detail

    @pytest.mark.asyncio
    async def test_bounded_wait(self):
        start = time.monotonic()
        await _checker(FakeSignal("OK", delay=30), _unreachable, timeout=0.1).check()
        assert time.monotonic() - start < 5


class TestClassifyStatusResponse:
    def test_ok(self):
        assert classify_status_response(json.dumps(_status_json("OK"))) is QualityGateStatus.OK

    def test_error_with_ok_conditions(self):
        text = json.dumps(_status_json("ERROR"))
        assert classify_status_response(text) is QualityGateStatus.FAILED

    def test_non_json_marker(self):
        assert classify_status_response('junk "status":"OK" junk') is QualityGateStatus.OK

    def test_non_json_without_marker(self):
        assert classify_status_response("<html>login</html>") is QualityGateStatus.FAILED

    def test_null_project_status(self):
        assert classify_status_response('{"projectStatus": null}') is QualityGateStatus.FAILED

    def test_json_array(self):
        assert classify_status_response('[{"status": "OK"}]') is QualityGateStatus.FAILED


# ── Primary signal ──


class TestSonarTaskSignal:
    def _report_task(self, tmp_path, content="projectKey=demo\nceTaskId=AX1\n"):
        path = tmp_path / ".scannerwork" / "report-task.txt"
        path.parent.mkdir()
        path.write_text(content)
        return path

    @pytest.mark.asyncio
    async def test_polls_until_done(self, tmp_path):
        task_states = iter(["PENDING", "IN_PROGRESS", "SUCCESS"])

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/ce/task":
                assert request.url.params["id"] == "AX1"
                return httpx.Response(
                    200, json={"task": {"status": next(task_states), "analysisId": "AN9"}}
                )
            assert request.url.params["analysisId"] == "AN9"
            return httpx.Response(200, json=_status_json("OK"))

        signal = SonarTaskSignal(_client(handler), self._report_task(tmp_path), poll_interval=0)
        assert await signal.wait() == "OK"

    @pytest.mark.asyncio
    async def test_missing_report_task_file(self, tmp_path):
        signal = SonarTaskSignal(_client(_unreachable), tmp_path / "report-task.txt")
        with pytest.raises(QualityGateError):
            await signal.wait()

    @pytest.mark.asyncio
    async def test_no_task_id(self, tmp_path):
        path = self._report_task(tmp_path, content="projectKey=demo\n")
        with pytest.raises(QualityGateError, match="ceTaskId"):
            await SonarTaskSignal(_client(_unreachable), path).wait()

    @pytest.mark.asyncio
    async def test_failed_task(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"task": {"status": "FAILED"}})

        signal = SonarTaskSignal(_client(handler), self._report_task(tmp_path), poll_interval=0)
        with pytest.raises(QualityGateError, match="FAILED"):
            await signal.wait()

    @pytest.mark.asyncio
    async def test_http_error_becomes_channel_error(self, tmp_path):
        signal = SonarTaskSignal(_client(_unreachable), self._report_task(tmp_path))
        with pytest.raises(QualityGateError):
            await signal.wait()

    @pytest.mark.asyncio
    async def test_login_page_becomes_channel_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>login</html>")

        signal = SonarTaskSignal(_client(handler), self._report_task(tmp_path), poll_interval=0)
        with pytest.raises(QualityGateError, match="channel error"):
            await signal.wait()

    @pytest.mark.asyncio
    async def test_unexpected_json_shape_becomes_channel_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/ce/task":
                return httpx.Response(200, json={"task": {"status": "SUCCESS", "analysisId": "A"}})
            return httpx.Response(200, json={"projectStatus": None})

        signal = SonarTaskSignal(_client(handler), self._report_task(tmp_path), poll_interval=0)
        with pytest.raises(QualityGateError, match="projectStatus"):
            await signal.wait()

    @pytest.mark.asyncio
    async def test_login_page_falls_back_to_status_query(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/ce/task":
                return httpx.Response(200, text="<html>login</html>")
            return _fallback_ok(request)

        client = _client(handler)
        signal = SonarTaskSignal(client, self._report_task(tmp_path), poll_interval=0)
        result = await QualityGateChecker(signal, client, "demo", 1.0).check()
        assert result.status is QualityGateStatus.OK
        assert result.source is QualityGateSource.FALLBACK_API

    @pytest.mark.asyncio
    async def test_end_to_end_with_checker(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/ce/task":
                return httpx.Response(200, json={"task": {"status": "SUCCESS", "analysisId": "A"}})
            return httpx.Response(200, json=_status_json("ERROR"))

        client = _client(handler)
        signal = SonarTaskSignal(client, self._report_task(tmp_path), poll_interval=0)
        result = await QualityGateChecker(signal, client, "demo", 1.0).check()
        assert result.status is QualityGateStatus.FAILED
        assert result.source is QualityGateSource.PRIMARY


class TestSonarClient:
    @pytest.mark.asyncio
    async def test_token_sent_as_basic_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization", "")
            return httpx.Response(200, json=_status_json("OK"))

        transport = httpx.MockTransport(handler)
        async with SonarClient(SONAR_URL, token="squ_abc", transport=transport) as c:
            await c.get_project_status_text("demo")
        assert seen["auth"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_no_token_no_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, text="{}")

        async with SonarClient(SONAR_URL, transport=httpx.MockTransport(handler)) as c:
            assert await c.get_project_status_text("demo") == "{}"
        assert seen["auth"] is None
