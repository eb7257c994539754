"""Async SonarQube Web API client — compute-engine tasks and quality gate status."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

log = structlog.get_logger("scanstation.sonar")

DEFAULT_HTTP_TIMEOUT = 30.0


class SonarClient:
    """Thin async wrapper around the SonarQube Web API.

    A token, when given, is sent as the basic-auth user name with an empty
    password, which is how SonarQube accepts user tokens.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        auth = httpx.BasicAuth(token, "") if token else None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SonarClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_task(self, task_id: str) -> dict[str, Any]:
        """Compute-engine task detail (``task.status``, ``task.analysisId``).

        Raises ``ValueError`` when the reply is not a task document.
        """
        resp = await self._client.get("/api/ce/task", params={"id": task_id})
        resp.raise_for_status()
        return _json_member(resp, "task")

    async def get_analysis_gate_status(self, analysis_id: str) -> str:
        """Quality gate status (``OK``, ``ERROR``, ``WARN``, ``NONE``) of one analysis."""
        resp = await self._client.get(
            "/api/qualitygates/project_status", params={"analysisId": analysis_id}
        )
        resp.raise_for_status()
        return _json_member(resp, "projectStatus").get("status", "NONE")

    async def get_project_status_text(self, project_key: str) -> str:
        """Raw response body of the project's current quality gate status."""
        resp = await self._client.get(
            "/api/qualitygates/project_status", params={"projectKey": project_key}
        )
        log.debug("sonar.project_status", project_key=project_key, status_code=resp.status_code)
        return resp.text.strip()


def _json_member(resp: httpx.Response, key: str) -> dict[str, Any]:
    """The object under *key* in a JSON object reply; ``ValueError`` otherwise."""
    data = resp.json()
    member = data.get(key) if isinstance(data, dict) else None
    if not isinstance(member, dict):
        raise ValueError(f"unexpected reply from {resp.request.url.path}: no '{key}' object")
    return member
