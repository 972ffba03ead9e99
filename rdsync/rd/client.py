"""
RD Station CRM REST client.

Token goes in the `token` query parameter. Every call has an explicit
timeout and a bounded exponential retry on timeouts, transport errors,
429 and 5xx; 4xx answers are final.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rdsync.config import Settings

logger = logging.getLogger(__name__)

_BODY_PREVIEW = 600

class RDStationError(Exception):
    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"retryable status {response.status_code}")
        self.response = response

def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500

# rd answers list endpoints in several envelopes depending on account/version
def extract_pipelines(payload: Any) -> list[dict]:
    return _extract_list(payload, ("deal_pipelines", "pipelines"))

def extract_stages(payload: Any) -> list[dict]:
    return _extract_list(payload, ("deal_stages", "stages"))

def extract_deals(payload: Any) -> list[dict]:
    return _extract_list(payload, ("deals",))

def extract_tasks(payload: Any) -> list[dict]:
    return _extract_list(payload, ("tasks",))

def extract_organizations(payload: Any) -> list[dict]:
    return _extract_list(payload, ("organizations",))

def _extract_list(payload: Any, keys: tuple[str, ...]) -> list[dict]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    data = payload.get("data")
    for container in (payload, data if isinstance(data, dict) else {}):
        for key in keys:
            value = container.get(key)
            if isinstance(value, list):
                return value
            # {"deal_pipelines": {"deal_pipelines": [...]}}
            if isinstance(value, dict) and isinstance(value.get(key), list):
                return value[key]
    return []

def stage_pipeline_id(stage: dict) -> str | None:
    pipeline = stage.get("deal_pipeline")
    if stage.get("deal_pipeline_id"):
        return stage["deal_pipeline_id"]
    if isinstance(pipeline, str):
        return pipeline
    if isinstance(pipeline, dict):
        return pipeline.get("_id") or pipeline.get("id")
    return stage.get("pipeline_id")

def stage_position(stage: dict) -> int:
    pos = stage.get("position")
    if pos is None:
        pos = stage.get("order")
    return pos or 0

class RDStationClient:
    def __init__(
        self,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        wait_multiplier: float = 0.5,
    ):
        if not settings.rd_api_token:
            raise ValueError("rd_api_token is not configured")
        self._token = settings.rd_api_token
        self._max_attempts = settings.rd_api_max_attempts
        self._wait_multiplier = wait_multiplier
        self._http = httpx.Client(
            base_url=settings.rd_api_base_url,
            timeout=httpx.Timeout(settings.rd_api_timeout_seconds, connect=5.0),
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "RDStationClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _send(self, method: str, path: str, params: dict, json: Any) -> httpx.Response:
        resp = self._http.request(method, path, params=params, json=json)
        if _is_retryable(resp.status_code):
            raise _RetryableStatus(resp)
        return resp

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        query["token"] = self._token

        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._wait_multiplier, min=0, max=10),
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
            reraise=True,
        )
        try:
            resp = retrying(self._send, method, path, query, json)
        except _RetryableStatus as e:
            body = e.response.text[:_BODY_PREVIEW]
            logger.error("rd %s %s failed with %s after retries: %s", method, path, e.response.status_code, body)
            raise RDStationError(
                f"RD Station {method} {path} failed: {e.response.status_code}",
                status_code=e.response.status_code,
                body=body,
            ) from e
        except httpx.TransportError as e:
            logger.error("rd %s %s unreachable after retries: %s", method, path, e)
            raise RDStationError(f"RD Station {method} {path} unreachable: {e}") from e

        if resp.status_code >= 400:
            body = resp.text[:_BODY_PREVIEW]
            logger.warning("rd %s %s -> %s: %s", method, path, resp.status_code, body)
            raise RDStationError(
                f"RD Station {method} {path} failed: {resp.status_code}",
                status_code=resp.status_code,
                body=body,
            )

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise RDStationError(
                f"RD Station {method} {path} returned invalid JSON",
                status_code=resp.status_code,
                body=resp.text[:_BODY_PREVIEW],
            ) from e

    # pipelines / stages

    def list_pipelines(self, organization_id: str | None = None) -> list[dict]:
        # rd is inconsistent about the org parameter name, send both
        params = {"organization_id": organization_id, "organization": organization_id}
        return extract_pipelines(self._request("GET", "/deal_pipelines", params=params))

    def list_stages(
        self,
        pipeline_id: str | None = None,
        organization_id: str | None = None,
    ) -> list[dict]:
        params = {
            "deal_pipeline_id": pipeline_id,
            "organization_id": organization_id,
            "organization": organization_id,
        }
        return extract_stages(self._request("GET", "/deal_stages", params=params))

    # deals

    def get_deal(self, deal_id: str) -> dict:
        return self._request("GET", f"/deals/{deal_id}")

    def create_deal(self, body: dict) -> dict:
        return self._request("POST", "/deals", json=body)

    def update_deal(self, deal_id: str, body: dict) -> dict:
        return self._request("PUT", f"/deals/{deal_id}", json=body)

    def list_deals(self, organization_id: str, limit: int = 200) -> list[dict]:
        data = self._request("GET", "/deals", params={"organization": organization_id, "limit": limit})
        return extract_deals(data)

    # tasks

    def list_tasks(self, deal_id: str, limit: int = 200) -> list[dict]:
        data = self._request("GET", "/tasks", params={"deal_id": deal_id, "limit": limit})
        return extract_tasks(data)

    # organizations

    def list_organizations(
        self,
        query: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[dict], bool]:
        """One page of organizations and whether another page follows."""
        data = self._request("GET", "/organizations", params={"q": query, "page": page, "limit": limit})
        has_more = bool(data.get("has_more")) if isinstance(data, dict) else False
        return extract_organizations(data), has_more
