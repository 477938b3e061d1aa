"""
Healthchecks Management API client.
Async aiohttp client mapping the v3 REST endpoints onto the MonitorSource contract.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from healthkube.config import HTTP_SETTINGS
from healthkube.errors import RemoteServiceError, is_transient_status
from healthkube.integrations.base import MonitorSource
from healthkube.models.descriptors import IntegrationDescriptor, MonitorConfig, MonitorDescriptor
from healthkube.models.schemas.healthchecks import (
    ChannelsListResponse,
    CheckPayload,
    CheckResponse,
    ChecksListResponse,
)
from healthkube.utils import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "healthchecks"
API_PREFIX = "/api/v3"


class HealthchecksClient(MonitorSource):
    """Healthchecks integration.

    Use as an async context manager so the underlying session is opened
    inside the running event loop and always closed::

        async with HealthchecksClient(api_key, base_url) as client:
            monitors = await client.list_monitors()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        *,
        total_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=float(total_timeout if total_timeout is not None else HTTP_SETTINGS["total_timeout_seconds"]),
            connect=float(connect_timeout if connect_timeout is not None else HTTP_SETTINGS["connect_timeout_seconds"]),
        )
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HealthchecksClient":
        self._session = aiohttp.ClientSession(
            timeout=self.timeout,
            headers={
                "X-Api-Key": self.api_key,
                "User-Agent": "healthkube",
            },
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        if self._session is None:
            raise RuntimeError("HealthchecksClient used outside of 'async with'")
        url = self._url(path)
        try:
            async with self._session.request(method, url, json=payload) as resp:
                text = await resp.text()
                if 200 <= resp.status < 300:
                    if not text:
                        return {}
                    try:
                        return json.loads(text)
                    except json.JSONDecodeError as e:
                        raise RemoteServiceError(
                            f"Healthchecks returned invalid JSON for {method} {path}",
                            service=SERVICE_NAME,
                            status_code=resp.status,
                            payload=text,
                        ) from e
                logger.warning(
                    "Healthchecks request failed",
                    method=method,
                    path=path,
                    status_code=resp.status,
                )
                raise RemoteServiceError(
                    f"Healthchecks {method} {path} returned HTTP {resp.status}: {text[:200]}",
                    service=SERVICE_NAME,
                    status_code=resp.status,
                    transient=is_transient_status(resp.status),
                    payload=text,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteServiceError(
                f"Healthchecks {method} {path} failed: {e!r}",
                service=SERVICE_NAME,
                transient=True,
            ) from e

    def _check(self, data: Any, action: str) -> MonitorDescriptor:
        try:
            check = CheckResponse.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError(
                f"Unexpected check payload after {action}",
                service=SERVICE_NAME,
                payload=data,
            ) from e
        descriptor = check.to_descriptor()
        if descriptor is None:
            raise RemoteServiceError(
                f"Check returned by {action} has no id; is the API key read-only?",
                service=SERVICE_NAME,
                payload=data,
            )
        return descriptor

    async def list_monitors(self) -> List[MonitorDescriptor]:
        data = await self._request("GET", "/checks/")
        try:
            parsed = ChecksListResponse.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError("Unexpected checks listing", service=SERVICE_NAME, payload=data) from e
        monitors = []
        for check in parsed.checks:
            descriptor = check.to_descriptor()
            if descriptor is None:
                logger.warning("Skipping check without id", name=check.name)
                continue
            monitors.append(descriptor)
        return monitors

    async def list_integrations(self) -> List[IntegrationDescriptor]:
        data = await self._request("GET", "/channels/")
        try:
            parsed = ChannelsListResponse.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError("Unexpected channels listing", service=SERVICE_NAME, payload=data) from e
        return [channel.to_descriptor() for channel in parsed.channels]

    async def create_monitor(self, config: MonitorConfig) -> MonitorDescriptor:
        payload = CheckPayload.from_config(config, upsert=True).model_dump(exclude_none=True)
        data = await self._request("POST", "/checks/", payload)
        return self._check(data, "create")

    async def update_monitor(self, monitor_id: str, config: MonitorConfig) -> MonitorDescriptor:
        payload = CheckPayload.from_config(config).model_dump(exclude_none=True)
        data = await self._request("POST", f"/checks/{monitor_id}", payload)
        return self._check(data, "update")

    async def pause_monitor(self, monitor_id: str) -> MonitorDescriptor:
        data = await self._request("POST", f"/checks/{monitor_id}/pause")
        return self._check(data, "pause")

    async def delete_monitor(self, monitor_id: str) -> None:
        await self._request("DELETE", f"/checks/{monitor_id}")


__all__ = ["HealthchecksClient", "SERVICE_NAME"]
