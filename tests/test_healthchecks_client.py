"""HealthchecksClient against an in-process aiohttp server emulating the v3 API."""
import asyncio
import uuid

import pytest
from aiohttp import web
from aiohttp import test_utils

from healthkube.errors import RemoteServiceError
from healthkube.integrations.healthchecks import HealthchecksClient
from healthkube.models.descriptors import MonitorConfig

API_KEY = "test-key"


class FakeHealthchecks:
    def __init__(self):
        self.checks: dict[str, dict] = {}
        self.requests: list[tuple[str, str, dict]] = []
        self.fail_with: int | None = None
        self.delay = 0.0
        self.app = web.Application(middlewares=[self._auth])
        self.app.add_routes([
            web.get("/api/v3/checks/", self.list_checks),
            web.post("/api/v3/checks/", self.create_check),
            web.post("/api/v3/checks/{uuid}", self.update_check),
            web.post("/api/v3/checks/{uuid}/pause", self.pause_check),
            web.delete("/api/v3/checks/{uuid}", self.delete_check),
            web.get("/api/v3/channels/", self.list_channels),
        ])

    @web.middleware
    async def _auth(self, request, handler):
        if request.headers.get("X-Api-Key") != API_KEY:
            return web.json_response({"error": "wrong api key"}, status=401)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            return web.Response(status=self.fail_with, text="unavailable")
        body = await request.json() if request.can_read_body else {}
        self.requests.append((request.method, request.path, body))
        return await handler(request)

    def _render(self, check_id):
        check = dict(self.checks[check_id])
        check["ping_url"] = f"https://hc-ping.com/{check_id}"
        check["update_url"] = f"https://healthchecks.example/api/v3/checks/{check_id}"
        return check

    async def list_checks(self, request):
        return web.json_response({"checks": [self._render(i) for i in self.checks]})

    async def create_check(self, request):
        body = await request.json()
        for check_id, check in self.checks.items():
            if "name" in body.get("unique", []) and check["name"] == body["name"]:
                return web.json_response(self._render(check_id), status=200)
        check_id = str(uuid.uuid4())
        self.checks[check_id] = {k: v for k, v in body.items() if k != "unique"} | {"status": "new"}
        return web.json_response(self._render(check_id), status=201)

    async def update_check(self, request):
        check_id = request.match_info["uuid"]
        if check_id not in self.checks:
            return web.json_response({"error": "check not found"}, status=404)
        self.checks[check_id].update(await request.json())
        return web.json_response(self._render(check_id))

    async def pause_check(self, request):
        check_id = request.match_info["uuid"]
        self.checks[check_id]["status"] = "paused"
        return web.json_response(self._render(check_id))

    async def delete_check(self, request):
        check_id = request.match_info["uuid"]
        self.checks.pop(check_id)
        return web.json_response({})

    async def list_channels(self, request):
        return web.json_response({"channels": [
            {"id": "4ec5a071-2d08-4baa-898a-eb4eb3cd6941", "name": "ops-email", "kind": "email"},
            {"id": "746a083e-f542-4554-be1a-707ce16d3acc", "name": "pager", "kind": "pd"},
        ]})


CONFIG = MonitorConfig(
    name="batch/report",
    schedule="*/5 * * * *",
    timezone="UTC",
    grace=600,
    integration_ids=frozenset({"746a083e-f542-4554-be1a-707ce16d3acc"}),
    tags=frozenset({"nightly", "healthkube"}),
    desc="CronJob batch/report (context prod)",
)


def _run(fake, scenario, api_key=API_KEY, **client_options):
    async def main():
        async with test_utils.TestServer(fake.app) as server:
            async with HealthchecksClient(api_key, str(server.make_url("/")), **client_options) as client:
                return await scenario(client)
    return asyncio.run(main())


def test_create_list_update_pause_delete():
    fake = FakeHealthchecks()

    async def scenario(client):
        created = await client.create_monitor(CONFIG)
        listed = await client.list_monitors()
        updated = await client.update_monitor(created.id, MonitorConfig(**{**CONFIG.__dict__, "grace": 900}))
        paused = await client.pause_monitor(created.id)
        await client.delete_monitor(created.id)
        remaining = await client.list_monitors()
        return created, listed, updated, paused, remaining

    created, listed, updated, paused, remaining = _run(fake, scenario)
    assert listed == [created]
    assert created.name == "batch/report"
    assert created.tags == frozenset({"nightly", "healthkube"})
    assert created.integration_ids == CONFIG.integration_ids
    assert updated.grace == 900
    assert paused.paused
    assert remaining == []

    method, path, body = fake.requests[0]
    assert (method, path) == ("POST", "/api/v3/checks/")
    assert body["unique"] == ["name"]
    assert body["tags"] == "healthkube nightly"
    assert body["tz"] == "UTC"
    update_body = fake.requests[2][2]
    assert "unique" not in update_body
    assert set(update_body) == {"name", "tags", "desc", "schedule", "tz", "grace", "channels"}


def test_create_is_upsert_by_name():
    fake = FakeHealthchecks()

    async def scenario(client):
        first = await client.create_monitor(CONFIG)
        second = await client.create_monitor(CONFIG)
        return first, second

    first, second = _run(fake, scenario)
    assert first.id == second.id
    assert len(fake.checks) == 1


def test_list_integrations():
    integrations = _run(FakeHealthchecks(), lambda client: client.list_integrations())
    assert [(i.name, i.kind) for i in integrations] == [("ops-email", "email"), ("pager", "pd")]


def test_wrong_key_is_permanent_error():
    with pytest.raises(RemoteServiceError) as exc:
        _run(FakeHealthchecks(), lambda client: client.list_monitors(), api_key="nope")
    assert exc.value.status_code == 401
    assert exc.value.transient is False


@pytest.mark.parametrize("status", [429, 502, 503])
def test_throttling_and_server_errors_are_transient(status):
    fake = FakeHealthchecks()
    fake.fail_with = status
    with pytest.raises(RemoteServiceError) as exc:
        _run(fake, lambda client: client.list_monitors())
    assert exc.value.status_code == status
    assert exc.value.transient is True


def test_unknown_check_update_is_permanent():
    with pytest.raises(RemoteServiceError) as exc:
        _run(FakeHealthchecks(), lambda client: client.update_monitor("0bd3bc6a-4d5f-4d2f-9c23-6d0b1c8b0a7e", CONFIG))
    assert exc.value.status_code == 404
    assert not exc.value.transient


def test_connection_failure_is_transient():
    async def main():
        async with HealthchecksClient(API_KEY, "http://127.0.0.1:9", connect_timeout=1, total_timeout=2) as client:
            return await client.list_monitors()

    with pytest.raises(RemoteServiceError) as exc:
        asyncio.run(main())
    assert exc.value.transient is True
    assert exc.value.status_code is None


def test_client_requires_context_manager():
    with pytest.raises(RuntimeError):
        asyncio.run(HealthchecksClient(API_KEY, "http://localhost").list_monitors())


def test_request_timeout_is_transient():
    fake = FakeHealthchecks()
    fake.delay = 1.0
    with pytest.raises(RemoteServiceError) as exc:
        _run(fake, lambda client: client.list_monitors(), total_timeout=0.1)
    assert exc.value.transient is True
    assert exc.value.status_code is None
