"""
Shared test fixtures and helpers for the zephyr_agent test suite.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from zephyr_agent.config import AgentConfig
from zephyr_agent.context.git import GitInfo
from zephyr_agent.context.package_json import PackageJson, parse_ze_dependencies
from zephyr_agent.engine import ZephyrEngine
from zephyr_agent.http import ApiClient, ApplicationConfiguration
from zephyr_agent.snapshot import SnapshotContext


API_URL = "https://api.test"
EDGE_URL = "https://edge.test"
BUILD_ID_ENDPOINT = "https://api.test/v2/builder-packages-api/get-next-build-id"


# ============================================================================
# Data builders
# ============================================================================

def app_config_value(**overrides: Any) -> Dict[str, Any]:
    value = {
        "username": "jane",
        "email": "jane@example.com",
        "user_uuid": "user-1",
        "jwt": "edge-jwt",
        "EDGE_URL": EDGE_URL,
        "BUILD_ID_ENDPOINT": BUILD_ID_ENDPOINT,
        "DELIMITER": "-",
        "PLATFORM": "cloudflare",
        "ENVIRONMENTS": {},
    }
    value.update(overrides)
    return value


def make_app_config(**overrides: Any) -> ApplicationConfiguration:
    return ApplicationConfiguration.from_dict(
        {"application_uid": "shell.web.acme", **app_config_value(**overrides)},
        fetched_at=0.0,
    )


def make_package_json(
    name: str = "shell",
    version: str = "1.0.0",
    *,
    dependencies: Optional[Dict[str, str]] = None,
    peer_dependencies: Optional[Dict[str, str]] = None,
    zephyr_dependencies: Optional[Dict[str, str]] = None,
) -> PackageJson:
    raw: Dict[str, Any] = {"name": name, "version": version}
    if dependencies:
        raw["dependencies"] = dependencies
    if zephyr_dependencies:
        raw["zephyr:dependencies"] = zephyr_dependencies
    return PackageJson(
        name=name,
        version=version,
        dependencies=dict(dependencies or {}),
        peer_dependencies=dict(peer_dependencies or {}),
        zephyr_dependencies=parse_ze_dependencies(zephyr_dependencies or {}),
        raw=raw,
    )


def make_git_info(**overrides: Any) -> GitInfo:
    values = dict(
        name="Jane Doe",
        email="jane@example.com",
        branch="main",
        commit="abc1234def5678",
        org="acme",
        project="web",
        tags=[],
    )
    values.update(overrides)
    return GitInfo(**values)


def make_snapshot_context(**overrides: Any) -> SnapshotContext:
    values = dict(
        application_uid="shell.web.acme",
        app_config=make_app_config(),
        package_json=make_package_json(),
        git_info=make_git_info(),
        build_id="42",
    )
    values.update(overrides)
    return SnapshotContext(**values)


# ============================================================================
# Fake API
# ============================================================================

class FakeApi:
    """
    Route table for httpx.MockTransport.

    Handlers are keyed by ``(method, path)`` and receive the request.
    Every request is recorded in ``calls``.
    """

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def on(self, method: str, path: str, handler=None, *, json_body: Any = None, status: int = 200):
        if handler is None:
            def handler(request, _body=json_body, _status=status):
                return httpx.Response(_status, json=_body)
        self.routes[(method, path)] = handler
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": f"no route {request.method} {request.url.path}"})
        return handler(request)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.url.path == path]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def default_routes(api: FakeApi, *, hashes: Optional[List[str]] = None) -> FakeApi:
    """Routes for a full successful deploy of shell.web.acme."""
    api.on("GET", "/v2/application/application-config/shell.web.acme",
           json_body={"value": app_config_value()})
    api.on("GET", "/v2/builder-packages-api/get-next-build-id", json_body={"user-1": "42"})
    api.on("GET", "/v2/application/shell.web.acme/hash-list", json_body={"hashes": hashes or []})

    def _edge_upload(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("type") == "snapshot":
            body = json.loads(request.content)
            return httpx.Response(200, json={"value": {"urls": {"version": f"https://{body['snapshot_id']}.test"}}})
        return httpx.Response(200, json={"status": "ok"})

    api.on("POST", "/upload", _edge_upload)
    api.on("POST", "/v2/builder-packages-api/upload-build-stats",
           json_body={"value": {"application_uid": "shell.web.acme"}})
    return api


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def agent_config():
    return AgentConfig(api_url=API_URL, max_retries=0, retry_base_delay=0.0)


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def api_client(fake_api, agent_config):
    return ApiClient("user-token", agent_config, transport=fake_api.transport())


@pytest.fixture(autouse=True)
def _clear_engine_instances():
    ZephyrEngine.clear_instances()
    yield
    ZephyrEngine.clear_instances()
