"""
Zephyr API client - async HTTP via httpx.

Talks to two hosts:
- the Zephyr API (application config, build id, hash list, remote
  resolution, build stats), authenticated with the user token
- the application's edge (snapshot, asset and env uploads),
  authenticated with the per-application ``can_write_jwt``

Usage::

    async with ApiClient(token, config) as api:
        app_config = await api.get_application_configuration(uid)
        build_id = await api.get_build_id(app_config)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Optional, Set
from urllib.parse import quote

import httpx

from .. import __version__
from ..config import AgentConfig
from ..faults import HttpError, ZephyrError, ZeErrors
from .models import ApplicationConfiguration
from .retry import fetch_with_retries


logger = logging.getLogger("zephyr_agent.http")

_APP_CONFIG_ENDPOINT = "/v2/application/application-config"
_HASH_LIST_ENDPOINT = "/v2/application/{uid}/hash-list"
_RESOLVE_ENDPOINT = "/resolve/{uid}/{version}"
_BUILD_STATS_ENDPOINT = "/v2/builder-packages-api/upload-build-stats"
_EDGE_UPLOAD_ENDPOINT = "/upload"
_VERSION_INFO_ENDPOINT = "/__get_version_info__"


def _body_text(response: httpx.Response) -> str:
    try:
        return response.text
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""


class ApiClient:
    """
    Async client for the Zephyr API and edge workers.

    Every request goes through :func:`fetch_with_retries`; non-2xx
    responses become :class:`~zephyr_agent.faults.HttpError`.
    """

    def __init__(
        self,
        token: str,
        config: Optional[AgentConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.config = config or AgentConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._app_configs: Dict[str, ApplicationConfiguration] = {}

    # ── Lifecycle ───────────────────────────────────────────────────

    async def initialize(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            headers={"User-Agent": f"zephyr-agent/{__version__}"},
            timeout=httpx.Timeout(self.config.upload_timeout),
            transport=self._transport,
        )

    async def shutdown(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("ApiClient is not initialized; use 'async with' or initialize()")
        return self._client

    # ── Core request ────────────────────────────────────────────────

    def _api_url(self, path: str) -> str:
        return f"{self.config.api_url}{path}"

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def request(
        self,
        method: str,
        url: str,
        *,
        retries: Optional[int] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send with retries and raise HttpError on a non-2xx response."""
        try:
            response = await fetch_with_retries(
                self.client,
                method,
                url,
                retries=self.config.max_retries if retries is None else retries,
                base_delay=self.config.retry_base_delay,
                **kwargs,
            )
        except httpx.TransportError as e:
            raise HttpError(method, url, 0, str(e), cause=e) from e

        if response.is_error:
            raise HttpError(method, url, response.status_code, _body_text(response))
        return response

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self.request(method, url, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HttpError(method, url, response.status_code, _body_text(response), cause=e) from e

    # ── Application ─────────────────────────────────────────────────

    async def get_application_configuration(
        self,
        application_uid: str,
        *,
        force: bool = False,
    ) -> ApplicationConfiguration:
        """
        Load the application configuration, reusing a cached copy that is
        younger than ``config.app_config_ttl`` seconds.
        """
        if not application_uid:
            raise ZephyrError(ZeErrors.ERR_MISSING_APPLICATION_UID)

        cached = self._app_configs.get(application_uid)
        if cached is not None and not force and cached.is_fresh(self.config.app_config_ttl):
            return cached

        url = self._api_url(f"{_APP_CONFIG_ENDPOINT}/{quote(application_uid, safe='')}")
        try:
            data = await self.request_json("GET", url, headers=self._auth_headers())
        except HttpError as e:
            raise ZephyrError(
                ZeErrors.ERR_LOAD_APP_CONFIG,
                cause=e,
                application_uid=application_uid,
                data={"url": url, "status": e.status},
            ) from e

        value = (data or {}).get("value") if isinstance(data, dict) else None
        if not value:
            raise ZephyrError(
                ZeErrors.ERR_LOAD_APP_CONFIG,
                application_uid=application_uid,
                data={"url": url},
            )

        app_config = ApplicationConfiguration.from_dict(
            {"application_uid": application_uid, **value}
        )
        self._app_configs[application_uid] = app_config
        return app_config

    async def get_build_id(self, app_config: ApplicationConfiguration) -> str:
        """Request a new build id for the current user."""
        headers = {**self._auth_headers(), "can_write_jwt": app_config.jwt}
        try:
            data = await self.request_json("GET", app_config.BUILD_ID_ENDPOINT, headers=headers)
        except HttpError as e:
            raise ZephyrError(
                ZeErrors.ERR_GET_BUILD_ID,
                cause=e,
                username=app_config.username,
                application_uid=app_config.application_uid,
                data={"status": e.status},
            ) from e

        build_id = data.get(app_config.user_uuid) if isinstance(data, dict) else None
        if not build_id:
            raise ZephyrError(
                ZeErrors.ERR_GET_BUILD_ID,
                username=app_config.username,
                application_uid=app_config.application_uid,
                data={"response": data},
            )
        logger.debug(f"Build ID retrieved: {build_id}")
        return str(build_id)

    async def get_hash_list(self, application_uid: str) -> Set[str]:
        """Hashes of every asset the edge already stores for this application."""
        url = self._api_url(_HASH_LIST_ENDPOINT.format(uid=quote(application_uid, safe="")))
        try:
            data = await self.request_json("GET", url, headers=self._auth_headers())
        except HttpError as e:
            raise ZephyrError(ZeErrors.ERR_GET_APPLICATION_HASH_LIST, cause=e) from e
        hashes: Iterable[str] = (data or {}).get("hashes", []) if isinstance(data, dict) else []
        return set(hashes)

    # ── Remote resolution ───────────────────────────────────────────

    async def resolve_dependency(
        self,
        application_uid: str,
        version: str,
        *,
        build_target: Optional[str] = None,
        build_context: Optional[str] = None,
    ) -> httpx.Response:
        """
        ``GET /resolve/{uid}/{version}``. Returns the raw response; the
        resolver decides how to classify failures.
        """
        url = self._api_url(
            _RESOLVE_ENDPOINT.format(
                uid=quote(application_uid, safe=""),
                version=quote(version, safe=""),
            )
        )
        params = {}
        if build_target:
            params["build_target"] = build_target
        if build_context:
            params["build_context"] = build_context

        return await fetch_with_retries(
            self.client,
            "GET",
            url,
            retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            params=params or None,
            headers={**self._auth_headers(), "Accept": "application/json"},
            timeout=self.config.resolve_timeout,
        )

    async def get_version_info(self, default_url: str) -> Optional[Dict[str, Any]]:
        """Version info served by a deployed remote, or None on any failure."""
        base = default_url.rstrip("/")
        try:
            response = await self.client.get(
                f"{base}{_VERSION_INFO_ENDPOINT}",
                timeout=self.config.version_info_timeout,
            )
            if response.is_error:
                return None
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.debug(f"Version info unavailable for {default_url}: {e}")
            return None
        return data if isinstance(data, dict) else None

    # ── Uploads ─────────────────────────────────────────────────────

    def _edge_headers(self, app_config: ApplicationConfiguration, content_type: str) -> Dict[str, str]:
        return {
            "Content-Type": content_type,
            "can_write_jwt": app_config.jwt,
        }

    async def upload_snapshot(
        self,
        app_config: ApplicationConfiguration,
        snapshot: Dict[str, Any],
        *,
        edge_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{(edge_url or app_config.EDGE_URL).rstrip('/')}{_EDGE_UPLOAD_ENDPOINT}"
        data = await self.request_json(
            "POST",
            url,
            params={"type": "snapshot", "skip_assets": "true"},
            content=json.dumps(snapshot).encode("utf-8"),
            headers=self._edge_headers(app_config, "application/json; charset=utf-8"),
        )
        return data or {}

    async def upload_file(
        self,
        app_config: ApplicationConfiguration,
        *,
        path: str,
        hash: str,
        buffer: bytes,
        mime_type: str,
        edge_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{(edge_url or app_config.EDGE_URL).rstrip('/')}{_EDGE_UPLOAD_ENDPOINT}"
        headers = self._edge_headers(app_config, "application/octet-stream")
        headers["x-file-size"] = str(len(buffer))
        headers["x-mime-type"] = mime_type
        data = await self.request_json(
            "POST",
            url,
            params={"type": "file", "hash": hash, "filename": path},
            content=buffer,
            headers=headers,
        )
        return data or {}

    async def upload_envs(
        self,
        app_config: ApplicationConfiguration,
        payload: Dict[str, Any],
        *,
        edge_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{(edge_url or app_config.EDGE_URL).rstrip('/')}{_EDGE_UPLOAD_ENDPOINT}"
        data = await self.request_json(
            "POST",
            url,
            params={"type": "envs"},
            content=json.dumps(payload).encode("utf-8"),
            headers=self._edge_headers(app_config, "application/json; charset=utf-8"),
        )
        return data or {}

    async def upload_build_stats(self, dash_data: Dict[str, Any]) -> Dict[str, Any]:
        """Send the build stats document; returns the ``value`` of the response."""
        data = await self.request_json(
            "POST",
            self._api_url(_BUILD_STATS_ENDPOINT),
            content=json.dumps(dash_data).encode("utf-8"),
            headers={**self._auth_headers(), "Content-Type": "application/json"},
        )
        if not isinstance(data, dict) or "value" not in data:
            raise ZephyrError(ZeErrors.ERR_FAILED_UPLOAD, type="build stats", data={"response": data})
        return data["value"] or {}

    def __repr__(self) -> str:
        return f"<ApiClient api_url={self.config.api_url!r}>"
