"""
Tests for remote dependency resolution against a mocked Zephyr API.
"""

import logging
from types import SimpleNamespace

import httpx
import pytest

from zephyr_agent.config import AgentConfig
from zephyr_agent.context import ZeDependency
from zephyr_agent.faults import ZeErrors
from zephyr_agent.federation import (
    DeclaredDependency,
    DependencyResolver,
    FederationConfig,
    ResolutionError,
    ResolvedDependency,
    apply_remote_versions,
)
from zephyr_agent.http import ApiClient

from tests.conftest import API_URL, make_git_info, make_package_json


def resolve_value(name="checkout", **overrides):
    value = {
        "name": name,
        "application_uid": f"{name}.web.acme",
        "default_url": f"https://{name}.test",
        "remote_entry_url": f"https://v1-{name}.test/remoteEntry.js",
        "library_type": "module",
    }
    value.update(overrides)
    return {"value": value}


# ============================================================================
# DependencyResolver.resolve
# ============================================================================

class TestResolve:

    @pytest.mark.asyncio
    async def test_success(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value(platform="web"))
        fake_api.on("GET", "/__get_version_info__", json_body={
            "value": {"snapshotId": "snap-1", "publishedAt": 1700000000000, "versionUrl": "https://v1.test"},
        })

        async with api_client:
            resolver = DependencyResolver(api_client)
            dep = await resolver.resolve(
                DeclaredDependency("checkout", "latest"), "acme", "web",
                target="web", build_context="ci",
            )

        assert dep.name == "checkout"
        assert dep.version == "latest"
        assert dep.application_uid == "checkout.web.acme"
        assert dep.remote_entry_url == "https://v1-checkout.test/remoteEntry.js"
        assert dep.platform == "web"
        assert dep.snapshot_id == "snap-1"
        assert dep.published_at == 1700000000000
        assert dep.version_url == "https://v1.test"

        request = fake_api.calls_to("/resolve/checkout.web.acme/latest")[0]
        assert request.url.params["build_target"] == "web"
        assert request.url.params["build_context"] == "ci"

    @pytest.mark.asyncio
    async def test_platform_defaults_to_target(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value())
        async with api_client:
            dep = await DependencyResolver(api_client).resolve(
                DeclaredDependency("checkout", "latest"), "acme", "web", target="ios"
            )
        assert dep.platform == "ios"

    @pytest.mark.asyncio
    async def test_version_info_unavailable(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value())
        async with api_client:
            dep = await DependencyResolver(api_client).resolve(
                DeclaredDependency("checkout", "latest"), "acme", "web"
            )
        assert dep.snapshot_id is None

    @pytest.mark.asyncio
    async def test_not_deployed(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body={"error": "nope"}, status=404)
        declared = DeclaredDependency("checkout", "latest")

        async with api_client:
            with pytest.raises(ResolutionError) as exc:
                await DependencyResolver(api_client).resolve(declared, "acme", "web")

        err = exc.value
        assert err.type is ZeErrors.ERR_RESOLVE_REMOTES
        assert err.dependency is declared
        assert err.data["status"] == 404
        assert err.data["appUid"] == "checkout.web.acme"
        assert "checkout.web.acme version latest" in err.message
        assert "acme/web/checkout" in err.message

    @pytest.mark.asyncio
    async def test_missing_value(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body={"value": None})
        async with api_client:
            with pytest.raises(ResolutionError) as exc:
                await DependencyResolver(api_client).resolve(
                    DeclaredDependency("checkout", "latest"), "acme", "web"
                )
        assert exc.value.type is ZeErrors.ERR_RESOLVE_REMOTES

    @pytest.mark.asyncio
    async def test_network_failure(self, fake_api, api_client):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        fake_api.on("GET", "/resolve/checkout.web.acme/latest", handler)
        async with api_client:
            with pytest.raises(ResolutionError) as exc:
                await DependencyResolver(api_client).resolve(
                    DeclaredDependency("checkout", "latest"), "acme", "web"
                )
        assert exc.value.type is ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION
        assert isinstance(exc.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_invalid_json(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", lambda r: httpx.Response(200, text="<html>"))
        async with api_client:
            with pytest.raises(ResolutionError) as exc:
                await DependencyResolver(api_client).resolve(
                    DeclaredDependency("checkout", "latest"), "acme", "web"
                )
        assert exc.value.type is ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION

    @pytest.mark.asyncio
    async def test_explicit_url_keeps_remote_name(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value())
        declared = DeclaredDependency("checkout", "CheckoutApp@http://localhost:3001/remoteEntry.js")

        async with api_client:
            dep = await DependencyResolver(api_client).resolve(declared, "acme", "web")

        assert dep.remote_entry_url == "CheckoutApp@http://localhost:3001/remoteEntry.js"
        assert dep.version == declared.version

    @pytest.mark.asyncio
    async def test_zephyr_dependency_overrides_identity(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/cart-app.shop.other/v2", json_body=resolve_value("cart"))
        zephyr_dependencies = {"cart": ZeDependency(version="v2", registry="zephyr", app_uid="cart-app.shop.other")}

        async with api_client:
            dep = await DependencyResolver(api_client).resolve(
                DeclaredDependency("cart", "zephyr:cart-app.shop.other@v2"), "acme", "web",
                zephyr_dependencies=zephyr_dependencies,
            )
        assert dep.name == "cart"
        assert dep.version == "zephyr:cart-app.shop.other@v2"

    @pytest.mark.asyncio
    async def test_dotted_name_sets_project_and_org(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.shop.other/latest", json_body=resolve_value())
        async with api_client:
            dep = await DependencyResolver(api_client).resolve(
                DeclaredDependency("checkout.shop.other", "latest"), "acme", "web"
            )
        assert dep.name == "checkout.shop.other"


# ============================================================================
# resolve_all / for_engine
# ============================================================================

class TestResolveAll:

    @pytest.mark.asyncio
    async def test_partial_failure(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value())
        fake_api.on("GET", "/resolve/cart.web.acme/latest", json_body={}, status=404)
        fake_api.on("GET", "/resolve/nav.web.acme/latest", json_body=resolve_value("nav"))
        deps = [
            DeclaredDependency("checkout", "latest"),
            DeclaredDependency("cart", "latest"),
            DeclaredDependency("nav", "latest"),
        ]

        async with api_client:
            resolved, errors = await DependencyResolver(api_client).resolve_all(
                deps, org="acme", project="web"
            )

        assert [d.name for d in resolved] == ["checkout", "nav"]
        assert len(errors) == 1
        assert errors[0].dependency.name == "cart"

    @pytest.mark.asyncio
    async def test_malformed_default_url(self, fake_api, api_client):
        fake_api.on("GET", "/resolve/a.web.acme/latest", json_body=resolve_value("a", default_url="http://[::1"))
        fake_api.on("GET", "/resolve/b.web.acme/latest", json_body=resolve_value("b"))
        deps = [DeclaredDependency("a", "latest"), DeclaredDependency("b", "latest")]

        async with api_client:
            resolved, errors = await DependencyResolver(api_client).resolve_all(
                deps, org="acme", project="web"
            )

        assert [d.name for d in resolved] == ["a", "b"]
        assert resolved[0].snapshot_id is None
        assert errors == []

    @pytest.mark.asyncio
    async def test_unexpected_error_isolated(self, fake_api, api_client, monkeypatch):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value())
        fake_api.on("GET", "/resolve/nav.web.acme/latest", json_body=resolve_value("nav"))

        async def version_info(default_url):
            if "checkout" in default_url:
                raise RuntimeError("broken payload")
            return None

        monkeypatch.setattr(api_client, "get_version_info", version_info)
        deps = [DeclaredDependency("checkout", "latest"), DeclaredDependency("nav", "latest")]

        async with api_client:
            resolved, errors = await DependencyResolver(api_client).resolve_all(
                deps, org="acme", project="web"
            )

        assert [d.name for d in resolved] == ["nav"]
        (error,) = errors
        assert isinstance(error, ResolutionError)
        assert error.type is ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION
        assert error.dependency.name == "checkout"
        assert isinstance(error.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty(self, api_client):
        resolved, errors = await DependencyResolver(api_client).resolve_all([], org="a", project="b")
        assert (resolved, errors) == ([], [])


def fake_engine():
    return SimpleNamespace(
        git_info=make_git_info(),
        package_json=make_package_json(),
        target="web",
        build_context=None,
    )


class TestForEngine:

    @pytest.mark.asyncio
    async def test_unresolved_logged_and_skipped(self, fake_api, api_client, caplog):
        fake_api.on("GET", "/resolve/checkout.web.acme/latest", json_body=resolve_value())
        deps = [DeclaredDependency("checkout", "latest"), DeclaredDependency("cart", "latest")]

        with caplog.at_level(logging.WARNING, logger="zephyr_agent.federation"):
            async with api_client:
                resolved = await DependencyResolver(api_client).for_engine(fake_engine(), deps)

        assert [d.name for d in resolved] == ["checkout"]
        assert "1 remote(s) could not be resolved" in caplog.text
        assert f"[{ZeErrors.ERR_RESOLVE_REMOTES.code}] cart" in caplog.text

    @pytest.mark.asyncio
    async def test_fail_on_unresolved(self, fake_api):
        config = AgentConfig(api_url=API_URL, max_retries=0, fail_on_unresolved_remotes=True)
        async with ApiClient("t", config, transport=fake_api.transport()) as api:
            with pytest.raises(ResolutionError) as exc:
                await DependencyResolver(api).for_engine(
                    fake_engine(), [DeclaredDependency("cart", "latest")]
                )
        assert exc.value.dependency.name == "cart"


# ============================================================================
# apply_remote_versions
# ============================================================================

def resolved(name, url):
    return ResolvedDependency(
        name=name,
        version="latest",
        application_uid=f"{name}.web.acme",
        default_url=f"https://{name}.test",
        remote_entry_url=url,
    )


class TestApplyRemoteVersions:

    def test_prefixes_declared_remote_name(self):
        mf = FederationConfig(remotes={"checkout": "CheckoutApp@latest"}, library_type="var")
        (dep,) = apply_remote_versions([resolved("checkout", "https://x.test/remoteEntry.js")], mf)
        assert dep.remote_entry_url == "CheckoutApp@https://x.test/remoteEntry.js"
        assert dep.library_type == "var"

    def test_plain_version_uses_dependency_name(self):
        mf = FederationConfig(remotes={"checkout": "latest"})
        (dep,) = apply_remote_versions([resolved("checkout", "https://x.test/r.js")], mf)
        assert dep.remote_entry_url == "checkout@https://x.test/r.js"

    def test_existing_prefix_untouched(self):
        mf = FederationConfig(remotes={"checkout": "Other@latest"})
        original = resolved("checkout", "Checkout@https://x.test/r.js")
        assert apply_remote_versions([original], mf) == [original]

    def test_undeclared_untouched(self):
        original = resolved("checkout", "https://x.test/r.js")
        assert apply_remote_versions([original], None) == [original]
        assert apply_remote_versions([original], FederationConfig(remotes={"cart": "x"})) == [original]
