"""
Tests for remote declarations and the dependency graph.
"""

import pytest

from zephyr_agent.context import CatalogResolver
from zephyr_agent.federation import (
    DeclaredDependency,
    FederationConfig,
    ResolvedDependency,
    build_consumes,
    build_overrides,
    extract_consumes,
    extract_federated_dependency_pairs,
    extract_modules_from_exposes,
    parse_remote_version,
    parse_remotes_as_entries,
    resolve_shared_version,
    shared_library_names,
)

from tests.conftest import make_package_json


def resolved_dep(name="checkout", **kw):
    values = dict(
        name=name,
        version="latest",
        application_uid=f"{name}.web.acme",
        default_url=f"https://{name}.test",
        remote_entry_url=f"https://{name}.test/remoteEntry.js",
    )
    values.update(kw)
    return ResolvedDependency(**values)


# ============================================================================
# Models
# ============================================================================

class TestModels:

    def test_federation_config_from_dict(self):
        config = FederationConfig.from_dict({
            "name": "shell",
            "remotes": {"checkout": "checkout@http://x/remoteEntry.js"},
            "shared": ["react"],
            "library": {"type": "var"},
            "additionalShared": [{"libraryName": "lodash"}],
        })
        assert config.filename == "remoteEntry.js"
        assert config.library_type == "var"
        assert config.additional_shared == [{"libraryName": "lodash"}]
        assert set(config.to_dict()) == {"name", "filename", "exposes", "remotes", "shared"}

    def test_federation_config_defaults(self):
        config = FederationConfig.from_dict(None)
        assert config.name is None
        assert config.library_type == "module"

    def test_resolved_to_dict_drops_unset_optionals(self):
        d = resolved_dep().to_dict()
        assert "snapshot_id" not in d
        assert "platform" not in d
        assert d["library_type"] == "module"

    def test_resolved_round_trip(self):
        dep = resolved_dep(platform="web", snapshot_id="s1", published_at=123)
        assert ResolvedDependency.from_dict(dep.to_dict()) == dep

    def test_with_changes(self):
        dep = resolved_dep()
        changed = dep.with_changes(remote_entry_url="x")
        assert changed.remote_entry_url == "x"
        assert dep.remote_entry_url != "x"


# ============================================================================
# Remote declarations
# ============================================================================

class TestParseRemoteVersion:

    def test_name_at_url(self):
        assert parse_remote_version("ui", "SharedUILib@http://host/remoteEntry.js") == (
            "SharedUILib", "http://host/remoteEntry.js",
        )

    def test_bare_url(self):
        assert parse_remote_version("ui", "https://host/remoteEntry.js") == (
            "ui", "https://host/remoteEntry.js",
        )

    def test_relative_url(self):
        assert parse_remote_version("ui", "ui@/remotes/ui/remoteEntry.js") == (
            "ui", "/remotes/ui/remoteEntry.js",
        )

    @pytest.mark.parametrize("value", ["latest", "^1.0.0", "stable", "@scope/pkg"])
    def test_plain_versions(self, value):
        assert parse_remote_version("ui", value) == ("ui", None)


class TestParseRemotesAsEntries:

    def test_dict(self):
        assert parse_remotes_as_entries({"a": "a@http://x", "b": "latest"}) == [
            ("a", "a@http://x"), ("b", "latest"),
        ]

    def test_object_values_serialized(self):
        (pair,) = parse_remotes_as_entries({"a": {"shareScope": "default", "external": "x"}})
        assert pair == ("a", '{"external":"x","shareScope":"default"}')

    def test_list_forms(self):
        assert parse_remotes_as_entries(["a", ["b", "1.0.0"], {"c": "latest"}, 42]) == [
            ("a", "a"), ("b", "1.0.0"), ("c", "latest"),
        ]

    def test_empty(self):
        assert parse_remotes_as_entries(None) == []
        assert parse_remotes_as_entries({}) == []


class TestExtractDependencyPairs:

    def test_zephyr_dependencies_take_precedence(self):
        pkg = make_package_json(zephyr_dependencies={"checkout": "zephyr:checkout.web.acme@v2"})
        mf = FederationConfig(remotes={"checkout": "latest", "cart": "cart@http://x/r.js"})
        deps = extract_federated_dependency_pairs(mf, pkg)
        assert deps == [
            DeclaredDependency("checkout", "zephyr:checkout.web.acme@v2"),
            DeclaredDependency("cart", "cart@http://x/r.js"),
        ]

    def test_no_sources(self):
        assert extract_federated_dependency_pairs(None, None) == []

    def test_empty_versions_dropped(self):
        mf = FederationConfig(remotes={"a": "", "b": "latest"})
        assert extract_federated_dependency_pairs(mf) == [DeclaredDependency("b", "latest")]


# ============================================================================
# Graph
# ============================================================================

class TestSharedVersions:

    def test_dependencies_first(self):
        pkg = make_package_json(dependencies={"react": "^18.2.0"}, peer_dependencies={"react": "^17"})
        assert resolve_shared_version("react", {"requiredVersion": "^16"}, pkg) == "^18.2.0"

    def test_peer_dependencies_next(self):
        pkg = make_package_json(peer_dependencies={"react": "^17"})
        assert resolve_shared_version("react", {"requiredVersion": "^16"}, pkg) == "^17"

    def test_required_version(self):
        assert resolve_shared_version("react", {"requiredVersion": "^16"}, None) == "^16"

    def test_string_config(self):
        assert resolve_shared_version("react", "^15", None) == "^15"

    def test_fallback(self):
        assert resolve_shared_version("react", {"singleton": True}, None) == "0.0.0"
        assert resolve_shared_version("react", None, None) == "0.0.0"

    def test_catalog_reference(self):
        catalogs = CatalogResolver({"catalog": {"react": "18.3.1"}})
        pkg = make_package_json(dependencies={"react": "catalog:"})
        assert resolve_shared_version("react", None, pkg, catalogs) == "18.3.1"


class TestOverrides:

    def test_sorted_by_name(self):
        mf = FederationConfig(shared={"react": {"singleton": True}, "lodash": "4.0.0"})
        overrides = build_overrides(mf, make_package_json(dependencies={"react": "18.0.0"}))
        assert [o["name"] for o in overrides] == ["lodash", "react"]
        assert overrides[1] == {
            "id": "react",
            "name": "react",
            "version": "18.0.0",
            "location": "react",
            "applicationID": "react",
        }

    def test_array_shared(self):
        mf = FederationConfig(shared=["react", {"libraryName": "vue"}, 3])
        assert [o["name"] for o in build_overrides(mf, None)] == ["react", "vue"]

    def test_no_config(self):
        assert build_overrides(None, None) == []


class TestModules:

    def test_exposes(self):
        mf = FederationConfig(
            exposes={"./Button": "./src/Button.tsx", "Card": {"import": ["./src/Card.tsx"]}},
            shared=["react"],
            additional_shared=[{"libraryName": "lodash"}],
        )
        modules = extract_modules_from_exposes(mf, "shell.web.acme")
        assert modules[0] == {
            "id": "Button:Button",
            "name": "Button",
            "applicationID": "shell.web.acme",
            "requires": ["react", "lodash"],
            "file": "./src/Button.tsx",
        }
        assert modules[1]["file"] == "./src/Card.tsx"

    def test_shared_library_names(self):
        mf = FederationConfig(shared={"react": {}}, additional_shared=[{"libraryName": "x"}, "bad"])
        assert shared_library_names(mf) == ["react", "x"]

    def test_no_exposes(self):
        assert extract_modules_from_exposes(FederationConfig(), "a.b.c") == []


class TestConsumes:

    def test_found_in_code(self):
        chunks = {
            "main.js": 'loadRemote("checkout/Cart"); import("checkout/Cart")',
            "other.js": "loadRemote('unknown/Thing')",
        }
        consumes = extract_consumes(chunks, ["checkout"])
        assert consumes == [{
            "consumingApplicationID": "Cart",
            "applicationID": "checkout",
            "name": "Cart",
            "usedIn": [{"file": "main.js", "url": "main.js"}],
        }]

    def test_build_consumes_adds_unreferenced_remotes(self):
        found = extract_consumes({"main.js": 'loadRemote("checkout/Cart")'}, ["checkout", "cart"])
        consumes = build_consumes([resolved_dep("checkout"), resolved_dep("cart")], found)
        assert [c["applicationID"] for c in consumes] == ["checkout", "cart.web.acme"]
        assert consumes[1]["usedIn"] == []
