"""
Runtime remote resolution.

The shipped bundle carries a small runtime plugin that, before a remote
module is requested, rewrites the remote's entry URL to the resolved
one. Rendering is done from Jinja2 templates taking typed parameters;
the resolved map itself is spliced in afterwards by replacing the quoted
``"__REMOTE_MAP__"`` placeholder, which survives minification.

:class:`RuntimeRemoteResolver` implements the same protocol in Python,
for hosts that load remotes outside a browser and for verification.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Set, Union

from jinja2 import Environment, PackageLoader, StrictUndefined

from .manifest import MANIFEST_FILENAME, ZephyrManifest
from .models import ResolvedDependency
from .remotes import parse_remote_version


logger = logging.getLogger("zephyr_agent.federation")

REMOTE_MAP_PLACEHOLDER = '"__REMOTE_MAP__"'
RUNTIME_PLUGIN_NAME = "zephyr-runtime-remote-resolver"
REPACK_BUILDER = "repack"


def remote_map(resolved: Iterable[ResolvedDependency]) -> Dict[str, Dict[str, Any]]:
    return {dep.name: dep.to_dict() for dep in resolved}


def inject_resolved_remotes(code: str, resolved: Iterable[ResolvedDependency]) -> str:
    """
    Replace the remote map placeholder in emitted code.

    Code without the placeholder is returned unchanged.
    """
    if REMOTE_MAP_PLACEHOLDER not in code:
        logger.debug("Remote map placeholder not found; runtime plugin may not be configured")
        return code

    resolved = list(resolved)
    updated = code.replace(REMOTE_MAP_PLACEHOLDER, json.dumps(remote_map(resolved)))
    logger.debug(f"Injected {len(resolved)} resolved remotes")
    return updated


class RuntimePluginTemplate:
    """
    Renders the runtime snippets shipped with the bundle.

    Example:
        templates = RuntimePluginTemplate()
        code = templates.render(resolved, manifest_url="/zephyr-manifest.json")
    """

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or Environment(
            loader=PackageLoader("zephyr_agent.federation", "templates"),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(
        self,
        resolved: Optional[Iterable[ResolvedDependency]] = None,
        *,
        manifest_url: str = f"/{MANIFEST_FILENAME}",
        builder: str = "webpack",
    ) -> str:
        """
        Render the runtime plugin. Without ``resolved`` the placeholder is
        kept, and the plugin falls back to fetching the manifest.
        """
        code = self.env.get_template("runtime_plugin.js.j2").render(
            builder=builder,
            manifest_url=manifest_url,
            plugin_name=RUNTIME_PLUGIN_NAME,
        )
        if resolved is None:
            return code
        return inject_resolved_remotes(code, resolved)

    def render_delegate_module(self, dep: ResolvedDependency, *, builder: str = "webpack") -> str:
        """
        Promise-based remote definition for one resolved remote.

        Repack loads remotes itself, so it only gets the entry URL.
        """
        if builder == REPACK_BUILDER:
            return dep.remote_entry_url
        return self.env.get_template("delegate_module.js.j2").render(dep=dep)


class RuntimeRemoteResolver:
    """
    ``beforeRequest`` hook of the runtime plugin.

    ``session`` is the per-session override store, keyed by
    application uid; when it holds a URL for a remote, that URL wins over
    the resolved one. Each remote name is rewritten at most once.
    """

    def __init__(
        self,
        resolved: Mapping[str, Union[ResolvedDependency, Mapping[str, Any]]],
        *,
        builder: str = "webpack",
        session: Optional[Mapping[str, str]] = None,
        reachable: Optional[Callable[[str], bool]] = None,
    ):
        self.resolved: Dict[str, Dict[str, Any]] = {
            name: dep.to_dict() if isinstance(dep, ResolvedDependency) else dict(dep)
            for name, dep in resolved.items()
        }
        self.builder = builder
        self.session: Mapping[str, str] = session if session is not None else {}
        self.reachable = reachable
        self.visited: Set[str] = set()

    @classmethod
    def from_manifest(cls, manifest: ZephyrManifest, **kwargs: Any) -> "RuntimeRemoteResolver":
        return cls(
            {name: dep.to_dict() for name, dep in manifest.dependencies.items()},
            **kwargs,
        )

    def entry_url(self, resolved: Mapping[str, Any]) -> str:
        """Session override first, then the resolved entry; ``name@`` prefix dropped."""
        url = self.session.get(resolved["application_uid"]) or resolved["remote_entry_url"]
        _, parsed = parse_remote_version(resolved.get("name", ""), url)
        url = parsed or url
        if self.reachable is not None and not self.reachable(url) and resolved.get("default_url"):
            return resolved["default_url"]
        return url

    def before_request(self, args: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        if self.builder == REPACK_BUILDER:
            return args

        remotes: List[MutableMapping[str, Any]] = (args.get("options") or {}).get("remotes") or []
        if not remotes:
            return args

        remote_name = str(args.get("id", "")).split("/")[0]
        if remote_name in self.visited:
            return args

        target = next(
            (
                r for r in remotes
                if isinstance(r, MutableMapping)
                and isinstance(r.get("entry"), str)
                and remote_name in (r.get("name"), r.get("alias"))
            ),
            None,
        )
        if target is None:
            return args

        resolved = self.resolved.get(target.get("alias") or target["name"]) or self.resolved.get(target["name"])
        if resolved is None:
            return args

        target["entry"] = self.entry_url(resolved)
        # requests may address the remote by name or by alias
        self.visited.update(n for n in (target["name"], target.get("alias"), remote_name) if n)
        return args
