"""ze-agent CLI - Main Entry Point.

Commands:
    deploy   - Deploy a built output directory
    manifest - Write zephyr-manifest.json for a build
    uid      - Print an application uid
    explain  - Show the catalog entry of an error code
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .. import __version__
from ..assets import AssetsMap, assets_from_directory, build_assets_map
from ..config import ConfigError, load_config
from ..engine import EngineOptions, ZephyrEngine
from ..env_vars import EnvVarSession, rewrite_env_reads
from ..faults import ZephyrError, explain as explain_code
from ..federation import (
    MANIFEST_FILENAME,
    FederationConfig,
    ResolvedDependency,
    build_manifest,
    inject_resolved_remotes,
)
from ..identity import application_uid
from . import __cli_name__
from .utils.colors import _ARROW, _CHECK, banner, error, info, kv, section, success, warning


FEDERATION_FILENAME = "federation.json"
_CODE_EXTENSIONS = (".js", ".mjs", ".cjs")


def setup_logging(verbose: bool) -> None:
    debug = verbose or "zephyr" in os.environ.get("DEBUG", "")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class ZephyrGroup(click.Group):
    """Click group with branded help output."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if ctx.parent is None:
            banner("ze-agent", subtitle=f"v{__version__}  {_CHECK}  build snapshot deploys")
            click.echo()
        super().format_help(ctx, formatter)

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd.get_short_help_str(limit=48)))

        if commands:
            with formatter.section(click.style("Commands", fg="cyan", bold=True)):
                max_len = max(len(c[0]) for c in commands) + 2
                for name, help_text in commands:
                    styled_name = click.style(name.ljust(max_len), fg="green")
                    formatter.write(f"  {styled_name} {help_text}\n")


def _load_federation_config(dist_dir: Path, context_dir: Path) -> Optional[FederationConfig]:
    for candidate in (dist_dir / FEDERATION_FILENAME, context_dir / FEDERATION_FILENAME):
        if candidate.is_file():
            try:
                data = json.loads(candidate.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise click.ClickException(f"{candidate} is not valid JSON: {e}")
            return FederationConfig.from_dict(data)
    return None


def _prepare_assets(
    assets_map: AssetsMap,
    session: EnvVarSession,
    resolved: List[ResolvedDependency],
) -> Tuple[AssetsMap, Dict[str, str]]:
    """
    Rewrite public env reads and inject the resolved remote map into
    emitted code, then rehash. Returns the new map and the code chunks.
    """
    chunks: Dict[str, str] = {}
    contents: List[Tuple[str, bytes]] = []
    for asset in assets_map.values():
        if asset.extname not in _CODE_EXTENSIONS:
            contents.append((asset.path, asset.buffer))
            continue
        try:
            code = asset.buffer.decode("utf-8")
        except UnicodeDecodeError:
            contents.append((asset.path, asset.buffer))
            continue
        code = inject_resolved_remotes(rewrite_env_reads(code, session), resolved)
        chunks[asset.path] = code
        contents.append((asset.path, code.encode("utf-8")))

    return build_assets_map(contents, lambda content: content, lambda _: "file"), chunks


def _engine_options(context: str, base_href: Optional[str], target: Optional[str]) -> EngineOptions:
    overrides: Dict[str, Any] = {}
    if base_href is not None:
        overrides["base_href"] = base_href
    if target is not None:
        overrides["target"] = target
    try:
        config = load_config(context, overrides=overrides)
    except ConfigError as e:
        raise click.ClickException(str(e))
    return EngineOptions(context_dir=context, config=config)


def _fail(e: ZephyrError) -> None:
    error(ZephyrError.format(e))
    sys.exit(1)


@click.group(cls=ZephyrGroup)
@click.version_option(version=__version__, prog_name=__cli_name__)
def cli():
    """Deploy build outputs to Zephyr Cloud.

    \b
    Quick start:
      ze-agent deploy dist/
      ze-agent explain ZE10018
    """


@cli.command()
@click.argument("dist_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--context", "context_dir", default=".", type=click.Path(file_okay=False),
              help="Directory holding package.json and the git checkout")
@click.option("--base-href", default=None, help="Public path the build is served under")
@click.option("--target", default=None, help="Build target (web, ios, android)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def deploy(dist_dir: Path, context_dir: str, base_href: Optional[str], target: Optional[str],
           verbose: bool, as_json: bool):
    """
    Deploy a built output directory.

    Examples:
      ze-agent deploy dist/
      ze-agent deploy build/ --base-href /app --json
    """
    setup_logging(verbose)
    as_json = as_json or os.environ.get("ZE_OUTPUT_FORMAT") == "json"
    options = _engine_options(context_dir, base_href, target)
    mf_config = _load_federation_config(dist_dir, Path(context_dir))

    async def _deploy():
        assets_map = await assets_from_directory(dist_dir)
        engine = await ZephyrEngine.create(options)
        try:
            await engine.start_new_build()
            resolved = await engine.resolve_remote_dependencies(mf_config=mf_config)
            assets, chunks = _prepare_assets(assets_map, engine.env_session, resolved)
            result = await engine.upload_assets(assets, mf_config=mf_config, chunks=chunks)
        finally:
            await engine.build_finished()
        return engine, result

    try:
        engine, result = asyncio.run(_deploy())
    except ZephyrError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps({**result.to_dict(), **engine.get_status()}, indent=2))
        return

    section("Deploy")
    kv("Application", engine.application_uid)
    kv("Build", engine.build_id)
    kv("Uploaded", f"{len(result.uploaded)} asset(s)")
    for warning_message in result.warnings:
        warning(f"  {warning_message}")
    if result.ok:
        success(f"Deployed {_ARROW} {result.version_url}")
    else:
        warning(f"Deployed with warnings {_ARROW} {result.version_url}")


@cli.command()
@click.argument("dist_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--context", "context_dir", default=".", type=click.Path(file_okay=False),
              help="Directory holding package.json and the git checkout")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def manifest(dist_dir: Path, context_dir: str, verbose: bool):
    """Resolve remotes and write zephyr-manifest.json into DIST_DIR."""
    setup_logging(verbose)
    options = _engine_options(context_dir, None, None)
    mf_config = _load_federation_config(dist_dir, Path(context_dir))

    async def _manifest():
        engine = await ZephyrEngine.create(options)
        try:
            resolved = await engine.resolve_remote_dependencies(mf_config=mf_config)
            return build_manifest(resolved, engine.env_session.collect(engine.env))
        finally:
            await engine.build_finished()

    try:
        result = asyncio.run(_manifest())
    except ZephyrError as e:
        _fail(e)

    path = dist_dir / MANIFEST_FILENAME
    path.write_text(result.to_json(), encoding="utf-8")
    success(f"{MANIFEST_FILENAME} written ({len(result.dependencies)} remote(s))")
    info(f"  {_ARROW} {path}")


@cli.command()
@click.argument("org")
@click.argument("project")
@click.argument("name")
def uid(org: str, project: str, name: str):
    """Print the application uid for ORG, PROJECT and NAME."""
    click.echo(application_uid(org, project, name))


@cli.command()
@click.argument("code")
def explain(code: str):
    """Show what an error code means."""
    text = explain_code(code.upper())
    if text is None:
        error(f"Unknown error code: {code}")
        sys.exit(1)
    click.echo(text)


def main():
    """Entry point for `ze-agent`."""
    cli()


if __name__ == "__main__":
    main()
