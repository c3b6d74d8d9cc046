"""
ze-agent CLI - output helpers.

    success(), error(), warning(), info(), dim(), bold()
    banner()    - bordered header
    section()   - section divider with title
    kv()        - aligned key-value pair

click.style handles NO_COLOR / TERM=dumb.
"""

from __future__ import annotations

import shutil
from typing import Optional

import click


_TERM_WIDTH: Optional[int] = None


def _tw() -> int:
    """Terminal width, cached and clamped."""
    global _TERM_WIDTH
    if _TERM_WIDTH is None:
        _TERM_WIDTH = max(40, min(shutil.get_terminal_size((80, 24)).columns, 120))
    return _TERM_WIDTH


_H_TL = "\u250f"   # ┏
_H_TR = "\u2513"   # ┓
_H_BL = "\u2517"   # ┗
_H_BR = "\u251b"   # ┛
_H_H  = "\u2501"   # ━
_H_V  = "\u2503"   # ┃
_L_H  = "\u2500"   # ─

_CHECK = "\u2713"  # ✓
_CROSS = "\u2717"  # ✗
_ARROW = "\u2192"  # →


def success(message: str) -> None:
    click.echo(click.style(f"{_CHECK} {message}", fg="green"))


def error(message: str) -> None:
    click.echo(click.style(f"{_CROSS} {message}", fg="red"), err=True)


def warning(message: str) -> None:
    click.echo(click.style(message, fg="yellow"), err=True)


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def dim(message: str) -> None:
    click.echo(click.style(message, dim=True))


def bold(message: str) -> str:
    """Return bold text (does not echo)."""
    return click.style(message, bold=True)


def banner(title: str, subtitle: str = "", *, width: Optional[int] = None, fg: str = "cyan") -> None:
    """
    Bordered banner with centred title.

        ┏━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━┓
        ┃                     ze-agent                        ┃
        ┗━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━┛
    """
    w = width or min(_tw(), 60)
    inner = w - 2
    click.echo(click.style(f"{_H_TL}{_H_H * inner}{_H_TR}", fg=fg))
    click.echo(click.style(f"{_H_V}{title.center(inner)}{_H_V}", fg=fg, bold=True))
    if subtitle:
        click.echo(click.style(f"{_H_V}{subtitle.center(inner)}{_H_V}", fg=fg))
    click.echo(click.style(f"{_H_BL}{_H_H * inner}{_H_BR}", fg=fg))


def section(title: str, *, width: Optional[int] = None, fg: str = "cyan") -> None:
    """
        ── Remotes ─────────────────────────────────
    """
    w = width or _tw()
    dashes = max(4, w - len(title) - 6)
    click.echo(click.style(f"{_L_H}{_L_H} {title} {_L_H * dashes}", fg=fg, bold=True))


def kv(key: str, value: object, *, key_width: int = 16, indent: int = 2) -> None:
    """
        Version URL:    https://...
    """
    k = click.style(f"{key}:", fg="white")
    v = click.style(str(value), fg="cyan")
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{' ' * indent}{k}{padding}{v}")
