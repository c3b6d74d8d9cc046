"""
Public environment variables.

Bundled code reads ``ZE_PUBLIC_*`` values through
``import.meta.env.ZE_PUBLIC_X`` or ``process.env.ZE_PUBLIC_X``. Those
reads are rewritten to ``globalThis.__ZE_ENV__["ZE_PUBLIC_X"]`` so the
values can be swapped per environment without a rebuild.

Names are collected into an :class:`EnvVarSession` owned by one build,
and merged once when the build uploads.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from typing import Dict, Iterable, Mapping, Optional, Set


logger = logging.getLogger("zephyr_agent.env")

PUBLIC_PREFIX = "ZE_PUBLIC_"
ENV_GLOBAL = "globalThis.__ZE_ENV__"

_SIMPLE_READ = re.compile(r"\b(?:import\.meta\.env|process\.env)\.(ZE_PUBLIC_[A-Z0-9_]+)\b")
_QUOTED_READ = re.compile(r"""\b(?:import\.meta\.env|process\.env)\[(["'`])(ZE_PUBLIC_[A-Z0-9_]+)\1\]""")


class EnvVarSession:
    """
    Names of public variables referenced during one build.

    Example:
        session = EnvVarSession()
        code = rewrite_env_reads(code, session)
        envs = session.collect(os.environ)
    """

    def __init__(self, prefix: str = PUBLIC_PREFIX):
        self.prefix = prefix
        self._names: Set[str] = set()

    def add(self, name: str) -> None:
        if name.startswith(self.prefix):
            self._names.add(name)

    def update(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    @property
    def names(self) -> Set[str]:
        return set(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def collect(self, env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Values of every public variable that is referenced or present.

        Referenced names with no value are logged and left out.
        """
        env = os.environ if env is None else env
        values = {k: v for k, v in env.items() if k.startswith(self.prefix) and isinstance(v, str)}
        missing = sorted(name for name in self._names if name not in values)
        if missing:
            logger.warning(f"{len(missing)} referenced env variable(s) have no value: {', '.join(missing)}")
        return dict(sorted(values.items()))


def rewrite_env_reads(code: str, session: EnvVarSession) -> str:
    """Rewrite public env reads in ``code``, recording each name in ``session``."""

    def _simple(match: re.Match) -> str:
        name = match.group(1)
        session.add(name)
        return f'{ENV_GLOBAL}["{name}"]'

    def _quoted(match: re.Match) -> str:
        name = match.group(2)
        session.add(name)
        return f'{ENV_GLOBAL}["{name}"]'

    return _QUOTED_READ.sub(_quoted, _SIMPLE_READ.sub(_simple, code))


def ze_envs_hash(application_uid: str, envs: Mapping[str, str]) -> Optional[str]:
    """
    Hash identifying a set of public variables for one application.

    ``None`` when there are no variables.
    """
    if not envs:
        return None
    lines = "\n".join(sorted(f"{key}={value}" for key, value in envs.items()))
    canonical = f"{application_uid}\n{lines}"
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
