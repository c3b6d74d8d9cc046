"""
ZephyrError - the fault raised for every cataloged failure.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from .codes import ZeErrorType, ZeErrors, from_code
from .core import Fault, Severity


_TEMPLATE_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:=\s*(.*?))?\s*\}\}")


def format_string(template: str, values: Dict[str, Any]) -> str:
    """
    Replace ``{{ name }}`` and ``{{ name = default }}`` placeholders.

    Placeholders with neither a value nor a default are left untouched.
    """

    def _replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        if name in values and values[name] is not None:
            return str(values[name])
        if default is not None:
            return default
        return match.group(0)

    return _TEMPLATE_RE.sub(_replace, template)


class ZephyrError(Fault):
    """
    Cataloged agent error.

    Template values are passed as keyword arguments and substituted into
    the catalog message::

        raise ZephyrError(
            ZeErrors.ERR_GET_BUILD_ID,
            username="jane",
            application_uid="app.project.org",
        )
    """

    def __init__(
        self,
        type: ZeErrorType,
        *,
        cause: Optional[BaseException] = None,
        data: Optional[Dict[str, Any]] = None,
        severity: Optional[Severity] = None,
        **template: Any,
    ):
        if data is None and isinstance(cause, ZephyrError) and cause.data:
            data = cause.data

        super().__init__(
            type.code,
            format_string(type.message, template).strip(),
            domain=type.domain,
            severity=severity,
            metadata={"key": type.key, **template},
        )
        self.type = type
        self.template = template
        self.data = data or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def wrap(cls, err: BaseException) -> "ZephyrError":
        """Return ``err`` if already cataloged, else wrap as ERR_UNKNOWN."""
        if isinstance(err, ZephyrError):
            return err
        return cls(ZeErrors.ERR_UNKNOWN, cause=err, message=str(err) or type(err).__name__)

    @staticmethod
    def is_(err: Any, type: Optional[ZeErrorType] = None) -> bool:
        """Check that ``err`` is a ZephyrError, optionally of a given type."""
        if not isinstance(err, ZephyrError):
            return False
        if type is None:
            return True
        return err.code == type.code

    @staticmethod
    def format(err: BaseException) -> str:
        """Render an error for terminal output, with a docs link when cataloged."""
        if not isinstance(err, ZephyrError):
            return str(err)

        lines = [f"{err.code}: {err.message}"]
        if err.type.kind != "unknown":
            lines.append("")
            lines.append(f"See {err.type.docs_url} for more information.")
        if err.data:
            lines.append("")
            lines.extend(f"  {k}: {v}" for k, v in err.data.items())
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["docs_url"] = self.type.docs_url
        if self.data:
            result["data"] = self.data
        return result


class HttpError(ZephyrError):
    """Non-2xx response from the API or edge."""

    def __init__(
        self,
        method: str,
        url: str,
        status: int,
        content: str = "",
        *,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            ZeErrors.ERR_HTTP_ERROR,
            cause=cause,
            method=method,
            url=url,
            status=status,
            content=content[:500],
        )
        self.method = method
        self.url = url
        self.status = status
        self.content = content
        # 5xx and 429 are transient
        self.retryable = status >= 500 or status == 429


def explain(code: str) -> Optional[str]:
    """Return the raw catalog message for a ``ZE*****`` code."""
    entry = from_code(code)
    if entry is None:
        return None
    return f"{entry.code} ({entry.key})\n\n{entry.message}\n\n{entry.docs_url}"
