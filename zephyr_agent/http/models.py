"""
Wire models returned by the Zephyr API.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ApplicationConfiguration:
    """Per-application settings returned by the application-config endpoint."""

    application_uid: str
    username: str
    email: str
    user_uuid: str
    jwt: str
    EDGE_URL: str
    BUILD_ID_ENDPOINT: str
    DELIMITER: str = "-"
    PLATFORM: Optional[str] = None
    ENVIRONMENTS: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    fetched_at: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, fetched_at: Optional[float] = None) -> "ApplicationConfiguration":
        return cls(
            application_uid=d.get("application_uid", ""),
            username=d.get("username", ""),
            email=d.get("email", ""),
            user_uuid=d.get("user_uuid", ""),
            jwt=d.get("jwt", ""),
            EDGE_URL=(d.get("EDGE_URL") or "").rstrip("/"),
            BUILD_ID_ENDPOINT=d.get("BUILD_ID_ENDPOINT", ""),
            DELIMITER=d.get("DELIMITER") or "-",
            PLATFORM=d.get("PLATFORM"),
            ENVIRONMENTS=d.get("ENVIRONMENTS") or {},
            fetched_at=time.time() if fetched_at is None else fetched_at,
        )

    def environment_edge_urls(self) -> List[str]:
        """Edge URLs of every environment other than the default, deduplicated."""
        urls: List[str] = []
        for env in self.ENVIRONMENTS.values():
            url = (env or {}).get("edgeUrl")
            if url and url != self.EDGE_URL and url not in urls:
                urls.append(url)
        return urls

    def is_fresh(self, ttl: float, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now - self.fetched_at < ttl
