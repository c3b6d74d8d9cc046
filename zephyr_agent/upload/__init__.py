"""
Asset, snapshot and build stats uploads.
"""

from .pool import Settled, for_each_limit, is_success, settle
from .orchestrator import DeployResult, UploadOrchestrator

__all__ = [
    "Settled",
    "for_each_limit",
    "is_success",
    "settle",
    "DeployResult",
    "UploadOrchestrator",
]
