"""
Secret sync -- reconcile local secret files with their remote copies.

    Project     ->  secrets.yaml, .localsecretclasses, secrets.lock
    SyncEngine  ->  fetch, classify, pull/push, delete orphans, save lock
"""

from .engine import SyncEngine, SyncOptions, SyncOutcome, SyncReport
from .project import CLASS_FILE, LOCK_FILE, PROJECT_FILE, Project

__all__ = [
    "CLASS_FILE",
    "LOCK_FILE",
    "PROJECT_FILE",
    "Project",
    "SyncEngine",
    "SyncOptions",
    "SyncOutcome",
    "SyncReport",
]
