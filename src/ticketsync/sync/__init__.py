"""Change tracking and incremental synchronization of tickets."""

from ticketsync.sync.models import SyncOutcome, SyncPhase, SyncReport
from ticketsync.sync.state_store import SyncStateStore
from ticketsync.sync.sync_engine import SyncEngine
from ticketsync.sync.tree import SyncTree, TreeNode

__all__ = [
    "SyncEngine",
    "SyncOutcome",
    "SyncPhase",
    "SyncReport",
    "SyncStateStore",
    "SyncTree",
    "TreeNode",
]
