"""Stream synchronization module."""

from .synchronizer import PendingSlot, StreamSynchronizer, SubmitResult, SyncState

__all__ = ["PendingSlot", "StreamSynchronizer", "SubmitResult", "SyncState"]
