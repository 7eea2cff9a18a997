"""Background jobs and progress notifications."""

from .dispatcher import CancellationToken, JobDispatcher, JobHandle, JobStatus, format_elapsed
from .notifications import (
    CHANNELS,
    JOB_CHANNEL,
    MOVE_FILES_CHANNEL,
    REFRESH_FILES_CHANNEL,
    MoveResult,
    NotificationEvent,
    NotificationHub,
    Subscription,
    SyncStage,
)

__all__ = [
    "CancellationToken",
    "JobDispatcher",
    "JobHandle",
    "JobStatus",
    "format_elapsed",
    "NotificationHub",
    "NotificationEvent",
    "Subscription",
    "MoveResult",
    "SyncStage",
    "MOVE_FILES_CHANNEL",
    "REFRESH_FILES_CHANNEL",
    "JOB_CHANNEL",
    "CHANNELS",
]
