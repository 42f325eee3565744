"""Durable forwarding queue and the worker that drains it."""

from __future__ import annotations

from .config import ForwardingConfig
from .consent import ConsentDecision, apply_consent
from .factory import create_dispatch_worker, create_forwarding_queue
from .observability import ForwardingEventLogger, ForwardingEventType
from .queue import ClaimedJob, ForwardingQueue
from .retry import RetryPolicy
from .storage import ForwardingJob, JobState
from .worker import (
    DispatchReport,
    DispatchWorker,
    DispatchWorkerDependencies,
    JobNotifier,
    notify_due_jobs,
)

__all__ = [
    "ClaimedJob",
    "ConsentDecision",
    "DispatchReport",
    "DispatchWorker",
    "DispatchWorkerDependencies",
    "ForwardingConfig",
    "ForwardingEventLogger",
    "ForwardingEventType",
    "ForwardingJob",
    "ForwardingQueue",
    "JobNotifier",
    "JobState",
    "RetryPolicy",
    "apply_consent",
    "create_dispatch_worker",
    "create_forwarding_queue",
    "notify_due_jobs",
]
