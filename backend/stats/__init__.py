"""
Student statistics package.

Exposes the aggregator and the change-event plumbing for convenient imports.
"""

from .aggregator import (  # noqa: F401
    BatchResult,
    StatsAggregator,
    StatsSnapshot,
    compute_snapshot,
)
from .events import DocumentChange, affected_students, dispatch_change  # noqa: F401
from .task_queue import StatsTaskQueue  # noqa: F401
