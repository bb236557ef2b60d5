from scholarfolio.application.workflows.sync_scheduler import (
    SyncScheduler,
    is_due_for_sync,
    make_default_scheduler,
)

__all__ = ["SyncScheduler", "is_due_for_sync", "make_default_scheduler"]
