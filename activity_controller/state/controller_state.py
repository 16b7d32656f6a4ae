"""
Controller State
Counters and health flags of a running build controller, exposed on /status.
"""
from datetime import datetime, timezone
from typing import TypedDict


class ControllerState(TypedDict):
    namespace: str
    running: bool
    started_at: str
    last_event_at: str

    # Event flow
    events_received: int
    pods_ignored: int
    pods_reconciled: int

    # Store writes
    activities_created: int
    activities_updated: int
    update_failures: int

    # Build logs
    logs_published: int
    log_publish_failures: int


def new_controller_state(namespace: str) -> ControllerState:
    return ControllerState(
        namespace=namespace,
        running=False,
        started_at=datetime.now(timezone.utc).isoformat(),
        last_event_at="",
        events_received=0,
        pods_ignored=0,
        pods_reconciled=0,
        activities_created=0,
        activities_updated=0,
        update_failures=0,
        logs_published=0,
        log_publish_failures=0,
    )
