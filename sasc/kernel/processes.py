"""
SASC Kernel — Process Tracker

Execution state of named operations, keyed by (operation name, pid).
Shape: {operation_name: {pid: ProcessEntry}}.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sasc.kernel.types import STATUS_COMPLETED, STATUS_UNSTARTED, Event, ProcessEntry

Processes = Mapping[str, Mapping[str, ProcessEntry]]


def make_processes() -> dict[str, dict[str, ProcessEntry]]:
    return {}


def update(
    processes: Processes | None,
    operation_name: str,
    event: Event,
    status: str,
    result: Any = None,
) -> Processes:
    """
    Record a status transition for the event's (operation, pid).

    No-op unless the event carries meta.initiated: an event for a request
    rejected before any network call (a pid collision, a malformed payload)
    must not clobber the entry of a process that is really running.
    """
    if not event.meta.initiated:
        return processes if processes is not None else {}

    processes = processes or {}
    entry = ProcessEntry(status=status, result=result if status == STATUS_COMPLETED else None)
    updated = {**processes.get(operation_name, {}), event.pid: entry}
    return {**processes, operation_name: updated}


def get_entry(processes: Processes | None, operation_name: str, pid: str) -> ProcessEntry | None:
    return (processes or {}).get(operation_name, {}).get(pid)


def get_status(processes: Processes | None, operation_name: str, pid: str) -> str:
    entry = get_entry(processes, operation_name, pid)
    return entry.status if entry is not None else STATUS_UNSTARTED


def get_result(processes: Processes | None, operation_name: str, pid: str) -> Any:
    entry = get_entry(processes, operation_name, pid)
    return entry.result if entry is not None else None
