"""
SASC Kernel — Shared Types

Data classes used across the cache, index, process tracker, reducer and
selectors. These are the contracts that bind the kernel together.

Key shapes:
- CacheEntry    one per resource id, per resource type
- IndexEntry    one per canonical query key
- ProcessEntry  one per (operation name, pid)
- ResourceState the per-type store cell: cache + index + processes + fetching
- Event         every request, lifecycle notification and notice flowing through the store
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STATUS_UNSTARTED = "unstarted"
STATUS_RUNNING = "running"
STATUS_ERRORED = "errored"
STATUS_COMPLETED = "completed"

PROCESS_STATUSES: set[str] = {
    STATUS_UNSTARTED,
    STATUS_RUNNING,
    STATUS_ERRORED,
    STATUS_COMPLETED,
}

DEFAULT_PID = "default-pid"

# Resource types and custom action names: dash-separated lowercase, e.g. "dog-kennels"
NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")

RESERVED_ACTION_NAMES: set[str] = {"create", "update", "destroy"}

CUSTOM_ACTION_KINDS: set[str] = {"individual", "collection"}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SascError(Exception):
    """Base class for errors raised by the resource layer."""


class ProtocolError(SascError, ValueError):
    """A malformed request or definition. A defect to fix, never retried or cached."""


class DuplicateProcessError(SascError):
    """An operation with the same (name, pid) is already running or queued."""

    def __init__(self, operation_name: str, pid: str) -> None:
        super().__init__(f"Already running {operation_name} with pid {pid}")
        self.operation_name = operation_name
        self.pid = pid


class ResolutionError(SascError):
    """A selector kept missing the cache after the maximum number of fetch attempts."""


# ---------------------------------------------------------------------------
# Operations and phases
# ---------------------------------------------------------------------------


class OperationKind(str, Enum):
    FETCH_COLLECTION = "fetch_collection"
    FETCH_INDIVIDUAL = "fetch_individual"
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"
    CUSTOM = "custom"
    # Notices: single events with no request/terminal lifecycle
    INCLUDED_RESOURCES_RECEIVED = "included_resources_received"
    INCLUDED_RESOURCES_FAILED = "included_resources_failed"
    INVALIDATE_CACHE = "invalidate_cache"
    RESOURCE_FETCHED = "resource_fetched"


FETCH_KINDS: set[OperationKind] = {OperationKind.FETCH_COLLECTION, OperationKind.FETCH_INDIVIDUAL}

MUTATION_KINDS: set[OperationKind] = {
    OperationKind.CREATE,
    OperationKind.UPDATE,
    OperationKind.DESTROY,
    OperationKind.CUSTOM,
}


class Phase(str, Enum):
    REQUESTED = "requested"
    INITIATED = "initiated"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOTICE = "notice"


TERMINAL_PHASES: set[Phase] = {Phase.SUCCEEDED, Phase.FAILED}


def upper_snake(name: str) -> str:
    """'dog-kennels' → 'DOG_KENNELS'. Only dasherized input is expected."""
    return name.replace("-", "_").upper()


def camel_case(name: str) -> str:
    """'run-iditarod' → 'runIditarod'."""
    head, *rest = re.split(r"[-_\s]+", name)
    return head.lower() + "".join(part[:1].upper() + part[1:].lower() for part in rest)


@dataclass(frozen=True)
class Operation:
    """
    One operation kind on a resource type. `name` is set only for custom
    actions and holds the dashed action name, e.g. "run-iditarod".
    """

    kind: OperationKind
    name: str | None = None

    @property
    def is_fetch(self) -> bool:
        return self.kind in FETCH_KINDS

    @property
    def is_mutation(self) -> bool:
        return self.kind in MUTATION_KINDS

    @property
    def is_notice(self) -> bool:
        return not (self.is_fetch or self.is_mutation)

    @property
    def process_name(self) -> str:
        """Key used by the process tracker: 'create', 'update', 'destroy' or the camel-cased action name."""
        if self.kind is OperationKind.CUSTOM:
            return camel_case(self.name or "")
        return self.kind.value

    @property
    def wire_name(self) -> str:
        if self.kind is OperationKind.CUSTOM:
            return upper_snake(self.name or "")
        return self.kind.value.upper()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class EventMeta:
    """
    pid         correlation token (request events only; None means DEFAULT_PID)
    original    back-reference to the request event that started the process
    initiated   set once a network call has actually begun
    invalidation  set on success events that cleared the resource type's store
    """

    pid: str | None = None
    original: Event | None = None
    initiated: bool = False
    invalidation: bool = False


@dataclass
class Event:
    """
    A request, lifecycle notification or notice for one resource type.
    The reducer reads `operation`, `phase`, `payload` and `meta`.
    """

    resource_type: str
    operation: Operation
    phase: Phase = Phase.REQUESTED
    payload: Any = None
    meta: EventMeta = field(default_factory=EventMeta)
    error: bool = False

    @property
    def type(self) -> str:
        """Wire name, e.g. RSRC_DOGS_FETCH_COLLECTION or RSRC_DOGS_CREATE_SUCCEEDED."""
        base = f"RSRC_{upper_snake(self.resource_type)}_{self.operation.wire_name}"
        if self.phase in (Phase.REQUESTED, Phase.NOTICE):
            return base
        return f"{base}_{self.phase.value.upper()}"

    @property
    def request(self) -> Event:
        """The request event this event belongs to (itself for requests)."""
        if self.meta.original is not None:
            return self.meta.original
        return self

    @property
    def pid(self) -> str:
        return self.request.meta.pid or DEFAULT_PID

    def derive(
        self,
        phase: Phase,
        payload: Any = None,
        *,
        initiated: bool = False,
        invalidation: bool = False,
        error: bool = False,
    ) -> Event:
        """Build a lifecycle event for this request."""
        return Event(
            resource_type=self.resource_type,
            operation=self.operation,
            phase=phase,
            payload=payload,
            meta=EventMeta(original=self, initiated=initiated, invalidation=invalidation),
            error=error,
        )

    def __repr__(self) -> str:  # pragma: no cover
        return f"Event({self.type}, pid={self.pid!r})"


# ---------------------------------------------------------------------------
# Store entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    id: str
    resource: dict[str, Any] | None
    error: bool
    created_at: int
    updated_at: int


@dataclass(frozen=True)
class IndexEntry:
    key: str
    ids: tuple[str, ...] | None
    error: bool
    created_at: int
    updated_at: int


@dataclass(frozen=True)
class ProcessEntry:
    status: str
    result: Any = None


@dataclass(frozen=True)
class ResourceState:
    """
    The store cell for one resource type. Every field is replaced, never
    mutated, so a reference held by a reader stays consistent.
    """

    cache: dict[str, CacheEntry] = field(default_factory=dict)
    index: dict[str, IndexEntry] = field(default_factory=dict)
    processes: dict[str, dict[str, ProcessEntry]] = field(default_factory=dict)
    fetching: bool = False

    def evolve(self, **changes: Any) -> ResourceState:
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_valid_name(value: str) -> bool:
    """Check a resource type or custom action name (dash-separated lowercase)."""
    return bool(NAME_PATTERN.match(value))


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)
