"""
SASC Kernel — the pure resource engine.

Components:
  cache      — resources by id, per type           (pure)
  index      — canonical query → ordered ids       (pure)
  processes  — (operation, pid) → status/result    (pure)
  reducer    — (ResourceState, Event) → ResourceState
  selectors  — synchronous reads with the cache-miss protocol
  events     — request and notice creators
  wire       — pack/unpack of wire resources
"""

from sasc.kernel.events import ResourceActions
from sasc.kernel.reducer import empty_state, reduce, reduce_all
from sasc.kernel.selectors import (
    CacheMiss,
    Failed,
    Pending,
    Ready,
    ResourceSelectors,
    cache_miss_override_default,
    combine,
    first_unready,
    is_valid_cache_miss,
    lookup,
    selector_with_default,
)
from sasc.kernel.types import (
    DEFAULT_PID,
    STATUS_COMPLETED,
    STATUS_ERRORED,
    STATUS_RUNNING,
    STATUS_UNSTARTED,
    DuplicateProcessError,
    Event,
    Operation,
    OperationKind,
    Phase,
    ProtocolError,
    ResolutionError,
    ResourceState,
    SascError,
)
from sasc.kernel.wire import pack, unpack, unpack_many

__all__ = [
    "reduce",
    "reduce_all",
    "empty_state",
    "ResourceActions",
    "ResourceSelectors",
    "CacheMiss",
    "Ready",
    "Pending",
    "Failed",
    "lookup",
    "first_unready",
    "combine",
    "is_valid_cache_miss",
    "cache_miss_override_default",
    "selector_with_default",
    "Event",
    "Operation",
    "OperationKind",
    "Phase",
    "ResourceState",
    "SascError",
    "ProtocolError",
    "DuplicateProcessError",
    "ResolutionError",
    "DEFAULT_PID",
    "STATUS_UNSTARTED",
    "STATUS_RUNNING",
    "STATUS_ERRORED",
    "STATUS_COMPLETED",
    "pack",
    "unpack",
    "unpack_many",
]
