"""
SASC client — cached, lazily fetched access to resources served over the
SASC protocol.
"""

from sasc.kernel import (
    DEFAULT_PID,
    STATUS_COMPLETED,
    STATUS_ERRORED,
    STATUS_RUNNING,
    STATUS_UNSTARTED,
    CacheMiss,
    DuplicateProcessError,
    ProtocolError,
    ResolutionError,
    SascError,
    cache_miss_override_default,
    is_valid_cache_miss,
    selector_with_default,
)
from sasc.services.adapter import SelectSession, watch
from sasc.services.helpers import diligent_select, run_resource_process
from sasc.services.registry import ResourceDefinitions
from sasc.services.store import Store

__all__ = [
    "ResourceDefinitions",
    "Store",
    "SelectSession",
    "watch",
    "diligent_select",
    "run_resource_process",
    "CacheMiss",
    "cache_miss_override_default",
    "selector_with_default",
    "is_valid_cache_miss",
    "SascError",
    "ProtocolError",
    "DuplicateProcessError",
    "ResolutionError",
    "DEFAULT_PID",
    "STATUS_UNSTARTED",
    "STATUS_RUNNING",
    "STATUS_ERRORED",
    "STATUS_COMPLETED",
]
