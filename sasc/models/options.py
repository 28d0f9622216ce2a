"""Per-resource-type configuration models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from sasc.kernel.types import RESERVED_ACTION_NAMES, Operation, OperationKind, is_valid_name


class CustomActionConfig(BaseModel):
    """
    A custom server action on a resource type.

    invalidation: True if running the action can change resources, so cached
    data must be dropped afterwards. May also be a predicate over the action's
    result.
    """

    model_config = {"extra": "forbid", "frozen": True}

    kind: Literal["individual", "collection"]
    invalidation: bool | Callable[[Any], Any] = False
    invalidate_on_fail: bool = False
    method: Literal["post", "put", "delete"] = "post"

    def should_invalidate(self, result: Any) -> bool:
        if callable(self.invalidation):
            return bool(self.invalidation(result))
        return self.invalidation


class ResourceOptions(BaseModel):
    """What a resource type supports. Unknown keys are rejected."""

    model_config = {"extra": "forbid", "frozen": True}

    fetch_collection: bool = True
    fetch_individual: bool = True
    create: bool = False
    update: bool = False
    destroy: bool = False
    custom_actions: dict[str, CustomActionConfig] = Field(default_factory=dict)
    invalidates_cached_types: dict[str, bool] = Field(default_factory=dict)
    namespace: str | None = None
    # Built-in mutations clear the whole cache and index of their type on success
    mutations_invalidate: bool = True

    @field_validator("custom_actions")
    @classmethod
    def _check_action_names(cls, value: dict[str, CustomActionConfig]) -> dict[str, CustomActionConfig]:
        for name in value:
            if not is_valid_name(name):
                raise ValueError(f"Custom actions must have dash-separated lowercase names, e.g. 'run-iditarod' (got {name!r})")
            if name in RESERVED_ACTION_NAMES:
                raise ValueError(f"You cannot name a custom action '{name}'")
        return value

    def operations(self) -> list[Operation]:
        """Every request operation this resource type accepts."""
        flags = (
            (self.fetch_collection, OperationKind.FETCH_COLLECTION),
            (self.fetch_individual, OperationKind.FETCH_INDIVIDUAL),
            (self.create, OperationKind.CREATE),
            (self.update, OperationKind.UPDATE),
            (self.destroy, OperationKind.DESTROY),
        )
        ops = [Operation(kind) for enabled, kind in flags if enabled]
        ops.extend(Operation(OperationKind.CUSTOM, name) for name in self.custom_actions)
        return ops

    def supports(self, operation: Operation) -> bool:
        if operation.is_notice:
            return True
        return operation in self.operations()
