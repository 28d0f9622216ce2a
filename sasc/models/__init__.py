"""Configuration models for resource definitions."""

from sasc.models.options import CustomActionConfig, ResourceOptions

__all__ = ["CustomActionConfig", "ResourceOptions"]
