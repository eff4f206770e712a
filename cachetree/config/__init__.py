"""Configuration models for cache nodes and the maintenance loop."""

from .models import CacheOptions, EnvSettings, MaintenanceConfig

__all__ = ["CacheOptions", "EnvSettings", "MaintenanceConfig"]
