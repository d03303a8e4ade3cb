"""
Freshness window configuration per resource kind.
"""
from typing import Any, Dict, Optional

from config.settings import Settings, settings as default_settings

from ..resources import ResourceKind
from .core import FreshnessWindows


def build_ttl_config(config: Optional[Settings] = None) -> Dict[ResourceKind, Dict[str, Any]]:
    """
    TTL configuration by resource kind (in seconds), read from settings.

    Returns:
        {kind: {"fresh_ttl", "stale_ttl", "max_stale_ttl"}}
    """
    config = config or default_settings
    ttl_config: Dict[ResourceKind, Dict[str, Any]] = {}
    for kind in ResourceKind:
        prefix = kind.value
        ttl_config[kind] = {
            "fresh_ttl": getattr(config, f"{prefix}_fresh_seconds"),
            "stale_ttl": getattr(config, f"{prefix}_stale_seconds"),
            "max_stale_ttl": getattr(config, f"{prefix}_max_stale_seconds"),
        }
    return ttl_config


# Defaults as loaded at import time
TTL_CONFIG: Dict[ResourceKind, Dict[str, Any]] = build_ttl_config()


def get_windows_for_kind(
    kind: ResourceKind,
    ttl_config: Optional[Dict[ResourceKind, Dict[str, Any]]] = None,
) -> FreshnessWindows:
    """
    Get freshness windows for a resource kind.

    Args:
        kind: The resource kind
        ttl_config: Overrides TTL_CONFIG when given

    Returns:
        FreshnessWindows for the kind
    """
    ttl_config = ttl_config or TTL_CONFIG
    config = ttl_config.get(kind, ttl_config[ResourceKind.COIN_DETAIL])
    return FreshnessWindows(
        fresh_seconds=config["fresh_ttl"],
        stale_seconds=config.get("stale_ttl", config["fresh_ttl"]),
        max_stale_seconds=config.get("max_stale_ttl"),
    )


def build_windows(config: Optional[Settings] = None) -> Dict[ResourceKind, FreshnessWindows]:
    """FreshnessWindows for every resource kind."""
    ttl_config = build_ttl_config(config)
    return {kind: get_windows_for_kind(kind, ttl_config) for kind in ResourceKind}
