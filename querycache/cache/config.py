"""
Configuration for the Query Cache.

Provides the cache configuration dataclass, the eviction policy enum, and
loaders for YAML files and environment variables.

Configuration values are used as given: no range validation is applied,
so a ``max_entries`` of 0 simply means every insertion triggers eviction.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from querycache.cache.keys import KeyGenerator
from querycache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class EvictionPolicy(Enum):
    """Cache eviction policies."""

    LRU = "lru"  # Least Recently Used
    LFU = "lfu"  # Least Frequently Used
    FIFO = "fifo"  # First In First Out

    @classmethod
    def coerce(cls, value: Union["EvictionPolicy", str, None]) -> "EvictionPolicy":
        """
        Resolve a policy from an enum member or its name.

        Unrecognized values fall back to insertion order (FIFO).

        Args:
            value: EvictionPolicy member, value string, or alias

        Returns:
            Matching EvictionPolicy
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.LRU

        normalized = str(value).strip().lower().replace("_", "-")
        if normalized in _POLICY_ALIASES:
            return _POLICY_ALIASES[normalized]

        logger.warning(f"Unknown eviction policy {value!r}, using insertion order")
        return cls.FIFO


_POLICY_ALIASES = {
    "lru": EvictionPolicy.LRU,
    "recency": EvictionPolicy.LRU,
    "lfu": EvictionPolicy.LFU,
    "frequency": EvictionPolicy.LFU,
    "fifo": EvictionPolicy.FIFO,
    "insertion-order": EvictionPolicy.FIFO,
}

# Accepted spellings for file and dict based configuration
_FIELD_ALIASES = {
    "maxEntries": "max_entries",
    "maxSize": "max_size",
    "enableStats": "enable_stats",
    "evictionStrategy": "policy",
    "eviction_policy": "policy",
}

DEFAULT_MAX_ENTRIES = 1000
DEFAULT_MAX_SIZE = 100 * 1024 * 1024  # 100 MB
DEFAULT_TTL_MS = 5 * 60 * 1000  # 5 minutes


@dataclass(frozen=True)
class CacheConfig:
    """
    Configuration for the cache manager.

    Attributes:
        max_entries: Maximum number of cache entries
        max_size: Maximum aggregate estimated size in bytes
        ttl: Time to live in milliseconds (<= 0 disables expiry)
        policy: Eviction policy used under capacity pressure
        enable_stats: Whether hits, misses and evictions are counted
        key_generator: Replacement for the default key generator
    """

    max_entries: int = DEFAULT_MAX_ENTRIES
    max_size: int = DEFAULT_MAX_SIZE
    ttl: float = DEFAULT_TTL_MS
    policy: EvictionPolicy = EvictionPolicy.LRU
    enable_stats: bool = True
    key_generator: Optional[KeyGenerator] = None

    def __post_init__(self):
        """Normalize the eviction policy."""
        object.__setattr__(self, "policy", EvictionPolicy.coerce(self.policy))

    def replace(self, **changes: Any) -> "CacheConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "CacheConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary (snake_case or camelCase keys)

        Returns:
            CacheConfig instance
        """
        known = {f.name for f in dataclasses.fields(cls)} - {"key_generator"}
        kwargs: Dict[str, Any] = {}

        for key, value in (config_dict or {}).items():
            name = _FIELD_ALIASES.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown cache option: {key}")
                continue
            kwargs[name] = value

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "CacheConfig":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            CacheConfig instance
        """
        path = Path(yaml_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        try:
            with open(path, "r") as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", path=str(path)) from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a mapping", path=str(path))

        # Extract cache section if present
        if isinstance(config_dict.get("cache"), dict):
            config_dict = config_dict["cache"]

        return cls.from_dict(config_dict)

    @classmethod
    def from_environment(cls, base: Optional["CacheConfig"] = None) -> "CacheConfig":
        """
        Apply environment variable overrides.

        Environment variables:
        - QUERYCACHE_MAX_ENTRIES
        - QUERYCACHE_MAX_SIZE
        - QUERYCACHE_TTL
        - QUERYCACHE_POLICY
        - QUERYCACHE_ENABLE_STATS

        Args:
            base: Configuration to override (defaults if None)

        Returns:
            CacheConfig instance
        """
        config = base or cls()
        changes: Dict[str, Any] = {}

        for env_name, field_name, parse in (
            ("QUERYCACHE_MAX_ENTRIES", "max_entries", int),
            ("QUERYCACHE_MAX_SIZE", "max_size", int),
            ("QUERYCACHE_TTL", "ttl", float),
        ):
            raw = os.environ.get(env_name)
            if not raw:
                continue
            try:
                changes[field_name] = parse(raw)
            except ValueError:
                logger.warning(f"Ignoring unparsable {env_name}={raw!r}")

        if os.environ.get("QUERYCACHE_POLICY"):
            changes["policy"] = os.environ["QUERYCACHE_POLICY"]

        if os.environ.get("QUERYCACHE_ENABLE_STATS"):
            changes["enable_stats"] = (
                os.environ["QUERYCACHE_ENABLE_STATS"].lower() in ("1", "true", "yes")
            )

        return config.replace(**changes) if changes else config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "max_entries": self.max_entries,
            "max_size": self.max_size,
            "ttl": self.ttl,
            "policy": self.policy.value,
            "enable_stats": self.enable_stats,
            "custom_key_generator": self.key_generator is not None,
        }


DEFAULT_CONFIG_PATHS = (
    Path("querycache.yaml"),
    Path(".querycache.yaml"),
    Path.home() / ".querycache" / "config.yaml",
)


def load_config(
    yaml_path: Optional[Union[str, Path]] = None,
    use_environment: bool = True,
) -> CacheConfig:
    """
    Load cache configuration with fallbacks.

    Attempts to load configuration in order:
    1. From specified YAML path (if provided)
    2. From default config paths
    3. Fall back to defaults
    Environment overrides are applied on top when enabled.

    Args:
        yaml_path: Optional explicit path to YAML config
        use_environment: Whether to apply environment variable overrides

    Returns:
        CacheConfig instance
    """
    config = None

    if yaml_path:
        config = CacheConfig.from_yaml(yaml_path)
    else:
        for path in DEFAULT_CONFIG_PATHS:
            if not path.exists():
                continue
            try:
                config = CacheConfig.from_yaml(path)
                logger.debug(f"Loaded cache config from {path}")
                break
            except ConfigurationError as e:
                logger.warning(f"Failed to load config from {path}: {e}")

    if config is None:
        config = CacheConfig()

    if use_environment:
        config = CacheConfig.from_environment(config)

    return config
