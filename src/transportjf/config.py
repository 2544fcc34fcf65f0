"""Logbook configuration for transportjf."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from transportjf._constants import DEFAULT_SEAT_CAPACITY
from transportjf.exceptions import TransportConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise TransportConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TransportConfig:
    """Logbook configuration.

    Parameters
    ----------
    database_path : str
        SQLite file backing the durable store.  ``":memory:"`` keeps the
        store in memory (tests).
    cache_path : str
        JSON file backing the synchronous cache.  An empty string keeps the
        cache in memory only.
    seat_capacity : int
        Maximum number of simultaneously active trips per boarding group.
    quota_bytes : int or None
        Upper bound for the durable store size.  Writes past the quota fail
        with :class:`~transportjf.exceptions.StorageFullError`.  ``None``
        leaves the store unbounded.
    time_zone : str
        IANA time zone used to decide the calendar day of a boarding group.
    run_migration : bool
        Import legacy cache-only collections into the durable store on open.
    seed_defaults : bool
        Write the default administrator when the users collection is empty.
    conductor_roster_path : str
        JSON file with the default conductor roster, loaded into an empty
        conductors collection on open.  Empty disables roster seeding.
    """

    database_path: str = "transportjf.sqlite3"
    cache_path: str = "transportjf-cache.json"
    seat_capacity: int = DEFAULT_SEAT_CAPACITY
    quota_bytes: int | None = None
    time_zone: str = "UTC"
    run_migration: bool = True
    seed_defaults: bool = True
    conductor_roster_path: str = ""

    def __post_init__(self) -> None:
        if self.seat_capacity < 1:
            raise TransportConfigError(f"seat_capacity must be positive, got {self.seat_capacity}")
        if self.quota_bytes is not None and self.quota_bytes <= 0:
            raise TransportConfigError(f"quota_bytes must be positive, got {self.quota_bytes}")
        if not self.database_path:
            raise TransportConfigError("database_path must be non-empty")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise TransportConfigError(f"unknown time zone {self.time_zone!r}") from exc

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> TransportConfig:
        """Create configuration from environment variables.

        Reads optional ``TRANSPORT_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TransportConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "TRANSPORT_DATABASE_PATH": "database_path",
            "TRANSPORT_CACHE_PATH": "cache_path",
            "TRANSPORT_TIME_ZONE": "time_zone",
            "TRANSPORT_CONDUCTOR_ROSTER": "conductor_roster_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # numeric fields, handle separately
        capacity_env = env.get("TRANSPORT_SEAT_CAPACITY")
        if capacity_env is not None and "seat_capacity" not in overrides:
            config_kwargs["seat_capacity"] = _env_int("TRANSPORT_SEAT_CAPACITY", capacity_env)

        quota_env = env.get("TRANSPORT_QUOTA_BYTES")
        if quota_env and "quota_bytes" not in overrides:
            config_kwargs["quota_bytes"] = _env_int("TRANSPORT_QUOTA_BYTES", quota_env)

        if "run_migration" not in overrides:
            config_kwargs["run_migration"] = _env_bool(env.get("TRANSPORT_RUN_MIGRATION"), True)

        if "seed_defaults" not in overrides:
            config_kwargs["seed_defaults"] = _env_bool(env.get("TRANSPORT_SEED_DEFAULTS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
