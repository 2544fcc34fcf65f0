"""Internal constants shared across the library."""

from __future__ import annotations

SCHEMA_VERSION = 1

#: Seats in a transport unit; also the per-group active trip limit.
DEFAULT_SEAT_CAPACITY = 18

DEFAULT_ROUTE = "Ruta no especificada"

# ------------------------------------------------------------------
# Collection names (durable store)
# ------------------------------------------------------------------

USERS = "users"
PASSENGERS = "passengers"
CONDUCTORS = "conductors"
TRIPS = "trips"
SIGNATURES = "signatures"
CONDUCTOR_CREDENTIALS = "conductorCredentials"

COLLECTIONS: tuple[str, ...] = (
    USERS,
    PASSENGERS,
    CONDUCTORS,
    TRIPS,
    SIGNATURES,
    CONDUCTOR_CREDENTIALS,
)

# ------------------------------------------------------------------
# Sync cache key namespace
# ------------------------------------------------------------------

LEGACY_KEYS: dict[str, str] = {
    USERS: "transport_users",
    PASSENGERS: "transport_passengers",
    CONDUCTORS: "transport_conductors",
    TRIPS: "transport_trips",
    SIGNATURES: "transport_signatures",
    CONDUCTOR_CREDENTIALS: "transport_conductor_credentials",
}

CURRENT_USER_KEY = "transport_current_user"
MIGRATION_MARKER_KEY = "transport_migration_completed"
GROUP_KEY_PREFIX = "transport_current_group_"

# Placeholders used in group keys when a component is missing.
NO_ROUTE = "sin_ruta"
NO_SHIFT = "sin_turno"
