"""transportjf - Persistence and trip-session core for a passenger-transport logbook."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("transportjf")
except PackageNotFoundError:
    __version__ = "0+local"
from transportjf.config import TransportConfig
from transportjf.exceptions import (
    CapacityExceededError,
    DuplicateKeyError,
    InvalidPayloadError,
    InvalidStateError,
    MigrationError,
    RecordNotFoundError,
    StorageError,
    StorageFullError,
    TransportConfigError,
    TransportError,
    TripStateError,
)
from transportjf.identity import IdentityPayload, decode_identity, encode_identity
from transportjf.logbook import Logbook
from transportjf.models import (
    Conductor,
    ConductorCredential,
    Passenger,
    Shift,
    Signature,
    SignatureType,
    Trip,
    TripStatus,
    User,
    UserRole,
)
from transportjf.storage import (
    MigrationManager,
    PersistentStore,
    ReadAuthority,
    StorageFacade,
    SyncCache,
)
from transportjf.trips import IdentifyAction, IdentifyResult, TripGroupRegistry, TripLifecycle

__all__ = [
    "__version__",
    "CapacityExceededError",
    "Conductor",
    "ConductorCredential",
    "DuplicateKeyError",
    "IdentifyAction",
    "IdentifyResult",
    "IdentityPayload",
    "InvalidPayloadError",
    "InvalidStateError",
    "Logbook",
    "MigrationError",
    "MigrationManager",
    "Passenger",
    "PersistentStore",
    "ReadAuthority",
    "RecordNotFoundError",
    "Shift",
    "Signature",
    "SignatureType",
    "StorageError",
    "StorageFacade",
    "StorageFullError",
    "SyncCache",
    "TransportConfig",
    "TransportConfigError",
    "TransportError",
    "Trip",
    "TripGroupRegistry",
    "TripLifecycle",
    "TripStatus",
    "TripStateError",
    "User",
    "UserRole",
    "decode_identity",
    "encode_identity",
]
