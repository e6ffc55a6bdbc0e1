"""Services package."""

from financeflow.services.auth import (
    AuthError,
    AuthService,
    Session,
    UnauthenticatedError,
)
from financeflow.services.persistence import (
    GatewayError,
    NotFoundError,
    PersistenceGateway,
    ServerError,
)
from financeflow.services.storage import (
    AuditStorageInterface,
    SnapshotStorageInterface,
    StorageError,
    UserStorageInterface,
)

__all__ = [
    # Auth
    "AuthError",
    "AuthService",
    "Session",
    "UnauthenticatedError",
    # Persistence gateway
    "GatewayError",
    "NotFoundError",
    "PersistenceGateway",
    "ServerError",
    # Storage
    "AuditStorageInterface",
    "SnapshotStorageInterface",
    "StorageError",
    "UserStorageInterface",
]
