"""
Persistence Gateway

The authenticated door to snapshot storage. Callers hand over the session
token; the gateway resolves it to a user and reads or replaces that user's
snapshot.

Failures are reduced to three kinds so the session layer can react
without knowing about storage backends:
- UnauthenticatedError: the token is bad or expired
- NotFoundError: the account behind the token no longer exists
- ServerError: storage failed
"""

from typing import Optional

import structlog

from financeflow.services.auth import AuthService, UnauthenticatedError, UserNotFoundError
from financeflow.services.storage.interface import SnapshotStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class GatewayError(Exception):
    """Base exception for the persistence gateway."""
    pass


class NotFoundError(GatewayError):
    """The signed-in account does not exist."""
    pass


class ServerError(GatewayError):
    """Storage could not complete the request."""
    pass


class PersistenceGateway:
    """Loads and saves the signed-in user's snapshot."""

    def __init__(self, auth: AuthService, storage: SnapshotStorageInterface):
        self._auth = auth
        self._storage = storage

    async def _user_id(self, token: Optional[str]) -> int:
        try:
            user = await self._auth.authenticate(token)
        except UserNotFoundError as e:
            raise NotFoundError(str(e)) from e
        except StorageError as e:
            raise ServerError(f"Failed to look up user: {e}") from e
        return user.id

    async def load(self, token: Optional[str]) -> dict:
        """
        Load the raw snapshot for the token's user.

        Returns an empty dict for an account with nothing saved yet;
        normalization fills in the defaults.

        Raises:
            UnauthenticatedError: If the token is not valid
            NotFoundError: If the account no longer exists
            ServerError: If storage fails
        """
        user_id = await self._user_id(token)
        try:
            raw = await self._storage.load_snapshot(user_id)
        except StorageError as e:
            logger.error("snapshot_load_failed", user_id=user_id, error=str(e))
            raise ServerError("Failed to load user data.") from e
        return raw or {}

    async def save(self, token: Optional[str], payload: dict, version: int) -> bool:
        """
        Replace the stored snapshot for the token's user.

        Returns:
            False if storage already holds a newer version

        Raises:
            UnauthenticatedError: If the token is not valid
            ServerError: If storage fails or the account is gone
        """
        try:
            user_id = await self._user_id(token)
        except NotFoundError as e:
            raise ServerError(str(e)) from e
        try:
            stored = await self._storage.save_snapshot(user_id, payload, version)
        except StorageError as e:
            logger.error("snapshot_save_failed", user_id=user_id, version=version, error=str(e))
            raise ServerError("Failed to save user data.") from e
        if not stored:
            logger.info("snapshot_save_superseded", user_id=user_id, version=version)
        return stored


__all__ = [
    "GatewayError",
    "NotFoundError",
    "PersistenceGateway",
    "ServerError",
    "UnauthenticatedError",
]
