"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep user data in Google Sheets today and a real database later
2. Use in-memory storage for testing and local development
3. Keep the state and session layers decoupled from storage details

Snapshots are stored whole. The store always sends the complete set of
collections, and storage replaces what it held for that user. Every save
carries the snapshot version; a save older than the stored version is
ignored (last write wins by version, not by arrival order).
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from financeflow.models.audit import AuditEvent
from financeflow.models.user import UserRecord


class SnapshotStorageInterface(ABC):
    """
    Abstract interface for snapshot storage.

    Payloads are the camelCase dicts produced by Snapshot.to_payload().
    """

    @abstractmethod
    async def load_snapshot(self, user_id: int) -> Optional[dict]:
        """
        Load a user's stored snapshot.

        Args:
            user_id: The owning user's id

        Returns:
            The raw snapshot dict, or None if nothing was ever saved

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save_snapshot(self, user_id: int, payload: dict, version: int) -> bool:
        """
        Replace a user's stored snapshot.

        Args:
            user_id: The owning user's id
            payload: Complete snapshot payload
            version: Snapshot version; higher versions are newer

        Returns:
            True if stored, False if a newer version was already stored

        Raises:
            StorageError: If the write fails
        """
        pass


class UserStorageInterface(ABC):
    """Abstract interface for user account storage."""

    @abstractmethod
    async def create_user(self, email: str, password_hash: str) -> UserRecord:
        """
        Create an account and assign it an id.

        Raises:
            DuplicateError: If the email is already registered
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Find an account by email. Returns None if not found."""
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: int) -> Optional[UserRecord]:
        """Find an account by id. Returns None if not found."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one signed-in session).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
