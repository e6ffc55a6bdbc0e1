"""
In-Memory Storage

Process-local implementations of the storage interfaces, used by the
tests and when Google Sheets is not configured. Payloads are deep-copied
on the way in and out so callers never share mutable state with storage.
"""

import copy
import itertools
from typing import Optional
from uuid import UUID

from financeflow.models.audit import AuditEvent
from financeflow.models.user import UserRecord
from financeflow.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    SnapshotStorageInterface,
    UserStorageInterface,
)


class InMemorySnapshotStorage(SnapshotStorageInterface):
    """Snapshots keyed by user id, with last-write-wins by version."""

    def __init__(self):
        self._snapshots: dict[int, dict] = {}
        self._versions: dict[int, int] = {}
        self.save_count = 0

    async def load_snapshot(self, user_id: int) -> Optional[dict]:
        snapshot = self._snapshots.get(user_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    async def save_snapshot(self, user_id: int, payload: dict, version: int) -> bool:
        self.save_count += 1
        if version < self._versions.get(user_id, 0):
            return False
        self._snapshots[user_id] = copy.deepcopy(payload)
        self._versions[user_id] = version
        return True

    def stored_version(self, user_id: int) -> Optional[int]:
        return self._versions.get(user_id)


class InMemoryUserStorage(UserStorageInterface):
    """Accounts with sequential ids. Emails are unique case-insensitively."""

    def __init__(self):
        self._users: dict[int, UserRecord] = {}
        self._ids = itertools.count(1)

    async def create_user(self, email: str, password_hash: str) -> UserRecord:
        if await self.get_user_by_email(email) is not None:
            raise DuplicateError(f"User already exists: {email}")
        user = UserRecord(id=next(self._ids), email=email, password_hash=password_hash)
        self._users[user.id] = user
        return user

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        wanted = email.strip().lower()
        return next(
            (u for u in self._users.values() if u.email.lower() == wanted),
            None,
        )

    async def get_user_by_id(self, user_id: int) -> Optional[UserRecord]:
        return self._users.get(user_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
