"""
Shared fixtures.

Everything runs against in-memory storage and a fake Gemini client;
no test talks to the network.
"""

from datetime import date
from types import SimpleNamespace

import pytest

from financeflow.audit import AuditLogger
from financeflow.config import AuthSettings, GeminiSettings
from financeflow.services.auth import AuthService, InMemoryCredentialStore
from financeflow.services.persistence import PersistenceGateway
from financeflow.services.storage import (
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    InMemoryUserStorage,
)
from financeflow.state import FinanceStore, IdGenerator


TODAY = date(2024, 6, 15)


class FakeModels:
    """Stands in for `client.aio.models`, returning queued responses."""

    def __init__(self):
        self.calls = []
        self.text = "A helpful answer."
        self.image_bytes = b"jpeg-bytes"
        self.operation = SimpleNamespace(done=True, response=None)
        self.error = None

    async def generate_content(self, **kwargs):
        self.calls.append(("generate_content", kwargs))
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)

    async def generate_images(self, **kwargs):
        self.calls.append(("generate_images", kwargs))
        if self.error:
            raise self.error
        image = SimpleNamespace(image_bytes=self.image_bytes)
        return SimpleNamespace(generated_images=[SimpleNamespace(image=image)])

    async def generate_videos(self, **kwargs):
        self.calls.append(("generate_videos", kwargs))
        if self.error:
            raise self.error
        return self.operation


class FakeOperations:
    """Stands in for `client.aio.operations`; finishes after `polls_needed` checks."""

    def __init__(self, uri="https://example.com/video.mp4", polls_needed=2):
        self.uri = uri
        self.polls_needed = polls_needed
        self.polls = 0

    async def get(self, operation):
        self.polls += 1
        if self.polls < self.polls_needed:
            return SimpleNamespace(done=False, response=None)
        video = SimpleNamespace(uri=self.uri)
        response = SimpleNamespace(generated_videos=[SimpleNamespace(video=video)])
        return SimpleNamespace(done=True, response=response)


@pytest.fixture
def fake_client():
    return SimpleNamespace(
        aio=SimpleNamespace(models=FakeModels(), operations=FakeOperations())
    )


@pytest.fixture
def gemini_settings():
    return GeminiSettings(api_key="test-key-abcd", video_poll_interval_seconds=0)


@pytest.fixture
def auth_settings():
    return AuthSettings(jwt_secret="x" * 32, bcrypt_rounds=4)


@pytest.fixture
def snapshot_storage():
    return InMemorySnapshotStorage()


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def credentials():
    return InMemoryCredentialStore()


@pytest.fixture
def auth(user_storage, snapshot_storage, credentials, auth_settings):
    return AuthService(user_storage, snapshot_storage, credentials, auth_settings)


@pytest.fixture
def gateway(auth, snapshot_storage):
    return PersistenceGateway(auth, snapshot_storage)


@pytest.fixture
def store():
    return FinanceStore(today=lambda: TODAY)


@pytest.fixture
def ticking_ids():
    """Ids from a clock that never moves, so they count up from 1000."""
    return IdGenerator(clock=lambda: 1000)
