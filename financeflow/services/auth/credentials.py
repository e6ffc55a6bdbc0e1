"""
Credential Stores

Where the signed-in session token lives between runs. The file store keeps
the token in a small JSON document so a restarted app can restore the
session; the in-memory store is used by the tests.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class CredentialStore(ABC):
    """Holds at most one session token."""

    @abstractmethod
    def get_token(self) -> Optional[str]:
        pass

    @abstractmethod
    def set_token(self, token: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryCredentialStore(CredentialStore):

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileCredentialStore(CredentialStore):
    """Token persisted as {"token": "..."} in a JSON file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    def get_token(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("credentials_unreadable", path=str(self._path), error=str(e))
            return None
        token = data.get("token") if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None

    def set_token(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({"token": token}), encoding="utf-8")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
