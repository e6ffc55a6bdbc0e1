"""
Authentication Service

Email and password accounts with signed session tokens.

- Passwords are stored as bcrypt hashes
- Sessions are HS256 JWTs carrying the user's id and email, valid for
  `token_ttl_hours`
- The current token is kept in a CredentialStore, so a restarted app can
  pick the session up again through get_current_session()

A new account is created with a stored snapshot holding the default
budgets, so the first load after sign-up already has them.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
import jwt
import structlog
from pydantic import BaseModel, ConfigDict

from financeflow.config import AuthSettings
from financeflow.models.finance import Snapshot
from financeflow.models.user import UserRecord
from financeflow.services.auth.credentials import CredentialStore
from financeflow.services.auth.errors import (
    AuthValidationError,
    DuplicateUserError,
    InvalidCredentialsError,
    PasswordTooLongError,
    UnauthenticatedError,
    UserNotFoundError,
)
from financeflow.services.storage.interface import (
    DuplicateError,
    SnapshotStorageInterface,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"

# bcrypt refuses passwords longer than this
BCRYPT_MAX_PASSWORD_BYTES = 72


class Session(BaseModel):
    """A signed-in user."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    token: str
    expires_at: datetime


def _password_bytes(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        raise PasswordTooLongError()
    return encoded


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """
    Sign-up, sign-in and session restore.

    Usage:
        auth = AuthService(users, snapshots, FileCredentialStore(path), settings)
        session = await auth.sign_in("me@example.com", "secret")
        ...
        session = auth.get_current_session()  # after a restart
    """

    def __init__(
        self,
        users: UserStorageInterface,
        snapshots: SnapshotStorageInterface,
        credentials: CredentialStore,
        settings: AuthSettings,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._users = users
        self._snapshots = snapshots
        self._credentials = credentials
        self._settings = settings
        self._clock = clock

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def sign_up(self, email: str, password: str) -> Session:
        """
        Create an account and sign it in.

        Raises:
            AuthValidationError: If email or password is empty, or the
                password is longer than 72 bytes
            DuplicateUserError: If the email is already registered
        """
        email = (email or "").strip()
        if not email or not password:
            raise AuthValidationError()

        if await self._users.get_user_by_email(email) is not None:
            raise DuplicateUserError()

        password_hash = bcrypt.hashpw(
            _password_bytes(password),
            bcrypt.gensalt(rounds=self._settings.bcrypt_rounds),
        ).decode("utf-8")
        try:
            user = await self._users.create_user(email, password_hash)
        except DuplicateError:
            raise DuplicateUserError()

        await self._snapshots.save_snapshot(user.id, Snapshot().to_payload(), version=0)
        logger.info("user_signed_up", user_id=user.id)
        return self._start_session(user)

    async def sign_in(self, email: str, password: str) -> Session:
        """
        Sign in with email and password.

        Raises:
            AuthValidationError: If email or password is empty, or the
                password is longer than 72 bytes
            UserNotFoundError: If no account has this email
            InvalidCredentialsError: If the password does not match
        """
        email = (email or "").strip()
        if not email or not password:
            raise AuthValidationError()

        user = await self._users.get_user_by_email(email)
        if user is None:
            raise UserNotFoundError()

        if not bcrypt.checkpw(_password_bytes(password), user.password_hash.encode("utf-8")):
            raise InvalidCredentialsError()

        logger.info("user_signed_in", user_id=user.id)
        return self._start_session(user)

    def sign_out(self) -> None:
        """Forget the stored session token."""
        self._credentials.clear()

    # =========================================================================
    # TOKENS
    # =========================================================================

    def _start_session(self, user: UserRecord) -> Session:
        token = self.issue_token(user)
        self._credentials.set_token(token)
        return self.verify_token(token)

    def issue_token(self, user: UserRecord) -> str:
        """Sign a session token for the user."""
        issued_at = self._clock()
        claims = {
            "id": user.id,
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + timedelta(hours=self._settings.token_ttl_hours),
        }
        return jwt.encode(claims, self._settings.jwt_secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: Optional[str]) -> Session:
        """
        Decode and check a session token.

        Raises:
            UnauthenticatedError: If the token is missing, tampered with or expired
        """
        if not token:
            raise UnauthenticatedError("Authentication token is required.")
        try:
            claims = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
            return Session(
                user_id=int(claims["id"]),
                email=str(claims["email"]),
                token=token,
                expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            )
        except (jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
            raise UnauthenticatedError() from e

    async def authenticate(self, token: Optional[str]) -> UserRecord:
        """
        Resolve a token to its stored account.

        Raises:
            UnauthenticatedError: If the token is not valid
            UserNotFoundError: If the account no longer exists
        """
        session = self.verify_token(token)
        user = await self._users.get_user_by_id(session.user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def get_current_session(self) -> Optional[Session]:
        """
        Return the stored session, if it is still valid.

        An expired or unreadable token is removed and None is returned.
        """
        token = self._credentials.get_token()
        if not token:
            return None
        try:
            return self.verify_token(token)
        except UnauthenticatedError:
            logger.info("stored_session_discarded")
            self._credentials.clear()
            return None
