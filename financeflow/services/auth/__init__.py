"""Authentication package."""

from financeflow.services.auth.credentials import (
    CredentialStore,
    FileCredentialStore,
    InMemoryCredentialStore,
)
from financeflow.services.auth.errors import (
    AuthError,
    AuthValidationError,
    DuplicateUserError,
    InvalidCredentialsError,
    PasswordTooLongError,
    UnauthenticatedError,
    UserNotFoundError,
)
from financeflow.services.auth.service import AuthService, Session

__all__ = [
    "AuthService",
    "Session",
    # Credential stores
    "CredentialStore",
    "FileCredentialStore",
    "InMemoryCredentialStore",
    # Exceptions
    "AuthError",
    "AuthValidationError",
    "DuplicateUserError",
    "InvalidCredentialsError",
    "PasswordTooLongError",
    "UnauthenticatedError",
    "UserNotFoundError",
]
