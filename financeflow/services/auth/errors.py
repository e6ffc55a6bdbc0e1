"""
Authentication errors.

Each carries the message shown to the user; the sign-in form displays
`str(error)` directly.
"""


class AuthError(Exception):
    """Base exception for authentication."""
    pass


class AuthValidationError(AuthError):
    """Email or password missing."""

    def __init__(self, message: str = "Email and password are required."):
        super().__init__(message)


class PasswordTooLongError(AuthValidationError):
    """Password longer than bcrypt can hash."""

    def __init__(self, message: str = "Password must be at most 72 bytes long."):
        super().__init__(message)


class DuplicateUserError(AuthError):
    """Sign-up with an email that is already registered."""

    def __init__(self, message: str = "User with this email already exists."):
        super().__init__(message)


class UserNotFoundError(AuthError):
    """No account for this email (or token subject)."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """Wrong password."""

    def __init__(self, message: str = "Invalid password."):
        super().__init__(message)


class UnauthenticatedError(AuthError):
    """Missing, malformed or expired session token."""

    def __init__(self, message: str = "Token is invalid or has expired."):
        super().__init__(message)
