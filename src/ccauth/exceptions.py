"""Exception hierarchy for ccauth.

All exceptions inherit from :class:`CcauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`ccauth.exit_codes`.
Stores never let these escape: they are captured at the store boundary and
exposed through :attr:`~ccauth.stores.base.StoreState.error`. The CLI maps
them to process exit codes.

Subclass hierarchy::

    CcauthError (exit 1)
    +-- NetworkError        (exit 6)
    +-- ConfigError         (exit 7)
    +-- CredentialError     (exit 3)
    +-- AuthCodeError       (exit 3)
    +-- BasicOnlyError      (exit 3)
    +-- DecodeError         (exit 8)
    +-- SessionBorrowError  (exit 1)
"""

from ccauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
)


class CcauthError(Exception):
    """Base exception for all ccauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`ccauth.exit_codes`.

    Args:
        message: Human-readable error description. For errors that end up
            in store state this is the text shown to the user, so it must
            not carry upstream provider detail.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class NetworkError(CcauthError):
    """Raised on transport failures (timeout, DNS resolution, connection refused, 5xx)."""

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(CcauthError):
    """Raised when the instance config descriptor is malformed or unreachable,
    or a local settings file is invalid."""

    exit_code = EXIT_CONFIG_ERROR


class CredentialError(CcauthError):
    """Raised when the token endpoint rejects a username/password or refresh token."""

    exit_code = EXIT_AUTH_FAILURE


class AuthCodeError(CcauthError):
    """Raised when an SSO authorization code exchange fails or the identity
    token lacks the username claim."""

    exit_code = EXIT_AUTH_FAILURE


class BasicOnlyError(CcauthError):
    """Raised when SSO is attempted against an instance that only supports basic auth."""

    exit_code = EXIT_AUTH_FAILURE


class DecodeError(CcauthError):
    """Raised when an inbound deep-link payload is not valid base64 or JSON."""

    exit_code = EXIT_DECODE_ERROR


class SessionBorrowError(CcauthError):
    """Raised when a session is lent while another store still holds it."""

    exit_code = EXIT_GENERIC_FAILURE
