"""Mutable session entity holding credentials and tokens.

A :class:`Session` is owned by the
:class:`~ccauth.orchestrator.LoginOrchestrator`. Stores that need to read
or write it borrow it through :meth:`Session.lend`, which hands out an
exclusive, checked loan for the duration of one call::

    with session.lend("basic-auth") as borrowed:
        borrowed.update_tokens(body)

A second loan while the first is outstanding raises
:class:`~ccauth.exceptions.SessionBorrowError`. Stores must not keep a
reference to the session after their call returns.
"""

from __future__ import annotations

import base64
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from ccauth.exceptions import SessionBorrowError
from ccauth.models import TokenSet


class Session:
    """Credentials and tokens for one instance.

    Attributes:
        cloud_url: Instance URL the credentials belong to.
        username: Login name, either typed by the user or taken from the
            identity token's ``preferred_username`` claim.
        password: Password for basic auth; always ``None`` once SSO is used.
        tokens: Token set from the last successful exchange, if any.
        uses_sso: Whether the tokens came from the SSO flow.
    """

    def __init__(
        self,
        cloud_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        tokens: Optional[TokenSet] = None,
        uses_sso: bool = False,
    ) -> None:
        self.cloud_url = cloud_url
        self.username = username
        self.password = password
        self.tokens = tokens
        self.uses_sso = uses_sso
        self._borrower: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"Session(cloud_url={self.cloud_url!r}, username={self.username!r}, "
            f"has_password={self.password is not None}, "
            f"has_tokens={self.tokens is not None}, uses_sso={self.uses_sso})"
        )

    # ------------------------------------------------------------------ #
    # Validity
    # ------------------------------------------------------------------ #

    def is_valid(self) -> bool:
        """Return ``True`` when a username is set along with a password or tokens."""
        return bool(self.username) and (bool(self.password) or self.tokens is not None)

    def token_expired(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when the access token has a known expiry in the past."""
        if self.tokens is None or self.tokens.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.tokens.expires_at

    def refresh_expired(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when there is no usable refresh token."""
        if self.tokens is None or not self.tokens.refresh_token:
            return True
        if self.tokens.refresh_expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.tokens.refresh_expires_at

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def update_tokens(self, body: dict[str, Any]) -> None:
        """Replace the token set from a token endpoint response body."""
        self.tokens = TokenSet.from_response(body)

    def reset_tokens(self) -> None:
        self.tokens = None

    def reset_credentials(self) -> None:
        """Clear username, password and the SSO flag. Tokens are left alone."""
        self.username = None
        self.password = None
        self.uses_sso = False

    def auth_headers(self) -> dict[str, str]:
        """Return the ``Authorization`` header for requests made with this session.

        Bearer tokens take precedence; a basic-auth header is built from the
        username and password otherwise. Returns an empty dict for an
        invalid session.
        """
        if self.tokens is not None:
            return {"Authorization": f"Bearer {self.tokens.access_token}"}
        if self.username and self.password:
            raw = f"{self.username}:{self.password}"
            encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {encoded}"}
        return {}

    # ------------------------------------------------------------------ #
    # Borrowing
    # ------------------------------------------------------------------ #

    @property
    def is_lent(self) -> bool:
        return self._borrower is not None

    @property
    def borrower(self) -> Optional[str]:
        return self._borrower

    @contextmanager
    def lend(self, borrower: str) -> Iterator[Session]:
        """Lend the session exclusively to *borrower* for the ``with`` block.

        Raises:
            SessionBorrowError: If the session is already lent.
        """
        if self._borrower is not None:
            raise SessionBorrowError(
                f"Session is already lent to '{self._borrower}' "
                f"(requested by '{borrower}')"
            )
        self._borrower = borrower
        try:
            yield self
        finally:
            self._borrower = None
