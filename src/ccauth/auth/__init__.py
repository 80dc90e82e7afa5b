"""Authentication primitives for ccauth.

- :class:`Session` -- credentials and tokens for one instance, lent to one
  store at a time.
- :class:`AuthClient` -- authorization URLs and token endpoint grants.
- :func:`decode_jwt_payload`, :func:`generate_pkce_pair`,
  :func:`generate_state` -- token helpers.

Typical usage::

    from ccauth.auth import AuthClient, Session

    session = Session()
    body = await AuthClient(client, settings, config, cloud_url=url).get_token(
        username="admin", password="secret"
    )
    session.update_tokens(body)
"""

from ccauth.auth.client import AuthClient
from ccauth.auth.session import Session
from ccauth.auth.tokens import decode_jwt_payload, generate_pkce_pair, generate_state

__all__ = [
    "AuthClient",
    "Session",
    "decode_jwt_payload",
    "generate_pkce_pair",
    "generate_state",
]
