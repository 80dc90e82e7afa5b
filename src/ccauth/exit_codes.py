"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~ccauth.exceptions.CcauthError` subclass.
Shell wrappers can inspect the exit code of ``ccauth login`` to tell a
rejected password apart from an unreachable instance without parsing stderr.

Example::

    $ ccauth login https://cc.example.com -u admin
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- credentials were rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed (bad credentials, failed code exchange, SSO mismatch)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CONFIG_ERROR = 7
"""The instance configuration descriptor could not be fetched or parsed."""

EXIT_DECODE_ERROR = 8
"""An inbound deep link could not be decoded."""
