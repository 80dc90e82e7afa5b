"""URL helpers.

:func:`normalize_url` turns whatever the user typed into the canonical form
ccauth stores and compares. It is idempotent: normalizing a normalized URL
returns it unchanged, which is what makes the "same endpoint" check of the
login fast path reliable.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Canonicalize an instance URL.

    * surrounding whitespace is removed
    * ``https://`` is assumed when no scheme is given
    * scheme and host are lower-cased, default ports dropped
    * trailing slashes and any fragment are removed

    Example::

        >>> normalize_url("  CC.Example.com:443/ ")
        'https://cc.example.com'
    """
    url = url.strip()
    if not url:
        return ""
    if "://" not in url:
        url = f"https://{url}"

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()

    host, sep, port = netloc.rpartition(":")
    if sep and port.isdigit() and "]" not in port and _DEFAULT_PORTS.get(scheme) == int(port):
        netloc = host

    path = parts.path.rstrip("/")
    return urlunsplit((scheme, netloc, path, parts.query, ""))
