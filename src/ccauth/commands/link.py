"""Link command -- decode an inbound deep link.

``ccauth link`` is what the operating system invokes for the
``lens://extensions/ccauth/...`` protocol. It decodes the URI with
:class:`~ccauth.deeplink.DeepLinkDispatcher` and prints the resulting event
as JSON, so that shell tooling can act on it.
"""

from __future__ import annotations

import typer

from ccauth.exit_codes import EXIT_DECODE_ERROR
from ccauth.output import error, format_response


def link_command(
    uri: str = typer.Argument(help="Deep link URI, e.g. lens://extensions/ccauth/addClusters?..."),
) -> None:
    """Decode a deep link and print the event.

    Malformed links are reported and exit with code 8.

    Example::

        ccauth link 'lens://extensions/ccauth/activateCluster?cloudUrl=...&namespace=default'
    """
    from ccauth.deeplink import DeepLinkDispatcher

    event = DeepLinkDispatcher().dispatch(uri)
    if event is None:
        error("Could not decode deep link.")
        raise typer.Exit(code=EXIT_DECODE_ERROR)
    format_response(event.model_dump(mode="json"))
