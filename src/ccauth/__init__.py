"""ccauth -- sign in to container cloud instances from the terminal.

This package implements the login flow of a container cloud console: it
discovers whether an instance uses username/password or single sign-on,
obtains tokens either way, and loads the cluster inventory the signed-in
user can see. OS-level protocol callbacks (the SSO redirect and links that
add or activate clusters) are decoded by :mod:`ccauth.deeplink`.

Typical workflow::

    ccauth login https://cc.example.com -u admin
    ccauth link 'lens://extensions/ccauth/oauth/code?code=...&state=...'

Modules:
    app: Typer application and CLI entry point.
    orchestrator: Login decision logic tying the stores together.
    stores: Async state containers for config, auth and cluster data.
    auth: Session entity, token helpers and the identity provider client.
    deeplink: Protocol-callback decoding and dispatch.
    models: Pydantic models shared across the entire package.
    config: XDG-aware settings and preference persistence.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
