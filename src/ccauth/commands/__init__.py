"""Built-in CLI sub-commands for ccauth.

* :mod:`~ccauth.commands.login` -- access an instance and sign in.
* :mod:`~ccauth.commands.link` -- decode an inbound deep link.
* :mod:`~ccauth.commands.config` -- view settings, remember an instance.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or a plain callback function
registered directly on the root app (for single commands like ``login``).
"""
