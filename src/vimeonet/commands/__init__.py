"""Built-in CLI sub-commands for vimeonet.

* :mod:`~vimeonet.commands.request` -- execute an API request.
* :mod:`~vimeonet.commands.cache` -- inspect and clear the response cache.
* :mod:`~vimeonet.commands.config` -- view and modify settings.

Multi-command groups export a :class:`typer.Typer` sub-application; the
single ``request`` command is a plain callback registered on the root app.
"""
