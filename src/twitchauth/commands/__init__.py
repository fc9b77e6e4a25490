"""Built-in CLI commands for twitchauth.

* :mod:`~twitchauth.commands.auth` -- ``login``, ``status``, ``token``,
  ``logout``, and ``url``, registered directly on the root app.
* :mod:`~twitchauth.commands.config` -- the ``config`` sub-application for
  viewing and modifying global settings.
"""
