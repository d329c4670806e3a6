"""Built-in CLI sub-commands for oauthbridge.

* :mod:`~oauthbridge.commands.flow` -- ``authorize``, ``resume``, ``logout``
  and ``status``, registered directly on the root app.
* :mod:`~oauthbridge.commands.config` -- view and modify global settings.
"""
