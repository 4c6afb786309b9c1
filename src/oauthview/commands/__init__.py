"""Built-in CLI sub-commands for oauthview.

* :mod:`~oauthview.commands.profile` -- ``oauthview profile``
* :mod:`~oauthview.commands.flow` -- ``authorize-url``, ``intercept``, ``replay``
* :mod:`~oauthview.commands.token` -- ``oauthview token``
"""
