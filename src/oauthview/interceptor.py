"""Redirect interception for embedded-browser OAuth2 flows.

The embedded browser reports every page it is about to load (or has just
finished loading). :class:`RedirectInterceptor` looks at each URL and decides
whether it is the provider sending the user back to the registered redirect
URI with a result:

* URL does not start with the redirect prefix -- no match, the browser keeps
  navigating (every page of the provider's sign-in UI lands here).
* URL contains ``code=`` -- success, the ``code`` parameter is extracted.
* URL contains ``error=`` -- failure, the ``error`` parameter is extracted.
* Prefix matches but neither marker is present -- an intermediate hop, no
  match.

``code=`` is checked before ``error=``, so a URL carrying both is a success.
The markers are plain substring checks on the whole URL; the values come from
the parsed query string.
"""

from __future__ import annotations

import logging
from typing import Optional

from oauthview.exceptions import MalformedRedirectURLError
from oauthview.models import Outcome
from oauthview.urlparams import extract_param

logger = logging.getLogger(__name__)

CODE_MARKER = "code="
ERROR_MARKER = "error="


class RedirectInterceptor:
    """Classify navigation URLs against a fixed redirect prefix.

    Args:
        redirect_prefix: The registered redirect URI. Any URL starting with
            it is a candidate redirect.

    Example::

        interceptor = RedirectInterceptor("https://app.example/cb")
        interceptor.intercept("https://app.example/cb?code=abc123")
        # Outcome(kind=OutcomeKind.CODE, value='abc123')
        interceptor.intercept("https://accounts.example/login")
        # None
    """

    def __init__(self, redirect_prefix: str) -> None:
        if not redirect_prefix:
            raise ValueError("redirect_prefix must be a non-empty string")
        self._redirect_prefix = redirect_prefix

    @property
    def redirect_prefix(self) -> str:
        return self._redirect_prefix

    def matches(self, url: str) -> bool:
        """Return True if *url* starts with the redirect prefix."""
        return isinstance(url, str) and url.startswith(self._redirect_prefix)

    def intercept(self, url: str) -> Optional[Outcome]:
        """Classify *url*.

        Returns:
            ``None`` when the URL is not a terminal redirect, otherwise the
            code or error :class:`~oauthview.models.Outcome`.

        Raises:
            MalformedRedirectURLError: The URL matched and carries a marker
                but the corresponding parameter could not be read.
        """
        if not self.matches(url):
            return None

        if CODE_MARKER in url:
            code = extract_param(url, "code")
            if code is None:
                raise MalformedRedirectURLError(url, "code")
            logger.debug("Intercepted authorization code redirect")
            return Outcome.code(code)

        if ERROR_MARKER in url:
            error = extract_param(url, "error")
            if error is None:
                raise MalformedRedirectURLError(url, "error")
            logger.debug("Intercepted error redirect: %s", error)
            return Outcome.error(error)

        logger.debug("Redirect prefix matched without result markers, continuing: %s", url)
        return None
