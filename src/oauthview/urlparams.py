"""Query-string helpers for redirect URLs.

Extraction never raises: anything :mod:`urllib.parse` rejects is treated as
"parameter absent" so a garbled URL cannot crash the interception pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

logger = logging.getLogger(__name__)


def parse_query(url: Any) -> dict[str, str]:
    """Return the decoded query parameters of *url*, first occurrence wins.

    Blank values are kept (``?code=`` maps ``code`` to ``""``). Returns an
    empty dict when *url* cannot be parsed.
    """
    try:
        query = urlsplit(url).query
        pairs = parse_qsl(query, keep_blank_values=True)
    except (ValueError, TypeError, AttributeError) as exc:
        logger.debug("Unparseable URL %r: %s", url, exc)
        return {}

    params: dict[str, str] = {}
    for name, value in pairs:
        params.setdefault(name, value)
    return params


def extract_param(url: Any, name: str) -> Optional[str]:
    """Return the URL-decoded value of query parameter *name* in *url*.

    Args:
        url: The URL to inspect.
        name: Query parameter name (e.g. ``"code"``).

    Returns:
        The value, ``""`` for a parameter present without a value, or
        ``None`` when the parameter is missing or the URL is malformed.
    """
    return parse_query(url).get(name)
