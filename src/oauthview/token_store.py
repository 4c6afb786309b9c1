"""Persistent token store scoped per profile.

Stores tokens in ``~/.local/share/oauthview/tokens/<profile>.json`` (XDG) or
the platform-equivalent directory. Files are written atomically via
:func:`~oauthview.config.atomic_write` with ``0o600`` permissions so that
tokens are never world-readable, even momentarily.

Each profile maps to exactly one JSON file holding a serialised
:class:`~oauthview.models.TokenSet`.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from oauthview.config import atomic_write, check_profile_name, get_data_dir
from oauthview.models import TokenSet

logger = logging.getLogger(__name__)


def _tokens_dir() -> Path:
    """Return the tokens directory, creating it if needed."""
    path = get_data_dir() / "tokens"
    path.mkdir(parents=True, exist_ok=True)
    return path


class TokenStore:
    """Read/write the token set for a single profile.

    Args:
        profile_name: The profile identifier used to derive the file name.

    Example::

        store = TokenStore("example")
        store.save(TokenSet(access_token="tok123"))
        assert store.load().access_token == "tok123"
    """

    def __init__(self, profile_name: str) -> None:
        check_profile_name(profile_name)
        self._profile_name = profile_name
        self._path = _tokens_dir() / f"{profile_name}.json"

    @property
    def path(self) -> Path:
        return self._path

    def save(self, tokens: TokenSet) -> None:
        """Persist *tokens* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written.
        """
        text = json.dumps(tokens.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self._path, text, mode=0o600)

    def load(self) -> Optional[TokenSet]:
        """Return the stored token set, or ``None`` if missing or unreadable."""
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return TokenSet.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self._path, exc)
            return None

    def is_valid(self) -> bool:
        """Check whether a stored, non-expired access token exists."""
        tokens = self.load()
        return tokens is not None and not tokens.is_expired()

    def clear(self) -> None:
        """Delete the stored token file. No-op when it is already gone."""
        if self._path.is_file():
            self._path.unlink()
