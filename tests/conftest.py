"""Shared test fixtures for oauthview.

Provides reusable fixtures for building authorization requests, recording
receivers, isolated config environments, and running CLI commands. These
fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from oauthview.delivery import OAuthReceiver
from oauthview.models import AuthorizationRequest, Profile, ProviderConfig
from oauthview.output import reset_output


REDIRECT_URI = "https://app.example/cb"
AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth?client_id=abc&response_type=code"


class RecordingReceiver(OAuthReceiver):
    """Receiver that records every call it gets, in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def receive_code(self, code: str) -> None:
        self.calls.append(("code", code))

    def receive_error(self, error: str) -> None:
        self.calls.append(("error", error))


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams, so a stale manager
    would write to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def receiver() -> RecordingReceiver:
    return RecordingReceiver()


@pytest.fixture
def auth_request() -> AuthorizationRequest:
    return AuthorizationRequest(
        authorize_url=AUTHORIZE_URL,
        redirect_uri=REDIRECT_URI,
        header_text="Sign in",
    )


@pytest.fixture
def provider() -> ProviderConfig:
    return ProviderConfig(
        authorization_url="https://auth.example.com/authorize",
        token_url="https://auth.example.com/token",
        revoke_url="https://auth.example.com/revoke",
        redirect_uri=REDIRECT_URI,
        client_id_source="value:my-client",
        scopes=["openid", "email"],
    )


@pytest.fixture
def sample_profile(provider: ProviderConfig) -> Profile:
    return Profile(name="example", provider=provider)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG code path, clears OAUTHVIEW_PROFILE, and changes the
    working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("oauthview.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("OAUTHVIEW_PROFILE", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
