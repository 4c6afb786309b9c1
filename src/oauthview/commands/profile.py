"""Profile commands -- manage stored OAuth2 provider setups.

Provides the ``oauthview profile`` sub-command group. Each profile is a
:class:`~oauthview.models.Profile` persisted as JSON in the profiles
directory and bundles a provider's endpoints, redirect URI, client
credential sources, and scopes.

Typical workflow::

    oauthview profile add example \\
        --authorization-url https://accounts.example/o/oauth2/auth \\
        --token-url https://accounts.example/o/oauth2/token \\
        --redirect-uri https://app.example/cb \\
        --client-id-source env:EXAMPLE_CLIENT_ID --scope openid --scope email
    oauthview profile list
    oauthview profile show example
"""

from __future__ import annotations

from typing import Optional

import typer

from oauthview.output import error, format_result, info, print_table, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    authorization_url: str = typer.Option(..., "--authorization-url", help="Provider authorization endpoint."),
    redirect_uri: str = typer.Option(..., "--redirect-uri", help="Registered redirect URI."),
    token_url: Optional[str] = typer.Option(None, "--token-url", help="Provider token endpoint."),
    revoke_url: Optional[str] = typer.Option(None, "--revoke-url", help="Provider revocation endpoint."),
    userinfo_url: Optional[str] = typer.Option(
        None, "--userinfo-url", help="OpenID Connect UserInfo endpoint."
    ),
    client_id_source: Optional[str] = typer.Option(
        None, "--client-id-source", help="Client id source (env:VAR, file:/path, prompt, value:ID)."
    ),
    client_secret_source: Optional[str] = typer.Option(
        None, "--client-secret-source", help="Client secret source (env:VAR, file:/path, prompt)."
    ),
    scopes: Optional[list[str]] = typer.Option(None, "--scope", help="Scope to request (repeatable)."),
    no_pkce: bool = typer.Option(False, "--no-pkce", help="Do not send a PKCE challenge."),
    header_text: str = typer.Option("Log in", "--header-text", help="Title shown above the browser view."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile."),
) -> None:
    """Create or overwrite a provider profile.

    Raises:
        typer.Exit: With code 2 if the name is not a valid file name, the
            profile exists and ``--force`` was not given, or the values fail
            validation.
    """
    from pydantic import ValidationError

    from oauthview.config import check_profile_name, profile_exists, save_profile
    from oauthview.exceptions import ConfigError
    from oauthview.models import Profile, ProviderConfig

    try:
        check_profile_name(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    if profile_exists(name) and not force:
        error(f"Profile '{name}' already exists.")
        suggest(f"Overwrite it: oauthview profile add {name} --force ...")
        raise typer.Exit(code=2)

    try:
        provider = ProviderConfig(
            authorization_url=authorization_url,
            token_url=token_url,
            revoke_url=revoke_url,
            userinfo_url=userinfo_url,
            redirect_uri=redirect_uri,
            client_id_source=client_id_source,
            client_secret_source=client_secret_source,
            scopes=scopes or [],
            use_pkce=not no_pkce,
            header_text=header_text,
        )
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_profile(Profile(name=name, provider=provider))
    success(f'Profile "{name}" saved.')
    suggest(f"Build its authorize URL: oauthview --profile {name} authorize-url")


@profile_app.command("list")
def profile_list() -> None:
    """List all profiles with their redirect URIs."""
    from oauthview.config import list_profiles, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: oauthview profile add NAME --authorization-url ... --redirect-uri ...")
        return

    rows: list[list[str]] = []
    for name in names:
        try:
            profile = load_profile(name)
            rows.append([name, profile.provider.redirect_uri, profile.provider.authorization_url])
        except Exception as exc:
            rows.append([name, f"<invalid: {exc}>", ""])
    print_table(["name", "redirect_uri", "authorization_url"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Show a profile's full configuration."""
    from oauthview.config import load_profile

    try:
        profile = load_profile(name)
    except Exception as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None
    format_result(profile.model_dump(mode="json"))


@profile_app.command("remove")
def profile_remove(
    name: str = typer.Argument(help="Profile name."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete a profile and any tokens stored for it."""
    from oauthview.config import delete_profile, profile_exists
    from oauthview.token_store import TokenStore

    if not profile_exists(name):
        error(f"Profile '{name}' not found.")
        raise typer.Exit(code=2)

    if not force:
        confirmed = typer.confirm(f"Delete profile '{name}' and its stored tokens?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    delete_profile(name)
    TokenStore(name).clear()
    success(f'Profile "{name}" removed.')
