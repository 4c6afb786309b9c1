"""Profiles, directories, and settings precedence for oauthview.

Where things live:

* Linux and the BSDs follow the XDG base directories: settings and
  profiles under ``$XDG_CONFIG_HOME/oauthview``, tokens and crash logs
  under ``$XDG_DATA_HOME/oauthview``.
* Everywhere else both live below ``~/.oauthview`` (data in ``data/``).

What is stored:

* ``config.json`` -- one :class:`~oauthview.models.GlobalConfig`.
* ``profiles/<name>.json`` -- one :class:`~oauthview.models.Profile` per
  OAuth2 provider setup.
* ``./oauthview.json`` -- optional per-project override of the default
  profile.

:func:`resolve_config` picks the active profile from CLI flag,
``OAUTHVIEW_PROFILE``, project file, and global default, in that order.
:func:`resolve_credential` turns a source descriptor (``env:``, ``file:``,
``prompt``, ``value:``) into the client id or secret it names.

Every write goes through :func:`atomic_write`.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import re
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from oauthview.exceptions import ConfigError
from oauthview.models import PROFILE_NAME_PATTERN, GlobalConfig, Profile

_APP_NAME = "oauthview"
_GLOBAL_FILE = "config.json"
_PROJECT_FILE = "oauthview.json"
_PROFILE_ENV_VAR = "OAUTHVIEW_PROFILE"

# kind -> (XDG variable, default under $HOME, subdirectory on other platforms)
_DIR_LAYOUT: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "data": ("XDG_DATA_HOME", (".local", "share"), "data"),
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_segments, fallback_sub = _DIR_LAYOUT[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or str(Path.home().joinpath(*home_segments))
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory for ``config.json`` and ``profiles/`` (created on demand)."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """Directory for stored tokens and crash logs (created on demand)."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Writing ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* so readers never observe a partial file.

    The content goes to a hidden sibling first, is flushed to disk, and is
    then renamed over *path*. *mode*, when given, is set on the sibling
    before anything is written, so secrets are never readable by others.
    The sibling is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if mode is not None:
            os.chmod(tmp_name, mode)
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(data)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _write_json(path: Path, data: Any) -> None:
    atomic_write(path, json.dumps(data, indent=2) + "\n")


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global settings ---


def load_global_config() -> GlobalConfig:
    """Read ``config.json``; a missing file means all defaults.

    Raises:
        ConfigError: The file is not JSON or does not match the schema.
    """
    path = get_config_dir() / _GLOBAL_FILE
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    _write_json(get_config_dir() / _GLOBAL_FILE, config.model_dump(mode="json"))


# --- Profiles ---


def check_profile_name(name: str) -> str:
    """Return *name* if it is usable as a profile file name.

    Raises:
        ConfigError: The name is empty, starts with a dot or dash, or
            contains anything but letters, digits, ".", "_" and "-".
    """
    if not re.fullmatch(PROFILE_NAME_PATTERN, name):
        raise ConfigError(
            f"Invalid profile name '{name}': use letters, digits, '.', '_' or '-'"
        )
    return name


def _profile_file(name: str) -> Path:
    return get_profiles_dir() / f"{check_profile_name(name)}.json"


def list_profiles() -> list[str]:
    """Names of all stored profiles, alphabetically."""
    return sorted(entry.stem for entry in get_profiles_dir().glob("*.json") if entry.is_file())


def profile_exists(name: str) -> bool:
    return _profile_file(name).is_file()


def load_profile(name: str) -> Profile:
    """Read profile *name*.

    Raises:
        ConfigError: No such profile, or its file is invalid.
    """
    path = _profile_file(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    data = _read_json(path, f"profile '{name}'")
    try:
        return Profile.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    _write_json(_profile_file(profile.name), profile.model_dump(mode="json"))


def delete_profile(name: str) -> None:
    path = _profile_file(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./oauthview.json`` from the working directory, if present."""
    path = Path.cwd() / _PROJECT_FILE
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Precedence ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Work out the effective settings and the active profile.

    The profile name is the first one set among: *cli_profile*,
    ``OAUTHVIEW_PROFILE``, ``default_profile`` in ``./oauthview.json``, and
    ``default_profile`` in the global config. When none is set and exactly
    one profile exists, that profile is used (unless
    ``auto_select_single_profile`` is off).

    Raises:
        ConfigError: The chosen profile does not exist or is invalid.
    """
    global_cfg = load_global_config()
    project = load_project_config() or {}

    candidates = (
        cli_profile,
        os.environ.get(_PROFILE_ENV_VAR) or None,
        project.get("default_profile"),
        global_cfg.default_profile,
    )
    name = next((c for c in candidates if c is not None), None)

    if name is None and global_cfg.auto_select_single_profile:
        existing = list_profiles()
        if len(existing) == 1:
            name = existing[0]

    if cli_format is not None:
        global_cfg.output.format = cli_format

    return global_cfg, load_profile(name) if name is not None else None


def require_profile(cli_profile: Optional[str] = None) -> Profile:
    """Like :func:`resolve_config`, but having no active profile is an error."""
    _, profile = resolve_config(cli_profile=cli_profile)
    if profile is None:
        raise ConfigError(
            "No profile selected. Use --profile, set OAUTHVIEW_PROFILE, "
            "or create one with 'oauthview profile add'."
        )
    return profile


# --- Credential sources ---


def _from_env(var_name: str) -> str:
    value = os.environ.get(var_name)
    if value is None:
        raise ConfigError(f"Environment variable '{var_name}' is not set (source: env:{var_name})")
    return value


def _from_file(location: str) -> str:
    path = Path(location).expanduser()
    if not path.is_file():
        raise ConfigError(f"Credential file not found: {path} (source: file:{location})")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


def _from_value(literal: str) -> str:
    return literal


_SOURCES: dict[str, Callable[[str], str]] = {
    "env:": _from_env,
    "file:": _from_file,
    "value:": _from_value,
}


def resolve_credential(source: str) -> str:
    """Resolve a client id or secret from its source descriptor.

    ``env:NAME`` reads an environment variable, ``file:PATH`` reads a file
    (surrounding whitespace stripped), ``prompt`` asks on the terminal, and
    ``value:TEXT`` is the literal text. Keep ``value:`` for public client
    ids; secrets belong in the environment or a file.

    Raises:
        ConfigError: The source is unknown or cannot be read.
    """
    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY (source: prompt)")
        return getpass.getpass("Enter credential: ")

    for prefix, resolver in _SOURCES.items():
        if source.startswith(prefix):
            return resolver(source[len(prefix):])

    raise ConfigError(f"Unknown credential source format: {source}")
