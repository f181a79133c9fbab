"""Backend factory and configuration management."""

import copy
import os
import tomllib
from pathlib import Path
from typing import Any

import tomli_w

from dotsecrets.core.backend.base import StorageBackend
from dotsecrets.core.credentials import PassphraseProvider
from dotsecrets.core.registry import Registry
from dotsecrets.errors import ConfigError

CONFIG_DIR = Path("~/.config/dotsecrets").expanduser()
CONFIG_FILE = CONFIG_DIR / "config.toml"

BACKEND_TYPES = ("kv", "notes", "local")

DEFAULT_CONFIG: dict[str, Any] = {
    "backend": "kv",
    "home": "~",
    "registry_file": "~/.config/dotsecrets/tracked",
    "kv": {
        "url": "",
        "token": "",
    },
    "notes": {
        "label_prefix": "dotsecrets/",
        "max_chunk_size": 8000,
        "max_chunks": 100,
    },
    "local": {
        "data_dir": "~/.local/share/dotsecrets",
    },
}

# Environment variable -> (section, key); section None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "DOTSECRETS_BACKEND": (None, "backend"),
    "SECRETS_URL": ("kv", "url"),
    "SECRETS_TOKEN": ("kv", "token"),
}


def get_config(include_env: bool = True) -> dict[str, Any]:
    """Load configuration from the config file merged over defaults.

    Args:
        include_env: Apply environment overrides (SECRETS_URL, ...). Callers
            that write the config back pass False so the environment is
            never persisted.
    """
    merged = copy.deepcopy(DEFAULT_CONFIG)

    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, "rb") as f:
                config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {CONFIG_FILE}: {e}") from e

        for key, value in config.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value

    if include_env:
        for env_var, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if not value:
                continue
            if section is None:
                merged[key] = value
            else:
                merged.setdefault(section, {})[key] = value

    return merged


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(config, f)

    os.chmod(CONFIG_FILE, 0o600)


def get_home(config: dict[str, Any] | None = None) -> Path:
    config = config or get_config()
    return Path(config.get("home", "~")).expanduser()


def get_registry(config: dict[str, Any] | None = None) -> Registry:
    config = config or get_config()
    return Registry(config["registry_file"], home=get_home(config))


def get_backend(
    backend_type: str | None = None,
    credentials: PassphraseProvider | None = None,
) -> StorageBackend:
    """Get the configured storage backend.

    Args:
        backend_type: Override backend type. If None, uses config file.
        credentials: Passphrase provider, used as the kv bearer token when
            no dedicated token is configured.

    Returns:
        StorageBackend instance.

    Raises:
        ConfigError: If backend type is unknown or misconfigured.
    """
    from dotsecrets.core.backend.kv import KVBackend
    from dotsecrets.core.backend.local import LocalBackend
    from dotsecrets.core.backend.notes import NoteBackend

    config = get_config()

    if backend_type is None:
        backend_type = config.get("backend", "kv")

    if backend_type == "kv":
        kv_config = config.get("kv", {})
        token = kv_config.get("token", "")
        if not token:
            if credentials is None:
                raise ConfigError(
                    "No kv token configured. Set SECRETS_TOKEN or SECRETS_PASSPHRASE"
                )
            token = credentials.get_passphrase()
        return KVBackend(url=kv_config.get("url", ""), token=token)

    elif backend_type == "notes":
        notes_config = config.get("notes", {})
        return NoteBackend(
            label_prefix=notes_config.get("label_prefix", "dotsecrets/"),
            max_chunk_size=int(notes_config.get("max_chunk_size", 8000)),
            max_chunks=int(notes_config.get("max_chunks", 100)),
        )

    elif backend_type == "local":
        local_config = config.get("local", {})
        return LocalBackend(data_dir=local_config.get("data_dir"))

    else:
        raise ConfigError(
            f"Unknown backend type: {backend_type}. "
            f"Supported backends: {', '.join(BACKEND_TYPES)}"
        )
