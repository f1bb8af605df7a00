"""
onepass Configuration — validated, immutable settings for one run.

Settings are read from a shell-style file (``~/.onepass/config``)::

    self_key="0xDEADBEEF"
    email="me@example.com"
    subdomain="my"

and then overridden by ``ONEPASS_*`` environment variables.

Security Note:
    The configuration holds identities and paths only, never secret
    material. Secrets live in sealed blobs under ``home``.
"""
import os
import shlex
import logging
from pathlib import Path
from typing import Optional
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError

logger = logging.getLogger("onepass.conf")

DEFAULT_HOME = Path("~/.onepass")
SESSION_TTL = 29 * 60
CLEAR_SECONDS = 30

SEALERS = ("gpg", "keyfile")

_ENV_PREFIX = "ONEPASS_"

# file/env name -> Config field
_SETTINGS = {
    "self_key": "self_key",
    "email": "email",
    "subdomain": "subdomain",
    "home": "home",
    "sealer": "sealer",
    "keyfile": "keyfile",
    "op": "op_path",
    "gpg": "gpg_path",
    "gpg_agent": "gpg_agent_path",
    "clear_seconds": "clear_seconds",
}


class Config(BaseModel):
    """Validated onepass configuration."""

    self_key: str
    email: str
    subdomain: str
    home: Path = Field(default=DEFAULT_HOME, validate_default=True)
    sealer: str = Field(default="gpg")
    keyfile: Optional[Path] = None
    op_path: str = Field(default="op")
    gpg_path: str = Field(default="gpg")
    gpg_agent_path: Optional[str] = None
    clear_seconds: int = Field(default=CLEAR_SECONDS, ge=1)
    session_ttl: int = Field(default=SESSION_TTL, ge=60)

    model_config = {"frozen": True}

    @field_validator("self_key", "email", "subdomain")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Identity settings must be present and non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"not an email address: {v!r}")
        return v

    @field_validator("sealer")
    @classmethod
    def validate_sealer(cls, v: str) -> str:
        """Validate sealer backend is supported."""
        v = v.lower()
        if v not in SEALERS:
            raise ValueError(f"Unsupported sealer: {v}")
        return v

    @field_validator("home", "keyfile")
    @classmethod
    def expand_path(cls, v: Optional[Path]) -> Optional[Path]:
        if v is None:
            return v
        return Path(os.path.expanduser(str(v)))

    # --- Derived paths ---

    @property
    def master_secret_path(self) -> Path:
        return self.home / "_master.sealed"

    @property
    def secret_key_path(self) -> Path:
        return self.home / "_secret_key.sealed"

    @property
    def key_path(self) -> Path:
        return self.keyfile or self.home / "keys"

    @property
    def cache_dir(self) -> Path:
        return self.home / "cache"

    @property
    def session_path(self) -> Path:
        return self.cache_dir / "_session.sealed"

    @property
    def index_path(self) -> Path:
        return self.cache_dir / "_index.sealed"

    @property
    def index_backup_path(self) -> Path:
        return self.cache_dir / "_index.sealed.bak"

    @property
    def items_dir(self) -> Path:
        return self.cache_dir / "items"

    @property
    def timer_state_path(self) -> Path:
        return self.cache_dir / "_clear_timer.json"


def read_config_file(path: Path) -> dict[str, str]:
    """Parse a shell-style ``name="value"`` settings file.

    Blank lines and ``#`` comments are skipped. Unknown names are ignored.

    Raises:
        ConfigError: If a line cannot be parsed.
    """
    settings: dict[str, str] = {}
    with open(path, encoding="utf-8") as fp:
        for lineno, line in enumerate(fp, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            name, sep, raw = line.partition("=")
            name = name.strip()
            if not sep or not name:
                raise ConfigError(f"{path}:{lineno}: expected name=value")
            try:
                parts = shlex.split(raw, comments=True)
            except ValueError as err:
                raise ConfigError(f"{path}:{lineno}: {err}") from err
            if name not in _SETTINGS:
                logger.debug("Ignoring unknown setting %r in %s", name, path)
                continue
            settings[_SETTINGS[name]] = parts[0] if parts else ""
    return settings


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """Build the run's Config from the settings file and environment.

    Args:
        path: Settings file; defaults to ``<home>/config``. A missing
            file is not an error, settings may come from the environment.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated, frozen Config.

    Raises:
        ConfigError: If a required setting is missing or invalid.
    """
    if environ is None:
        environ = os.environ
    home = environ.get(f"{_ENV_PREFIX}HOME") or str(DEFAULT_HOME)
    if path is None:
        path = Path(os.path.expanduser(home)) / "config"

    values: dict[str, str] = {}
    if path.is_file():
        values.update(read_config_file(path))
        logger.debug("Loaded settings from %s", path)
    for name, attr in _SETTINGS.items():
        value = environ.get(f"{_ENV_PREFIX}{name.upper()}")
        if value is not None:
            values[attr] = value

    try:
        return Config(**values)
    except ValidationError as err:
        problems = ", ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}"
            for e in err.errors()
        )
        raise ConfigError(
            f"invalid configuration ({problems}); "
            f"set it in {path} or ONEPASS_* variables"
        ) from err
