"""onepass — encrypted local cache in front of the 1Password CLI."""
from .version import __version__
from .conf import Config, load_config
from .exceptions import (
    OnePassError,
    ConfigError,
    AuthError,
    FetchError,
    StoreError,
    NotFoundError,
    ExtractionError,
)

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "OnePassError",
    "ConfigError",
    "AuthError",
    "FetchError",
    "StoreError",
    "NotFoundError",
    "ExtractionError",
]
