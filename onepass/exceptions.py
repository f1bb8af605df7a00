"""onepass error taxonomy.

Every fatal condition is one of these types; the command line maps them
to a message and a non-zero exit status.
"""


class OnePassError(Exception):
    """Base class for all onepass errors."""


class ConfigError(OnePassError):
    """A required setting or secret material is missing or invalid."""


class AuthError(OnePassError):
    """Sign-in was rejected by the vault."""


class FetchError(OnePassError):
    """Index, item or one-time-code retrieval failed."""


class StoreError(OnePassError):
    """Seal/unseal or I/O failure on the local cache."""


class SealError(StoreError):
    """The encryption service refused to seal or unseal a payload."""


class NotFoundError(OnePassError):
    """No index entry matches the requested title."""


class UnsupportedTemplateError(NotFoundError):
    """The item exists but its template has no field extractor."""


class ExtractionError(OnePassError):
    """The requested field is absent on an otherwise valid item."""


class ClipboardError(OnePassError):
    """No usable clipboard command, or the command failed."""
