"""Vault — sealed local storage for the session token, index and items.

Security Note (Threat Model):
    Secrets are decrypted in process memory while a request is served.
    Nothing is written to disk unsealed; a compromise of the sealing key
    (or an unlocked gpg-agent) exposes the whole cache. This is an
    accepted limitation.
"""

from .crypto import GpgSealer, KeyfileSealer, Sealer, generate_key, get_sealer
from .store import EncryptedStore
from .session import Session, SessionManager
from .cache import CacheRepository, IndexEntry, Item
from .reseal import reseal_cache

__all__ = [
    "Sealer",
    "GpgSealer",
    "KeyfileSealer",
    "generate_key",
    "get_sealer",
    "EncryptedStore",
    "Session",
    "SessionManager",
    "CacheRepository",
    "IndexEntry",
    "Item",
    "reseal_cache",
]
