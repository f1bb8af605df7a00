"""
Cache Repository — sealed local mirror of the vault index and items.

Layout under ``cache_dir``::

    _index.sealed        list of {uuid, title, template_id}
    _index.sealed.bak    previous index generation (manual recovery only)
    items/<uuid>.sealed  raw item documents

Items never expire; only an explicit refresh re-fetches them.
"""
import shutil
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .session import SessionManager
from .store import EncryptedStore
from ..conf import Config
from ..exceptions import StoreError
from ..remote import validate_uuid

logger = logging.getLogger("onepass.cache")


class IndexEntry(BaseModel):
    """One vault item as listed in the index."""

    uuid: str
    title: str
    template_id: str = Field(default="")

    @classmethod
    def from_overview(cls, overview: dict[str, Any]) -> "IndexEntry":
        """Build an entry from one element of the remote item list."""
        details = overview.get("overview")
        if not isinstance(details, dict):
            details = {}
        return cls(
            uuid=str(overview.get("uuid") or ""),
            title=str(details.get("title") or ""),
            template_id=str(overview.get("templateUuid") or ""),
        )


class Item(BaseModel):
    """A full item document keyed by uuid."""

    uuid: str
    template_id: str = Field(default="")
    payload: dict[str, Any]

    @classmethod
    def from_document(cls, uuid: str, document: dict[str, Any]) -> "Item":
        return cls(
            uuid=uuid,
            template_id=document.get("templateUuid") or "",
            payload=document,
        )


class CacheRepository:
    """Lazily populated, sealed cache of the index and items."""

    def __init__(
        self,
        config: Config,
        store: EncryptedStore,
        session: SessionManager,
        remote: Any,
    ):
        self._config = config
        self._store = store
        self._session = session
        self._remote = remote

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def _read_index(self) -> list[IndexEntry]:
        raw = self._store.read_value(self._config.index_path)
        if not isinstance(raw, list):
            raise StoreError(f"{self._config.index_path} is not an index")
        try:
            return [IndexEntry.model_validate(entry) for entry in raw]
        except ValidationError as err:
            raise StoreError(f"{self._config.index_path} holds a malformed index") from err

    def refresh_index(self) -> list[IndexEntry]:
        """Fetch the index from the vault, replacing the cached one.

        The previous index file is kept as ``_index.sealed.bak``.
        """
        token = self._session.ensure_session()
        overviews = self._remote.list_items(token)
        entries = [
            IndexEntry.from_overview(o) for o in overviews if isinstance(o, dict)
        ]
        path = self._config.index_path
        if path.exists():
            try:
                shutil.copy2(path, self._config.index_backup_path)
            except OSError as err:
                raise StoreError(f"cannot back up {path}: {err}") from err
            logger.debug("Previous index backed up to %s", self._config.index_backup_path)
        self._store.write_value(path, [e.model_dump() for e in entries])
        logger.info("Index refreshed: %d item(s)", len(entries))
        return entries

    def get_index(self, force_refresh: bool = False) -> list[IndexEntry]:
        """Return the index, fetching it if forced, absent or unreadable."""
        if force_refresh or not self._config.index_path.exists():
            return self.refresh_index()
        try:
            return self._read_index()
        except StoreError as err:
            logger.warning("Cached index unreadable (%s), fetching it again", err)
            return self.refresh_index()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def item_path(self, uuid: str) -> Path:
        return self._config.items_dir / f"{validate_uuid(uuid)}.sealed"

    def get_item(self, uuid: str, force_refresh: bool = False) -> Item:
        """Return the item ``uuid``, fetching it if forced or not cached."""
        path = self.item_path(uuid)
        if not force_refresh and path.exists():
            document = self._store.read_value(path)
            if not isinstance(document, dict):
                raise StoreError(f"{path} does not hold an item")
            logger.debug("Item %s read from cache", uuid)
            return Item.from_document(uuid, document)

        token = self._session.ensure_session()
        document = self._remote.get_item(uuid, token)
        self._store.write_value(path, document)
        logger.debug("Item %s fetched and cached", uuid)
        return Item.from_document(uuid, document)
