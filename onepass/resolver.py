"""
Resolver — title in, secret out.

title -> index entry -> (uuid, template) -> cached or fetched item
      -> template's field extractor -> value

One-time codes skip the item cache and always come from the vault.
"""
import logging
from typing import Any

from .exceptions import ExtractionError, NotFoundError
from .fields import get_extractor
from .vault.cache import CacheRepository, IndexEntry
from .vault.session import SessionManager

logger = logging.getLogger("onepass.resolver")


class Resolver:
    def __init__(self, cache: CacheRepository, session: SessionManager, remote: Any):
        self._cache = cache
        self._session = session
        self._remote = remote

    def find_entry(self, title: str, force_refresh: bool = False) -> IndexEntry:
        """First index entry whose title is exactly ``title``.

        Raises:
            NotFoundError: If no entry has that title.
        """
        matches = [
            e for e in self._cache.get_index(force_refresh) if e.title == title
        ]
        if not matches:
            raise NotFoundError(f"no matching item for {title!r}")
        if len(matches) > 1:
            logger.warning(
                "%d items are titled %r, using the first (%s)",
                len(matches), title, matches[0].uuid,
            )
        return matches[0]

    def resolve_field(self, title: str, field: str = "password", force_refresh: bool = False) -> str:
        """Value of ``field`` on the item titled ``title``.

        An item lacking the field yields an empty string.

        Raises:
            NotFoundError: If the title is unknown or its template unsupported.
        """
        entry = self.find_entry(title, force_refresh)
        extractor = get_extractor(entry.template_id)
        item = self._cache.get_item(entry.uuid, force_refresh)
        try:
            return extractor.extract(item.payload, field)
        except ExtractionError as err:
            logger.info("%s: %s", title, err)
            return ""

    def resolve_totp(self, title: str, force_refresh: bool = False) -> str:
        """Current one-time code for ``title``, never cached."""
        entry = self.find_entry(title, force_refresh)
        token = self._session.ensure_session()
        return self._remote.get_totp(entry.uuid, token)

    def list_titles(self, force_refresh: bool = False) -> list[str]:
        """All titles, case-insensitively sorted."""
        titles = [e.title for e in self._cache.get_index(force_refresh)]
        return sorted(titles, key=str.lower)
