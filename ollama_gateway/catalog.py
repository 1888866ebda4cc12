"""
Model catalog: the cached list of upstream model identifiers and alias lookup.
"""
import asyncio
import logging
from typing import Optional

from .provider import UpstreamProvider

logger = logging.getLogger(__name__)


class ModelCatalog:
    """
    Owns the catalog snapshot for one upstream provider.

    The snapshot is an immutable tuple replaced by a single reference
    assignment, so readers always see either the old or the new catalog in
    full. A refresh in progress does not block resolves against the
    previous snapshot.
    """

    def __init__(self, provider: UpstreamProvider):
        self._provider = provider
        self._snapshot: tuple[str, ...] = ()
        self._load_lock: Optional[asyncio.Lock] = None

    @property
    def snapshot(self) -> tuple[str, ...]:
        """The last fetched identifiers, in upstream order."""
        return self._snapshot

    async def fetch(self) -> tuple[str, ...]:
        """
        Fetch the identifiers from upstream and replace the snapshot.

        Raises:
            UpstreamUnavailable: the backend call failed; the previous
                snapshot is left in place.
        """
        identifiers = tuple(await self._provider.list_models())
        self._snapshot = identifiers
        logger.debug("Catalog refreshed: %d models", len(identifiers))
        return identifiers

    async def ensure_loaded(self) -> tuple[str, ...]:
        """Return the snapshot, fetching it first if none has been loaded."""
        snapshot = self._snapshot
        if snapshot:
            return snapshot

        if self._load_lock is None:
            self._load_lock = asyncio.Lock()
        async with self._load_lock:
            # Another task may have loaded it while we waited
            if not self._snapshot:
                await self.fetch()
        return self._snapshot

    async def resolve(self, alias: str) -> str:
        """
        Map a client alias to an upstream identifier.

        Exact match first, then the first identifier (in snapshot order)
        ending with the alias. An alias matching nothing is returned
        unchanged so identifiers missing from the snapshot still work.

        Raises:
            UpstreamUnavailable: the snapshot was empty and loading it failed.
        """
        snapshot = await self.ensure_loaded()

        if alias in snapshot:
            return alias

        # First match wins when several identifiers share the suffix
        for identifier in snapshot:
            if identifier.endswith(alias):
                return identifier

        return alias
