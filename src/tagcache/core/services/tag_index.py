"""Tag index maintenance.

Every entry's tags are recorded twice: ``tags-of:<identifier>`` lists the
tags of one entry and ``idents-of:<tag>`` lists the entries carrying one tag.
The store knows nothing about this relation, so this module is the only
place allowed to write either side. Each change is issued as one atomic
batch, which keeps both sides mirror-consistent for every other client.

Read-then-write sequences watch the keys they read. If another client
writes one of them before the batch executes, the store discards the batch
and the sequence starts over from a fresh read.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from tagcache.core.exceptions import BatchAbortedError
from tagcache.core.interfaces.key_namer import IKeyNamer
from tagcache.core.interfaces.store import IBatch, IStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TagIndexMaintainer:
    """Keeps the identifier→tags and tag→identifiers sets in sync."""

    def __init__(
        self,
        store: IStore,
        key_namer: IKeyNamer,
        max_attempts: int = 10,
    ) -> None:
        """Initialize the maintainer.

        Args:
            store: The store holding the index sets.
            key_namer: Maps identifiers and tags to keys.
            max_attempts: How often a read-then-write update is tried when
                its watched keys keep changing underneath it.
        """
        self._store = store
        self._keys = key_namer
        self._max_attempts = max_attempts

    async def reconcile_tags(
        self,
        identifier: str,
        tags: Iterable[str],
    ) -> tuple[frozenset[str], frozenset[str]]:
        """Make the entry's tag set exactly equal to tags.

        Only the difference to the current tag set is written. No batch is
        issued when there is no difference.

        Args:
            identifier: The entry identifier.
            tags: The complete new tag set.

        Returns:
            The tags that were added and the tags that were removed.
        """
        new_tags = frozenset(tags)
        tags_key = self._keys.tags_key(identifier)

        async def update(batch: IBatch) -> tuple[frozenset[str], frozenset[str]]:
            await batch.watch(tags_key)
            current = await batch.smembers(tags_key)
            to_add = new_tags.difference(current)
            to_remove = frozenset(current).difference(new_tags)
            if not to_add and not to_remove:
                return frozenset(), frozenset()

            batch.multi()
            for tag in sorted(to_remove):
                batch.srem(self._keys.tag_identifiers_key(tag), identifier)
            if to_remove:
                batch.srem(tags_key, *sorted(to_remove))
            for tag in sorted(to_add):
                batch.sadd(self._keys.tag_identifiers_key(tag), identifier)
            if to_add:
                batch.sadd(tags_key, *sorted(to_add))
            await batch.execute()

            logger.debug(
                "Retagged %r: added %s, removed %s",
                identifier,
                sorted(to_add),
                sorted(to_remove),
            )
            return to_add, to_remove

        return await self._transaction(update)

    async def remove_entry(self, identifier: str) -> bool:
        """Delete an entry together with its index relations.

        A lingering tag set of an entry whose data is already gone is left
        alone here; garbage collection takes care of it.

        Args:
            identifier: The entry identifier.

        Returns:
            True if the entry existed and was removed, False otherwise.
        """
        data_key = self._keys.data_key(identifier)
        tags_key = self._keys.tags_key(identifier)

        async def remove(batch: IBatch) -> bool:
            await batch.watch(data_key, tags_key)
            if not await batch.exists(data_key):
                return False
            tags = await batch.smembers(tags_key)

            batch.multi()
            for tag in sorted(tags):
                batch.srem(self._keys.tag_identifiers_key(tag), identifier)
            batch.delete(data_key, tags_key)
            await batch.execute()
            return True

        return await self._transaction(remove)

    async def bulk_remove(
        self,
        identifiers: Iterable[str],
        tags_also_to_delete: Iterable[str] = (),
    ) -> int:
        """Delete many entries and drop whole tags in one batch.

        Instead of removing every (identifier, tag) pair on its own, the
        identifiers are written to a temporary set once and each affected
        tag's identifier set is rewritten with a single SDIFFSTORE against
        it. The batch size grows with the number of distinct tags touched,
        not with the number of entries.

        Scales O(1) with number of cache entries
        Scales O(n^2) with number of tags

        Entries that joined one of ``tags_also_to_delete`` after the caller
        looked them up are removed as well, so no tag set keeps pointing at
        a dropped tag.

        Args:
            identifiers: Entries to delete.
            tags_also_to_delete: Tags whose identifier sets are deleted
                outright.

        Returns:
            Number of entries removed.
        """
        requested = set(identifiers)
        deleted_tags = frozenset(tags_also_to_delete)
        membership_keys = [self._keys.tag_identifiers_key(tag) for tag in sorted(deleted_tags)]

        async def remove(batch: IBatch) -> int:
            doomed = set(requested)
            if membership_keys:
                await batch.watch(*membership_keys)
                doomed |= await batch.sunion(*membership_keys)
            if not doomed:
                return 0

            ordered = sorted(doomed)
            data_keys = [self._keys.data_key(identifier) for identifier in ordered]
            tags_keys = [self._keys.tags_key(identifier) for identifier in ordered]
            await batch.watch(*tags_keys)
            # Every tag set that could still reference one of the entries
            candidates = await batch.sunion(*tags_keys)
            candidates -= deleted_tags

            temp_key = self._keys.temporary_key()
            batch.multi()
            batch.sadd(temp_key, *ordered)
            for tag in sorted(candidates):
                key = self._keys.tag_identifiers_key(tag)
                batch.sdiffstore(key, key, temp_key)
            batch.delete(*data_keys, *tags_keys, *membership_keys, temp_key)
            await batch.execute()

            logger.debug(
                "Bulk removed %d entries, dropped tags %s, rewrote %d tag sets",
                len(ordered),
                sorted(deleted_tags),
                len(candidates),
            )
            return len(ordered)

        return await self._transaction(remove)

    async def purge_stale(self, identifier: str) -> bool:
        """Drop the index relations of an entry whose data is gone.

        Data keys expire inside the store without touching the index, so
        their tag sets outlive them. Nothing is retried: if the entry is
        written again while the repair is prepared, the repair is skipped.

        Args:
            identifier: The entry identifier.

        Returns:
            True if stale relations were removed.
        """
        data_key = self._keys.data_key(identifier)
        tags_key = self._keys.tags_key(identifier)

        async with self._store.batch() as batch:
            await batch.watch(data_key, tags_key)
            if await batch.exists(data_key):
                return False
            tags = await batch.smembers(tags_key)
            if not tags:
                return False

            batch.multi()
            batch.delete(tags_key)
            for tag in sorted(tags):
                batch.srem(self._keys.tag_identifiers_key(tag), identifier)
            try:
                await batch.execute()
            except BatchAbortedError:
                logger.info("Entry %r changed during garbage collection, skipped", identifier)
                return False

        logger.debug("Purged stale tags %s of %r", sorted(tags), identifier)
        return True

    async def _transaction(self, operation: Callable[[IBatch], Awaitable[T]]) -> T:
        """Run operation in a fresh batch until its watched keys hold still.

        Raises:
            BatchAbortedError: If every attempt was aborted.
        """
        attempt = 1
        while True:
            async with self._store.batch() as batch:
                try:
                    return await operation(batch)
                except BatchAbortedError:
                    if attempt >= self._max_attempts:
                        logger.warning(
                            "Index update abandoned after %d attempts", attempt
                        )
                        raise
            logger.warning(
                "Watched index keys changed, retrying (attempt %d of %d)",
                attempt + 1,
                self._max_attempts,
            )
            attempt += 1
