"""Tests for InMemoryStore."""

import pytest

from tagcache import BatchAbortedError, InMemoryStore, StoreOperationError, TaggedCache


class TestInMemoryStoreValues:
    """Tests for plain values with expiry."""

    @pytest.mark.asyncio
    async def test_setex_and_get(self, store: InMemoryStore) -> None:
        """Test basic set and get operations."""
        await store.setex("key1", 60, b"value1")

        assert await store.get("key1") == b"value1"

    @pytest.mark.asyncio
    async def test_get_missing_key(self, store: InMemoryStore) -> None:
        """Test getting a missing key returns None."""
        assert await store.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_expiry(self, store: InMemoryStore, clock) -> None:
        """Test that values disappear once their time is up."""
        await store.setex("key1", 10, b"value1")

        clock.advance(9)
        assert await store.exists("key1") is True

        clock.advance(1)
        assert await store.exists("key1") is False
        assert await store.get("key1") is None

    @pytest.mark.asyncio
    async def test_ttl(self, store: InMemoryStore, clock) -> None:
        """Test remaining time to live."""
        await store.setex("key1", 100, b"value1")
        await store.sadd("set1", "a")

        clock.advance(40)

        assert await store.ttl("key1") == 60
        assert await store.ttl("set1") == -1
        assert await store.ttl("missing") == -2

    @pytest.mark.asyncio
    async def test_overwrite_resets_expiry(self, store: InMemoryStore, clock) -> None:
        """Test that setex replaces value and expiry."""
        await store.setex("key1", 10, b"old")
        clock.advance(5)
        await store.setex("key1", 10, b"new")
        clock.advance(8)

        assert await store.get("key1") == b"new"

    @pytest.mark.asyncio
    async def test_setex_rejects_non_positive_expiry(self, store: InMemoryStore) -> None:
        """Test that an expiry must be positive."""
        with pytest.raises(StoreOperationError, match="invalid expire time"):
            await store.setex("key1", 0, b"value")

    @pytest.mark.asyncio
    async def test_delete(self, store: InMemoryStore) -> None:
        """Test deleting keys returns how many existed."""
        await store.setex("key1", 60, b"value1")
        await store.sadd("set1", "a")

        assert await store.delete("key1", "set1", "missing") == 2
        assert await store.exists("key1") is False
        assert await store.exists("set1") is False


class TestInMemoryStoreSets:
    """Tests for set commands."""

    @pytest.mark.asyncio
    async def test_sadd_and_smembers(self, store: InMemoryStore) -> None:
        """Test adding members."""
        assert await store.sadd("s", "a", "b") == 2
        assert await store.sadd("s", "b", "c") == 1

        assert await store.smembers("s") == {"a", "b", "c"}

    @pytest.mark.asyncio
    async def test_smembers_missing_key(self, store: InMemoryStore) -> None:
        """Test that a missing set reads as empty."""
        assert await store.smembers("missing") == set()

    @pytest.mark.asyncio
    async def test_smembers_returns_copy(self, store: InMemoryStore) -> None:
        """Test that callers cannot mutate stored sets."""
        await store.sadd("s", "a")

        members = await store.smembers("s")
        members.add("b")

        assert await store.smembers("s") == {"a"}

    @pytest.mark.asyncio
    async def test_srem_removes_empty_set(self, store: InMemoryStore) -> None:
        """Test that an emptied set no longer exists."""
        await store.sadd("s", "a", "b")

        assert await store.srem("s", "a", "x") == 1
        assert await store.exists("s") is True

        assert await store.srem("s", "b") == 1
        assert await store.exists("s") is False

    @pytest.mark.asyncio
    async def test_srem_missing_key(self, store: InMemoryStore) -> None:
        assert await store.srem("missing", "a") == 0

    @pytest.mark.asyncio
    async def test_sunion(self, store: InMemoryStore) -> None:
        """Test the union of several sets."""
        await store.sadd("s1", "a", "b")
        await store.sadd("s2", "b", "c")

        assert await store.sunion("s1", "s2", "missing") == {"a", "b", "c"}

    @pytest.mark.asyncio
    async def test_sdiffstore_in_place(self, store: InMemoryStore) -> None:
        """Test storing a difference back into its first operand."""
        await store.sadd("s", "a", "b", "c")
        await store.sadd("remove", "b", "x")

        assert await store.sdiffstore("s", "s", "remove") == 2
        assert await store.smembers("s") == {"a", "c"}

    @pytest.mark.asyncio
    async def test_sdiffstore_empty_result_deletes(self, store: InMemoryStore) -> None:
        """Test that an empty difference leaves no key behind."""
        await store.sadd("s", "a")
        await store.sadd("remove", "a")

        assert await store.sdiffstore("s", "s", "remove") == 0
        assert await store.exists("s") is False

    @pytest.mark.asyncio
    async def test_wrong_type(self, store: InMemoryStore) -> None:
        """Test that set commands fail on plain values and vice versa."""
        await store.setex("value", 60, b"x")
        await store.sadd("set", "a")

        with pytest.raises(StoreOperationError, match="WRONGTYPE"):
            await store.sadd("value", "a")
        with pytest.raises(StoreOperationError, match="WRONGTYPE"):
            await store.get("set")


class TestInMemoryStoreKeyspace:
    """Tests for key listing and flushing."""

    @pytest.mark.asyncio
    async def test_keys_pattern(self, store: InMemoryStore, clock) -> None:
        """Test matching live keys by pattern."""
        await store.sadd("tags-of:a", "t")
        await store.sadd("tags-of:b:c", "t")
        await store.sadd("idents-of:t", "a")
        await store.setex("tags-of:expiring", 5, b"x")
        clock.advance(5)

        assert sorted(await store.keys("tags-of:*")) == ["tags-of:a", "tags-of:b:c"]

    @pytest.mark.asyncio
    async def test_flushdb(self, store: InMemoryStore) -> None:
        """Test clearing all keys."""
        await store.setex("key1", 60, b"value1")
        await store.sadd("s", "a")

        await store.flushdb()

        assert await store.keys("*") == []
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_len_ignores_expired(self, store: InMemoryStore, clock) -> None:
        await store.setex("key1", 5, b"v")
        await store.setex("key2", 50, b"v")
        clock.advance(10)

        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_maxsize_eviction(self) -> None:
        """Test least recently used eviction once maxsize is reached."""
        store = InMemoryStore(maxsize=2)

        await store.setex("key1", 60, b"1")
        await store.setex("key2", 60, b"2")
        await store.get("key1")
        await store.setex("key3", 60, b"3")

        assert await store.exists("key1") is True
        assert await store.exists("key2") is False
        assert await store.exists("key3") is True

    def test_maxsize_property(self) -> None:
        assert InMemoryStore().maxsize is None
        assert InMemoryStore(maxsize=500).maxsize == 500


class TestInMemoryBatch:
    """Tests for atomic batches."""

    @pytest.mark.asyncio
    async def test_queued_until_execute(self, store: InMemoryStore) -> None:
        """Test that writes are applied by execute only."""
        async with store.batch() as batch:
            batch.multi()
            batch.sadd("s", "a")
            batch.setex("k", 60, b"v")

            assert await store.exists("s") is False

            results = await batch.execute()

        assert results == [1, True]
        assert await store.smembers("s") == {"a"}
        assert await store.get("k") == b"v"

    @pytest.mark.asyncio
    async def test_without_multi(self, store: InMemoryStore) -> None:
        """Test that queueing a write starts the transaction implicitly."""
        await store.sadd("s", "a")

        async with store.batch() as batch:
            batch.delete("s")
            await batch.execute()

        assert await store.exists("s") is False

    @pytest.mark.asyncio
    async def test_failed_command_rolls_back(self, store: InMemoryStore) -> None:
        """Test that a failing command undoes the whole batch."""
        await store.sadd("s", "a")
        await store.setex("value", 60, b"x")

        async with store.batch() as batch:
            batch.multi()
            batch.srem("s", "a")
            batch.sadd("new", "b")
            batch.sadd("value", "c")
            with pytest.raises(StoreOperationError):
                await batch.execute()

        assert await store.smembers("s") == {"a"}
        assert await store.exists("new") is False
        assert await store.get("value") == b"x"

    @pytest.mark.asyncio
    async def test_watch_detects_modification(self, store: InMemoryStore) -> None:
        """Test that a modified watched key aborts the batch."""
        await store.sadd("s", "a")

        async with store.batch() as batch:
            await batch.watch("s")
            assert await batch.smembers("s") == {"a"}

            # Another client writes in between
            await store.sadd("s", "b")

            batch.multi()
            batch.sadd("other", "x")
            with pytest.raises(BatchAbortedError):
                await batch.execute()

        assert await store.exists("other") is False

    @pytest.mark.asyncio
    async def test_watch_detects_deletion_and_recreation(self, store: InMemoryStore) -> None:
        await store.sadd("s", "a")

        async with store.batch() as batch:
            await batch.watch("s")
            await store.delete("s")
            await store.sadd("s", "a")

            batch.multi()
            batch.sadd("other", "x")
            with pytest.raises(BatchAbortedError):
                await batch.execute()

    @pytest.mark.asyncio
    async def test_watch_detects_flush(self, store: InMemoryStore) -> None:
        async with store.batch() as batch:
            await batch.watch("missing")
            await store.flushdb()

            batch.multi()
            batch.sadd("other", "x")
            with pytest.raises(BatchAbortedError):
                await batch.execute()

    @pytest.mark.asyncio
    async def test_unmodified_watch_executes(self, store: InMemoryStore) -> None:
        """Test that writes to unrelated keys do not abort."""
        await store.sadd("s", "a")

        async with store.batch() as batch:
            await batch.watch("s")
            await store.sadd("unrelated", "z")

            batch.multi()
            batch.sadd("s", "b")
            await batch.execute()

        assert await store.smembers("s") == {"a", "b"}

    @pytest.mark.asyncio
    async def test_reads_not_allowed_inside_multi(self, store: InMemoryStore) -> None:
        async with store.batch() as batch:
            batch.multi()
            with pytest.raises(StoreOperationError):
                await batch.exists("s")
            with pytest.raises(StoreOperationError):
                await batch.watch("s")

    @pytest.mark.asyncio
    async def test_exit_discards_queued_commands(self, store: InMemoryStore) -> None:
        async with store.batch() as batch:
            batch.sadd("s", "a")

        assert await store.exists("s") is False

    @pytest.mark.asyncio
    async def test_expiry_of_watched_key_aborts(self, store: InMemoryStore, clock) -> None:
        """Test that a watched key expiring before execute aborts the batch."""
        await store.setex("key1", 10, b"v")

        async with store.batch() as batch:
            await batch.watch("key1")
            assert await batch.exists("key1") is True
            clock.advance(10)

            batch.multi()
            batch.delete("key1")
            with pytest.raises(BatchAbortedError):
                await batch.execute()

    @pytest.mark.asyncio
    async def test_already_expired_key_counts_as_absent(self, store: InMemoryStore, clock) -> None:
        await store.setex("key1", 10, b"v")
        clock.advance(10)

        async with store.batch() as batch:
            await batch.watch("key1")
            assert await batch.exists("key1") is False

            batch.multi()
            batch.setex("key1", 10, b"new")
            await batch.execute()

        assert await store.get("key1") == b"new"

    @pytest.mark.asyncio
    async def test_eviction_of_watched_key_aborts(self) -> None:
        """Test that an LRU eviction counts as a modification."""
        store = InMemoryStore(maxsize=2)
        await store.setex("key1", 60, b"1")

        async with store.batch() as batch:
            await batch.watch("key1")
            await store.setex("key2", 60, b"2")
            await store.setex("key3", 60, b"3")
            assert await store.exists("key1") is False

            batch.multi()
            batch.sadd("other", "x")
            with pytest.raises(BatchAbortedError):
                await batch.execute()

    @pytest.mark.asyncio
    async def test_two_batches_watch_same_key(self, store: InMemoryStore) -> None:
        """Test that closing one watcher leaves the other one armed."""
        async with store.batch() as first:
            await first.watch("s")
            async with store.batch() as second:
                await second.watch("s")
            await store.sadd("s", "a")

            first.multi()
            first.sadd("other", "x")
            with pytest.raises(BatchAbortedError):
                await first.execute()


class TestInMemoryStoreBookkeeping:
    """Tests that watch bookkeeping does not outlive its batches."""

    @pytest.mark.asyncio
    async def test_plain_writes_keep_no_versions(self, store: InMemoryStore) -> None:
        for n in range(100):
            await store.setex(f"key{n}", 60, b"v")
            await store.sadd(f"set{n}", "a")
            await store.delete(f"key{n}", f"set{n}")

        assert store._versions == {}
        assert store._watchers == {}

    @pytest.mark.asyncio
    async def test_released_after_batches(self, store: InMemoryStore) -> None:
        async with store.batch() as batch:
            await batch.watch("a", "b")
            assert set(store._versions) == {"a", "b"}
            batch.multi()
            batch.sadd("a", "x")
            await batch.execute()

        async with store.batch() as batch:
            await batch.watch("a")
            await store.sadd("a", "y")
            batch.multi()
            batch.delete("a")
            with pytest.raises(BatchAbortedError):
                await batch.execute()

        assert store._versions == {}
        assert store._watchers == {}

    @pytest.mark.asyncio
    async def test_bounded_across_cache_cycles(self, store: InMemoryStore) -> None:
        """Test that repeated tagging and invalidation leave nothing behind."""
        cache = TaggedCache(store)

        for n in range(200):
            await cache.set(f"page-{n}", b"x", {"pages", f"user:{n}"})
            await cache.flush_by_tag("pages")
            await cache.set(f"item-{n}", b"y", {"items"})
            await cache.remove(f"item-{n}")

        assert await store.keys("*") == []
        assert store._versions == {}
        assert store._watchers == {}
