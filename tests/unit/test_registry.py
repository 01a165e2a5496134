"""Unit tests for the correlation registry."""

import threading

from squeeze_client.protocol.query import ListQuery
from squeeze_client.registry import CorrelationRegistry


def noop(total, start, parameters, items):
    pass


class TestRegister:
    """Test id allocation."""

    def test_ids_start_at_one_and_increase(self):
        registry = CorrelationRegistry()

        assert registry.register(noop) == 1
        assert registry.register(noop) == 2
        assert registry.pending_ids() == [1, 2]

    def test_custom_first_id(self):
        registry = CorrelationRegistry(first_id=100)

        assert registry.register(noop) == 100

    def test_concurrent_registration_gives_unique_ids(self):
        registry = CorrelationRegistry()
        ids: list[int] = []
        lock = threading.Lock()

        def worker():
            for _ in range(200):
                cid = registry.register(noop)
                with lock:
                    ids.append(cid)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ids) == 1600
        assert len(set(ids)) == 1600
        assert len(registry) == 1600


class TestComplete:
    """Test retiring entries."""

    def test_complete_returns_entry_once(self):
        registry = CorrelationRegistry()
        cid = registry.register(noop, owner="view")

        pending = registry.complete(cid)

        assert pending is not None
        assert pending.callback is noop
        assert pending.owner == "view"
        assert registry.complete(cid) is None
        assert cid not in registry

    def test_complete_unknown_or_none(self):
        registry = CorrelationRegistry()

        assert registry.complete(42) is None
        assert registry.complete(None) is None

    def test_get_does_not_remove(self):
        registry = CorrelationRegistry()
        cid = registry.register(noop)

        assert registry.get(cid) is registry.get(cid)
        assert cid in registry

    def test_update_query(self):
        registry = CorrelationRegistry()
        cid = registry.register(noop)
        query = ListQuery("albums", 0, 1, cid)

        assert registry.update_query(cid, query)
        assert registry.get(cid).query is query

        registry.cancel(cid)
        assert not registry.update_query(cid, query)


class TestCancelAll:
    """Test dropping all entries of one owner."""

    def test_only_matching_owner(self):
        registry = CorrelationRegistry()
        a1 = registry.register(noop, owner="a")
        b1 = registry.register(noop, owner="b")
        a2 = registry.register(noop, owner="a")

        assert registry.cancel_all("a") == 2

        assert a1 not in registry
        assert a2 not in registry
        assert b1 in registry

    def test_no_match(self):
        registry = CorrelationRegistry()
        registry.register(noop, owner="a")

        assert registry.cancel_all("z") == 0
        assert len(registry) == 1
