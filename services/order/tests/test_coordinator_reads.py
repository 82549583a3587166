"""
Tests for the cache-aside read paths of OrderCoordinator.
"""
from unittest.mock import MagicMock

from ordersaga.core.errors import ErrorKind
from ordersaga.services.cache import MemoryCache, order_key, user_orders_key
from ordersaga.store.order_store import OrderStoreError

class CountingStore:
    """Wraps a store and counts reads by id."""

    def __init__(self, inner):
        self.inner = inner
        self.by_id_reads = 0
        self.by_user_reads = 0

    def create(self, order):
        return self.inner.create(order)

    def get_by_id(self, order_id):
        self.by_id_reads += 1
        return self.inner.get_by_id(order_id)

    def get_by_user(self, user_id):
        self.by_user_reads += 1
        return self.inner.get_by_user(user_id)

    def get_all(self):
        return self.inner.get_all()

    def update(self, order):
        return self.inner.update(order)

class TestFindById:

    def test_hit_and_miss_return_same_order(self, make_coordinator, store, add_product, tasks):
        counting = CountingStore(store)
        cache = MemoryCache()
        coordinator = make_coordinator(store=counting, cache=cache)
        add_product(1, "Keyboard", "50", 10)
        created = coordinator.create_order("user-1", [(1, 2)]).value
        tasks.wait(timeout=5)
        cache.invalidate(order_key(created.id))

        miss = coordinator.find_by_id(created.id).value
        hit = coordinator.find_by_id(created.id).value

        assert counting.by_id_reads == 1
        assert miss == hit
        assert hit.total == created.total

    def test_not_found(self, coordinator):
        result = coordinator.find_by_id("nope")

        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_cache_error_falls_through(self, make_coordinator, store, add_product, tasks):
        broken = MagicMock()
        broken.get.side_effect = ConnectionError("redis down")
        broken.set.side_effect = ConnectionError("redis down")
        coordinator = make_coordinator(cache=broken)
        add_product(1, "Keyboard", "50", 10)
        created = coordinator.create_order("user-1", [(1, 1)]).value
        tasks.wait(timeout=5)

        result = coordinator.find_by_id(created.id)

        assert result.value.id == created.id

    def test_corrupt_entry_is_a_miss(self, coordinator, cache, add_product, tasks):
        add_product(1, "Keyboard", "50", 10)
        created = coordinator.create_order("user-1", [(1, 1)]).value
        tasks.wait(timeout=5)
        cache.set(order_key(created.id), "{not json", 300)

        result = coordinator.find_by_id(created.id)

        assert result.value.id == created.id
        assert cache.get(order_key(created.id)) != "{not json"

    def test_store_failure_is_internal(self, make_coordinator):
        failing = MagicMock()
        failing.get_by_id.side_effect = OrderStoreError("down")
        coordinator = make_coordinator(store=failing)

        assert coordinator.find_by_id("x").error.kind == ErrorKind.INTERNAL

class TestFindByUserAndAll:

    def test_find_by_user_cached(self, make_coordinator, store, add_product, tasks):
        counting = CountingStore(store)
        coordinator = make_coordinator(store=counting)
        add_product(1, "Keyboard", "50", 10)
        coordinator.create_order("user-1", [(1, 1)])
        coordinator.create_order("user-1", [(1, 2)])
        coordinator.create_order("user-2", [(1, 1)])
        tasks.wait(timeout=5)

        first = coordinator.find_by_user("user-1").value
        second = coordinator.find_by_user("user-1").value

        assert counting.by_user_reads == 1
        assert first == second
        assert len(first) == 2
        assert all(o.user_id == "user-1" for o in first)

    def test_new_order_invalidates_user_list(self, coordinator, cache, add_product, tasks):
        add_product(1, "Keyboard", "50", 10)
        coordinator.create_order("user-1", [(1, 1)])
        tasks.wait(timeout=5)
        assert len(coordinator.find_by_user("user-1").value) == 1

        coordinator.create_order("user-1", [(1, 1)])
        tasks.wait(timeout=5)

        assert cache.get(user_orders_key("user-1")) is None
        assert len(coordinator.find_by_user("user-1").value) == 2

    def test_find_all(self, coordinator, add_product):
        add_product(1, "Keyboard", "50", 10)
        coordinator.create_order("user-1", [(1, 1)])
        coordinator.create_order("user-2", [(1, 1)])

        orders = coordinator.find_all().value

        assert {o.user_id for o in orders} == {"user-1", "user-2"}

    def test_find_all_store_failure(self, make_coordinator):
        failing = MagicMock()
        failing.get_all.side_effect = OrderStoreError("down")

        result = make_coordinator(store=failing).find_all()

        assert result.error.kind == ErrorKind.INTERNAL
