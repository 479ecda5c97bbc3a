"""
Tests for the dependency injection container.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import BaseModel

from entitystore.app.configuration import EntityStoreOptions
from entitystore.app.container import (
    CircularDependencyError, DIContainer, DIError, ServiceConfigurationError,
    ServiceNotFoundError, ServiceScope, get_service_key
)
from entitystore.persistence import EntityStore, MemoryEntityStore


class Order(BaseModel):
    Id: int


class Customer(BaseModel):
    Id: int


class Clock:
    pass


class Reporter:

    def __init__(self, clock: Clock, label: str = "default"):
        self.clock = clock
        self.label = label


class Connection:

    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class BrokenResource:

    def close(self):
        raise RuntimeError("close failed")


class TestServiceKeys:

    def test_type_key(self):
        assert get_service_key(Clock) == f"{__name__}.Clock"

    def test_closed_generic_keys_differ_by_argument(self):
        order_key = get_service_key(EntityStore[Order])
        customer_key = get_service_key(EntityStore[Customer])
        assert order_key.startswith("entitystore.persistence.base.EntityStore[")
        assert order_key.endswith(".Order]")
        assert order_key != customer_key

    def test_string_key(self):
        assert get_service_key("clock") == "clock"


class TestLifetimes:

    def test_singleton(self):
        container = DIContainer().register(Clock)
        assert container.get(Clock) is container.get(Clock)

    def test_transient(self):
        container = DIContainer().register_transient(Clock, Clock)
        assert container.get(Clock) is not container.get(Clock)

    def test_scoped(self):
        container = DIContainer().register_scoped(Clock, Clock)
        first = container.get(Clock, scope_id="a")
        assert container.get(Clock, scope_id="a") is first
        assert container.get(Clock, scope_id="b") is not first

    def test_instance_registration(self):
        clock = Clock()
        container = DIContainer().register_singleton(Clock, clock)
        assert container.get(Clock) is clock

    def test_container_resolves_itself(self):
        container = DIContainer()
        assert container.get(DIContainer) is container

    def test_later_registration_wins(self):
        first, second = Clock(), Clock()
        container = DIContainer().register_singleton(Clock, first)
        container.get(Clock)
        container.register_singleton(Clock, second)
        assert container.get(Clock) is second


class TestResolution:

    def test_constructor_injection(self):
        container = DIContainer().register(Clock).register(Reporter)
        reporter = container.get(Reporter)
        assert reporter.clock is container.get(Clock)
        assert reporter.label == "default"

    def test_config_overrides_injection(self):
        container = DIContainer().register(Clock).register(Reporter, config={"label": "custom"})
        assert container.get(Reporter).label == "custom"

    def test_factory(self):
        container = DIContainer().register_factory("answer", lambda: 42)
        assert container.get("answer") == 42

    def test_missing_service(self):
        container = DIContainer()
        with pytest.raises(ServiceNotFoundError):
            container.get(Clock)
        assert container.try_get(Clock) is None
        assert not container.is_registered(Clock)

    def test_missing_dependency_propagates(self):
        container = DIContainer().register(Reporter)
        with pytest.raises(ServiceNotFoundError):
            container.get(Reporter)

    def test_circular_dependency(self):
        container = DIContainer()
        container.register_factory("a", lambda: container.get("b"))
        container.register_factory("b", lambda: container.get("a"))
        with pytest.raises(CircularDependencyError):
            container.get("a")

    def test_concurrent_resolution_of_same_key(self):
        barrier = threading.Barrier(2, timeout=5)

        def make_clock():
            barrier.wait()
            return Clock()

        container = DIContainer().register_factory(Clock, make_clock, ServiceScope.TRANSIENT)
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(container.get, Clock) for _ in range(2)]
            clocks = [f.result() for f in futures]

        assert all(isinstance(c, Clock) for c in clocks)

    def test_scope_does_not_leak_across_threads(self):
        entered = threading.Event()
        release = threading.Event()

        def make_connection():
            entered.set()
            assert release.wait(timeout=5)
            return Connection()

        container = DIContainer()
        container.register_factory("slow", make_connection, ServiceScope.SCOPED)
        container.register(Connection, scope=ServiceScope.SCOPED)

        with ThreadPoolExecutor(max_workers=1) as pool:
            pending = pool.submit(container.get, "slow", "request-1")
            assert entered.wait(timeout=5)
            unscoped = container.get(Connection)
            release.set()
            pending.result()

        assert unscoped is container.get(Connection, "default")
        assert unscoped is not container.get(Connection, "request-1")

    def test_string_key_requires_implementation(self):
        with pytest.raises(ServiceConfigurationError):
            DIContainer().register("nothing")


class TestOpenGenerics:

    def test_closed_service_built_per_argument(self):
        container = DIContainer().register_open_generic(
            EntityStore, lambda c, entity_type: MemoryEntityStore(entity_type)
        )
        order_store = container.get(EntityStore[Order])
        assert isinstance(order_store, MemoryEntityStore)
        assert order_store.record_type is Order
        assert container.get(EntityStore[Order]) is order_store
        assert container.get(EntityStore[Customer]).record_type is Customer
        assert container.is_registered(EntityStore[Order])

    def test_transient_open_generic(self):
        container = DIContainer().register_open_generic(
            EntityStore, lambda c, entity_type: MemoryEntityStore(entity_type),
            ServiceScope.TRANSIENT,
        )
        assert container.get(EntityStore[Order]) is not container.get(EntityStore[Order])

    def test_later_open_generic_wins(self):
        container = DIContainer()
        container.register_open_generic(EntityStore, lambda c, t: "first")
        assert container.get(EntityStore[Order]) == "first"
        container.register_open_generic(EntityStore, lambda c, t: "second")
        assert container.get(EntityStore[Order]) == "second"

    def test_closed_registration_takes_precedence(self):
        dedicated = MemoryEntityStore(Order)
        container = DIContainer()
        container.register_open_generic(EntityStore, lambda c, t: MemoryEntityStore(t))
        container.register_singleton(EntityStore[Order], dedicated)
        assert container.get(EntityStore[Order]) is dedicated

    def test_nested_resolution_inherits_scope(self):
        container = DIContainer()
        container.register_scoped(Connection, Connection)
        container.register_open_generic(
            EntityStore, lambda c, t: (t, c.get(Connection)), ServiceScope.SCOPED
        )
        _, conn_a = container.get(EntityStore[Order], scope_id="a")
        assert container.get(Connection, scope_id="a") is conn_a
        assert container.get(Connection, scope_id="b") is not conn_a


class TestDisposal:

    @pytest.mark.asyncio
    async def test_end_scope_closes_instances(self):
        container = DIContainer().register_scoped(Connection, Connection)
        conn = container.get(Connection, scope_id="request-1")

        await container.end_scope("request-1")

        assert conn.closed
        assert container.get(Connection, scope_id="request-1") is not conn

    @pytest.mark.asyncio
    async def test_shutdown(self):
        container = DIContainer().register(Connection)
        conn = container.get(Connection)

        await container.shutdown()

        assert conn.closed
        with pytest.raises(DIError):
            container.get(Connection)
        with pytest.raises(DIError):
            container.register(Clock)

    @pytest.mark.asyncio
    async def test_disposal_errors_are_raised_after_all_instances_close(self):
        container = DIContainer()
        container.register(BrokenResource).register(Connection)
        container.get(BrokenResource)
        conn = container.get(Connection)

        with pytest.raises(RuntimeError):
            await container.shutdown()
        assert conn.closed


def test_options_injection():
    options = EntityStoreOptions(register_file_store=True)
    container = DIContainer().register_singleton(EntityStoreOptions, options)
    assert container.get(EntityStoreOptions) is options
