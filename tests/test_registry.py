"""Tests for the connection registry."""

import threading

from socia.relay import ConnectionRegistry


class Handle:
    def __init__(self, name: str):
        self.name = name


class TestConnectionRegistry:
    """One live connection per user."""

    def test_register_and_lookup(self):
        registry = ConnectionRegistry()
        h1 = Handle("h1")
        assert registry.register("u1", h1) is None
        assert registry.lookup("u1") is h1
        assert "u1" in registry
        assert len(registry) == 1

    def test_register_replaces_and_returns_previous(self):
        registry = ConnectionRegistry()
        h1, h2 = Handle("h1"), Handle("h2")
        registry.register("u1", h1)
        assert registry.register("u1", h2) is h1
        assert registry.lookup("u1") is h2

    def test_reregister_same_handle_returns_none(self):
        registry = ConnectionRegistry()
        h1 = Handle("h1")
        registry.register("u1", h1)
        assert registry.register("u1", h1) is None

    def test_stale_remove_keeps_new_handle(self):
        registry = ConnectionRegistry()
        h1, h2 = Handle("h1"), Handle("h2")
        registry.register("u1", h1)
        registry.register("u1", h2)
        assert registry.remove("u1", h1) is False
        assert registry.lookup("u1") is h2

    def test_remove_current_handle(self):
        registry = ConnectionRegistry()
        h1 = Handle("h1")
        registry.register("u1", h1)
        assert registry.remove("u1", h1) is True
        assert registry.lookup("u1") is None
        assert registry.remove("u1", h1) is False

    def test_lookup_unknown_user(self):
        assert ConnectionRegistry().lookup("nobody") is None

    def test_independent_instances(self):
        a, b = ConnectionRegistry(), ConnectionRegistry()
        a.register("u1", Handle("h1"))
        assert b.lookup("u1") is None

    def test_concurrent_registration(self):
        registry = ConnectionRegistry()

        def worker(n: int):
            for i in range(200):
                handle = Handle(f"{n}-{i}")
                registry.register(f"user-{i % 10}", handle)
                registry.remove(f"user-{i % 10}", handle)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) <= 10
        assert set(registry.online_users()) <= {f"user-{i}" for i in range(10)}
