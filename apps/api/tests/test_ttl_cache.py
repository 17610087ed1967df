from services.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=300, clock=clock)
    key = TTLCache.build_key("comments:s1", {"page": 1})
    cache.set(key, {"items": []})

    clock.now += 299
    assert cache.get(key) == {"items": []}
    clock.now += 1
    assert cache.get(key) is None
    assert len(cache) == 0
    assert cache.stats() == (1, 1)


def test_build_key_ignores_payload_order():
    first = TTLCache.build_key("messages:u1", {"folder": "inbox", "page": 2})
    second = TTLCache.build_key("messages:u1", {"page": 2, "folder": "inbox"})
    assert first == second
    assert first.startswith("messages:u1:")
    assert first != TTLCache.build_key("messages:u1", {"folder": "outbox", "page": 2})


def test_invalidate_prefix_only_touches_its_scope():
    cache = TTLCache()
    cache.set(TTLCache.build_key("comments:s1", {"page": 1}), 1)
    cache.set(TTLCache.build_key("comments:s1", {"page": 2}), 2)
    cache.set(TTLCache.build_key("comments:s10", {"page": 1}), 3)

    assert cache.invalidate_prefix("comments:s1") == 2
    assert len(cache) == 1


def test_zero_ttl_disables_caching():
    cache = TTLCache(ttl_seconds=0)
    cache.set("k:1", "v")
    assert cache.get("k:1") is None
