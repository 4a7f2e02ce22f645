"""
Unit tests for the cache store and the resource cache service.
"""

import time
from unittest.mock import patch

from admin_panel.resources.request import AdminRequest
from admin_panel.services.cache_service import ResourceCacheService
from admin_panel.services.cache_store import MemoryCacheStore
from tests.utils import NoteResource, PostResource, ProductResource, create_product, make_user


class BrokenStore(MemoryCacheStore):
    def get(self, key):
        raise ConnectionError("cache down")

    def put(self, key, value, ttl=None, tags=()):
        raise ConnectionError("cache down")


class TestMemoryCacheStore:
    def test_put_get_forget(self):
        store = MemoryCacheStore()
        store.put("a", {"x": 1})
        assert store.get("a") == {"x": 1}
        assert store.forget("a") is True
        assert store.get("a") is None
        assert store.forget("a") is False

    def test_ttl_expiry(self, monkeypatch):
        store = MemoryCacheStore()
        now = time.monotonic()
        monkeypatch.setattr("admin_panel.services.cache_store.time.monotonic", lambda: now)
        store.put("a", 1, ttl=10)
        monkeypatch.setattr("admin_panel.services.cache_store.time.monotonic", lambda: now + 11)
        assert store.get("a") is None

    def test_flush_tags_only_touches_tagged_keys(self):
        store = MemoryCacheStore()
        store.put("a", 1, tags=["products"])
        store.put("b", 2, tags=["posts"])
        assert store.flush_tags(["products"]) == 1
        assert store.get("a") is None
        assert store.get("b") == 2

    def test_stats(self):
        store = MemoryCacheStore()
        store.put("a", 1, tags=["t"])
        store.get("a")
        store.get("missing")
        stats = store.stats()
        assert (stats.hits, stats.misses, stats.sets, stats.size) == (1, 1, 1, 1)
        assert stats.tags == {"t": 1}


class TestKeys:
    def test_index_key_varies_with_query_and_user(self):
        base = ResourceCacheService.index_cache_key(ProductResource, AdminRequest(user=make_user()))
        searched = ResourceCacheService.index_cache_key(
            ProductResource, AdminRequest(user=make_user(), query={"search": "wid"})
        )
        other_user = ResourceCacheService.index_cache_key(ProductResource, AdminRequest(user=make_user(user_id="9")))
        trashed = ResourceCacheService.index_cache_key(
            ProductResource, AdminRequest(user=make_user(), query={"trashed": "with"})
        )
        assert base.startswith("admin_panel:products:index:")
        assert len({base, searched, other_user, trashed}) == 4

    def test_index_key_is_stable(self):
        request = AdminRequest(user=make_user(), query={"page": "2", "filters[status]": "draft"})
        assert ResourceCacheService.index_cache_key(ProductResource, request) == ResourceCacheService.index_cache_key(
            ProductResource, request
        )

    def test_entity_keys(self):
        assert ResourceCacheService.resource_cache_key(ProductResource, 5) == "admin_panel:products:resource:5"
        assert ResourceCacheService.fields_cache_key(
            ProductResource, 5, AdminRequest(query={"editing": "true"})
        ) == "admin_panel:products:fields:5:edit"
        assert ResourceCacheService.relationship_cache_key(
            ProductResource, 5, "tags"
        ) == "admin_panel:products:relationship:5:tags"

    def test_tags(self):
        assert ResourceCacheService.cache_tags(ProductResource) == ["admin_panel", "admin_panel:products"]


class TestResourceCacheService:
    def test_remember_index_builds_once(self):
        service = ResourceCacheService(MemoryCacheStore())
        request = AdminRequest(user=make_user())
        calls = []

        def build():
            calls.append(1)
            return {"data": [1, 2]}

        assert service.remember_index(ProductResource, request, build) == {"data": [1, 2]}
        assert service.remember_index(ProductResource, request, build) == {"data": [1, 2]}
        assert len(calls) == 1

    def test_non_cacheable_resource_is_never_cached(self):
        service = ResourceCacheService(MemoryCacheStore())
        service.cache_resource(NoteResource, 1, {"id": 1})
        assert service.get_cached_resource(NoteResource, 1) is None

    def test_entity_and_field_entries(self):
        service = ResourceCacheService(MemoryCacheStore())
        request = AdminRequest()
        service.cache_resource(ProductResource, 1, {"id": 1})
        service.cache_fields(ProductResource, 1, request, [{"attribute": "name"}])
        service.cache_relationship(ProductResource, 1, "tags", [])
        assert service.get_cached_resource(ProductResource, 1) == {"id": 1}
        assert service.get_cached_fields(ProductResource, 1, request) == [{"attribute": "name"}]
        assert service.get_cached_relationship(ProductResource, 1, "tags") == []

        service.clear_resource_cache(ProductResource, 1)
        assert service.get_cached_resource(ProductResource, 1) is None
        assert service.get_cached_fields(ProductResource, 1, request) is None

    def test_clear_cache_is_scoped_to_resource(self):
        store = MemoryCacheStore()
        service = ResourceCacheService(store)
        service.cache_resource(ProductResource, 1, {"id": 1})
        store.put("admin_panel:posts:resource:1", {"id": 1}, tags=["admin_panel:posts"])
        service.clear_cache(ProductResource)
        assert service.get_cached_resource(ProductResource, 1) is None
        assert store.get("admin_panel:posts:resource:1") == {"id": 1}

    def test_store_without_tags_flushes_everything(self):
        store = MemoryCacheStore(supports_tags=False)
        service = ResourceCacheService(store)
        service.cache_resource(ProductResource, 1, {"id": 1})
        store.put("unrelated", 1)
        service.clear_cache(ProductResource)
        assert store.get("unrelated") is None

    def test_store_failures_are_misses(self):
        service = ResourceCacheService(BrokenStore())
        request = AdminRequest(user=make_user())
        assert service.remember_index(ProductResource, request, lambda: {"data": []}) == {"data": []}
        assert service.get_cached_resource(ProductResource, 1) is None

    def test_writes_invalidate_watched_resource(self, db_session):
        service = ResourceCacheService(MemoryCacheStore())
        service.watch(ProductResource)
        service.watch(PostResource)  # not cacheable: ignored
        service.cache_resource(ProductResource, 1, {"id": 1})

        create_product(db_session, "Widget")

        assert service.get_cached_resource(ProductResource, 1) is None

    def test_watching_again_adds_no_listeners(self, db_session):
        ResourceCacheService(MemoryCacheStore()).watch(ProductResource)
        service = ResourceCacheService(MemoryCacheStore())
        with patch("admin_panel.services.cache_service.event.listen") as listen:
            service.watch(ProductResource)
            service.watch(ProductResource)
        listen.assert_not_called()

        service.cache_resource(ProductResource, 1, {"id": 1})
        create_product(db_session, "Widget")
        assert service.get_cached_resource(ProductResource, 1) is None

    def test_every_watching_service_is_invalidated(self, db_session):
        first = ResourceCacheService(MemoryCacheStore())
        second = ResourceCacheService(MemoryCacheStore())
        for service in (first, second):
            service.watch(ProductResource)
            service.cache_resource(ProductResource, 1, {"id": 1})

        create_product(db_session, "Widget")

        assert first.get_cached_resource(ProductResource, 1) is None
        assert second.get_cached_resource(ProductResource, 1) is None

    def test_stats(self):
        service = ResourceCacheService(MemoryCacheStore())
        stats = service.stats(ProductResource)
        assert stats["enabled"] is True
        assert stats["ttl"] == 60
        assert stats["store"] == "MemoryCacheStore"
        assert service.stats(NoteResource)["enabled"] is False
