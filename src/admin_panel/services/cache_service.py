"""
Resource cache service.

Read-through caching of index payloads, entity payloads, field schemas and
relationship data for Cacheable resources. Every store call is best-effort:
a cache failure is logged and treated as a miss, never as a request error.

Invalidation is event-driven: watch() subscribes the service to insert,
update and delete events of the resource's model so any write clears that
resource type's cache. Each model carries one set of mapper listeners shared
by every watching service.
"""

import hashlib
import json
import logging
import threading
import weakref
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy import event

from admin_panel.core.constants import CACHE_KEY_PREFIX
from admin_panel.resources.capabilities import Cacheable, CachingConfig
from admin_panel.resources.request import AdminRequest
from admin_panel.services.cache_store import CacheStore, MemoryCacheStore

logger = logging.getLogger(__name__)

_INDEX_PARAMS = ("search", "sort_field", "sort_direction", "per_page", "page", "trashed")
_WRITE_EVENTS = ("after_insert", "after_update", "after_delete")

# model -> cache services watching it
_model_services: Dict[type, "weakref.WeakSet[ResourceCacheService]"] = {}
_listened_models: Set[type] = set()
_listen_lock = threading.Lock()


def _config(resource_cls: type) -> Optional[CachingConfig]:
    if not issubclass(resource_cls, Cacheable):
        return None
    return resource_cls.caching


def _model_listener(model: type) -> Callable[..., None]:
    def _invalidate(mapper, connection, target):  # type: ignore
        for service in list(_model_services.get(model, ())):
            service.invalidate_model(model)
    return _invalidate


def _listen(model: type, service: "ResourceCacheService") -> None:
    with _listen_lock:
        _model_services.setdefault(model, weakref.WeakSet()).add(service)
        if model in _listened_models:
            return
        listener = _model_listener(model)
        for event_name in _WRITE_EVENTS:
            event.listen(model, event_name, listener)
        _listened_models.add(model)


class ResourceCacheService:
    """Cache operations scoped per resource type."""

    def __init__(self, store: Optional[CacheStore] = None):
        self.store = store or MemoryCacheStore()
        self._watched: Set[type] = set()

    # ===== Keys and tags =====

    @staticmethod
    def prefix(resource_cls: type) -> str:
        return f"{CACHE_KEY_PREFIX}:{resource_cls.uri_key()}"

    @staticmethod
    def index_cache_key(resource_cls: type, request: AdminRequest) -> str:
        """
        Key for one index query shape.

        Hashes search, filters, sort, page size, page, trash mode and user so
        distinct query shapes and users never share an entry.
        """
        params: Dict[str, Any] = {name: request.get(name) for name in _INDEX_PARAMS}
        params["filters"] = request.filters()
        params["user"] = request.user_key()
        digest = hashlib.md5(
            json.dumps(params, sort_keys=True, default=str).encode("utf-8")
        ).hexdigest()
        return f"{ResourceCacheService.prefix(resource_cls)}:index:{digest}"

    @staticmethod
    def resource_cache_key(resource_cls: type, key: Any) -> str:
        return f"{ResourceCacheService.prefix(resource_cls)}:resource:{key}"

    @staticmethod
    def fields_cache_key(resource_cls: type, key: Any, request: AdminRequest) -> str:
        mode = "edit" if request.is_editing() else "view"
        return f"{ResourceCacheService.prefix(resource_cls)}:fields:{key}:{mode}"

    @staticmethod
    def relationship_cache_key(resource_cls: type, key: Any, relationship: str) -> str:
        return f"{ResourceCacheService.prefix(resource_cls)}:relationship:{key}:{relationship}"

    @staticmethod
    def cache_tags(resource_cls: type) -> List[str]:
        config = _config(resource_cls) or CachingConfig()
        tags = list(config.tags)
        for tag in (CACHE_KEY_PREFIX, ResourceCacheService.prefix(resource_cls)):
            if tag not in tags:
                tags.append(tag)
        return tags

    # ===== Best-effort store access =====

    def _get(self, key: str) -> Optional[Any]:
        try:
            return self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def _put(self, resource_cls: type, key: str, value: Any) -> None:
        config = _config(resource_cls)
        try:
            self.store.put(key, value, ttl=config.ttl if config else None, tags=self.cache_tags(resource_cls))
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _enabled(self, resource_cls: type, switch: str) -> bool:
        config = _config(resource_cls)
        return bool(config and config.enabled and getattr(config, switch))

    # ===== Index =====

    def cache_index(self, resource_cls: type, request: AdminRequest, payload: Any) -> Any:
        if self._enabled(resource_cls, "cache_index"):
            self._put(resource_cls, self.index_cache_key(resource_cls, request), payload)
        return payload

    def get_cached_index(self, resource_cls: type, request: AdminRequest) -> Optional[Any]:
        if not self._enabled(resource_cls, "cache_index"):
            return None
        return self._get(self.index_cache_key(resource_cls, request))

    def remember_index(self, resource_cls: type, request: AdminRequest, builder: Callable[[], Any]) -> Any:
        """Return the cached index payload, building and caching it on a miss."""
        cached = self.get_cached_index(resource_cls, request)
        if cached is not None:
            logger.debug(f"Index cache hit for {resource_cls.uri_key()}")
            return cached
        return self.cache_index(resource_cls, request, builder())

    # ===== Entities, fields and relationships =====

    def cache_resource(self, resource_cls: type, key: Any, payload: Any) -> Any:
        if self._enabled(resource_cls, "cache_resources"):
            self._put(resource_cls, self.resource_cache_key(resource_cls, key), payload)
        return payload

    def get_cached_resource(self, resource_cls: type, key: Any) -> Optional[Any]:
        if not self._enabled(resource_cls, "cache_resources"):
            return None
        return self._get(self.resource_cache_key(resource_cls, key))

    def cache_fields(self, resource_cls: type, key: Any, request: AdminRequest, fields: Any) -> Any:
        if self._enabled(resource_cls, "cache_fields"):
            self._put(resource_cls, self.fields_cache_key(resource_cls, key, request), fields)
        return fields

    def get_cached_fields(self, resource_cls: type, key: Any, request: AdminRequest) -> Optional[Any]:
        if not self._enabled(resource_cls, "cache_fields"):
            return None
        return self._get(self.fields_cache_key(resource_cls, key, request))

    def cache_relationship(self, resource_cls: type, key: Any, relationship: str, data: Any) -> Any:
        if self._enabled(resource_cls, "cache_relationships"):
            self._put(resource_cls, self.relationship_cache_key(resource_cls, key, relationship), data)
        return data

    def get_cached_relationship(self, resource_cls: type, key: Any, relationship: str) -> Optional[Any]:
        if not self._enabled(resource_cls, "cache_relationships"):
            return None
        return self._get(self.relationship_cache_key(resource_cls, key, relationship))

    # ===== Invalidation =====

    def clear_cache(self, resource_cls: type) -> None:
        """Drop every entry of the resource type (full flush without tag support)."""
        try:
            if self.store.supports_tags:
                self.store.flush_tags([self.prefix(resource_cls)])
            else:
                self.store.flush()
        except Exception as e:
            logger.warning(f"Cache clear failed for {resource_cls.uri_key()}: {e}")

    def clear_index_cache(self, resource_cls: type) -> None:
        # Index keys are hashed, so they can only be reached through the tag
        self.clear_cache(resource_cls)

    def clear_resource_cache(self, resource_cls: type, key: Any) -> None:
        """Drop one entity's entries, then the index pages that may list it."""
        try:
            self.store.forget(self.resource_cache_key(resource_cls, key))
            for mode in ("edit", "view"):
                self.store.forget(f"{self.prefix(resource_cls)}:fields:{key}:{mode}")
        except Exception as e:
            logger.warning(f"Cache clear failed for {resource_cls.uri_key()}:{key}: {e}")
        self.clear_index_cache(resource_cls)

    def watch(self, resource_cls: type) -> None:
        """Clear the resource type's cache whenever one of its entities is written."""
        if _config(resource_cls) is None:
            return
        model = resource_cls.model
        if resource_cls in self._watched:
            return
        self._watched.add(resource_cls)
        _listen(model, self)
        logger.debug(f"Watching {model.__name__} writes for {resource_cls.uri_key()} cache")

    def invalidate_model(self, model: type) -> None:
        """Clear every watched resource type backed by the model."""
        for resource_cls in [item for item in self._watched if item.model is model]:
            self.clear_cache(resource_cls)

    def stats(self, resource_cls: type) -> Dict[str, Any]:
        config = _config(resource_cls) or CachingConfig(enabled=False)
        return {
            "enabled": config.enabled,
            "ttl": config.ttl,
            "store": type(self.store).__name__,
            "tags": self.cache_tags(resource_cls),
            "supports_tags": self.store.supports_tags,
            "cache_index": config.cache_index,
            "cache_resources": config.cache_resources,
            "cache_fields": config.cache_fields,
            "cache_relationships": config.cache_relationships,
        }


# Global cache service instance
resource_cache = ResourceCacheService()
