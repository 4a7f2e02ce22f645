"""
Resource registry.

An AdminPanel owns the set of registered resource classes together with the
policy, observer and cache services they use. Registration is explicit and
never touches the declared class: the panel registers a subclass of it bound
to the panel's own services, so one resource class can serve several panels.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

from admin_panel.auth.policies import PolicyRegistry
from admin_panel.resources.capabilities import Cacheable, Observable
from admin_panel.resources.request import AdminRequest
from admin_panel.services.cache_service import ResourceCacheService
from admin_panel.services.observer_service import ObserverRegistry

logger = logging.getLogger(__name__)


class AdminPanel:
    """Registered resources and the services they are wired to."""

    def __init__(
        self,
        policy_registry: Optional[PolicyRegistry] = None,
        observer_registry: Optional[ObserverRegistry] = None,
        cache_service: Optional[ResourceCacheService] = None,
    ):
        self.policy_registry = policy_registry or PolicyRegistry()
        self.observer_registry = observer_registry or ObserverRegistry()
        self.cache_service = cache_service or ResourceCacheService()
        self._resources: "OrderedDict[str, type]" = OrderedDict()

    def register(self, *resource_classes: type) -> "AdminPanel":
        """
        Register resource classes under their URI keys.

        Raises:
            ValueError: when two different classes share a URI key
        """
        for resource_cls in resource_classes:
            declared = resource_cls.declared_class()
            uri_key = declared.uri_key()
            existing = self._resources.get(uri_key)
            if existing is not None:
                if existing.declared_class() is not declared:
                    raise ValueError(
                        f"URI key '{uri_key}' is already used by {existing.__name__}"
                    )
                continue

            bound = self._bind(declared)
            if issubclass(bound, Cacheable):
                self.cache_service.watch(bound)
            if issubclass(bound, Observable):
                self.observer_registry.register_observers(bound)

            self._resources[uri_key] = bound
            logger.debug(f"Registered resource {declared.__name__} as '{uri_key}'")
        return self

    def _bind(self, declared: type) -> type:
        """Subclass of a declared resource that resolves through this panel's services."""
        return type(
            declared.__name__,
            (declared,),
            {
                "__module__": declared.__module__,
                "__qualname__": declared.__qualname__,
                "__doc__": declared.__doc__,
                "_declared_class": declared,
                "policy_registry": self.policy_registry,
                "observer_registry": self.observer_registry,
                "cache_service": self.cache_service,
            },
        )

    def resource(self, resource_cls: type) -> Optional[type]:
        """This panel's bound class for a resource, or None when it was never registered."""
        registered = self._resources.get(resource_cls.uri_key())
        if registered is None or registered.declared_class() is not resource_cls.declared_class():
            return None
        return registered

    def find_resource(self, uri_key: str) -> Optional[type]:
        return self._resources.get(uri_key)

    def resources(self) -> List[type]:
        return list(self._resources.values())

    def navigation_resources(self, request: AdminRequest) -> List[type]:
        return [resource_cls for resource_cls in self._resources.values() if resource_cls.available_for_navigation(request)]

    def grouped_resources(self, request: Optional[AdminRequest] = None) -> Dict[str, List[type]]:
        """Resources keyed by group, groups and members sorted by label."""
        candidates = self.navigation_resources(request) if request is not None else self.resources()
        groups: Dict[str, List[type]] = {}
        for resource_cls in sorted(candidates, key=lambda item: item.label()):
            groups.setdefault(resource_cls.group, []).append(resource_cls)
        return dict(sorted(groups.items()))

    def soft_deletable_resources(self) -> List[type]:
        return [resource_cls for resource_cls in self._resources.values() if resource_cls.supports_soft_deletes()]

    def bind_policy(self, resource_cls: type, policy_cls: type) -> None:
        self.policy_registry.bind(resource_cls.declared_class(), policy_cls)

    def bind_observers(self, resource_cls: type, observers: Sequence[Any]) -> List[Any]:
        bound = self.resource(resource_cls) or resource_cls
        return self.observer_registry.register_observers(bound, list(observers))

    def policy_for(self, resource_cls: type) -> Optional[Any]:
        return self.policy_registry.resolve(self.resource(resource_cls) or resource_cls)

    def navigation(self, request: AdminRequest) -> List[Dict[str, Any]]:
        """Grouped navigation entries for the request's user."""
        return [
            {
                "group": group,
                "resources": [
                    {"uri_key": item.uri_key(), "label": item.label(), "icon": item.icon}
                    for item in members
                ],
            }
            for group, members in self.grouped_resources(request).items()
        ]


# Default panel used by the API routes
admin_panel = AdminPanel()


def get_admin_panel() -> AdminPanel:
    """FastAPI dependency returning the default panel."""
    return admin_panel
