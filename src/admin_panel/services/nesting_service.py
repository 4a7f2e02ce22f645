"""
Parent/child navigation for Nestable resources.

A nestable entity points at its parent through NestingConfig.parent_key and
reaches it through parent_relationship; its children come from
children_relationship. Walks up the tree stop at max_depth so a cycle in
the data cannot loop forever.
"""

import logging
from typing import Any, Dict, List, Optional

from admin_panel.core.config import ADMIN_PANEL_PATH
from admin_panel.resources.capabilities import Nestable, NestingConfig, capability_config
from admin_panel.resources.request import AdminRequest

logger = logging.getLogger(__name__)


class NestingService:
    """Tree helpers over a resource's parent and children relationships."""

    @staticmethod
    def config(resource_cls: type) -> Optional[NestingConfig]:
        return capability_config(resource_cls, Nestable)

    @staticmethod
    def has_parent(resource: Any) -> bool:
        config = NestingService.config(type(resource))
        if config is None:
            return False
        return getattr(resource.resource, config.parent_key, None) is not None

    @staticmethod
    def parent(resource: Any) -> Optional[Any]:
        """The parent wrapped in the parent resource class, or None at the root."""
        if not NestingService.has_parent(resource):
            return None
        resource_cls = type(resource)
        config = NestingService.config(resource_cls)
        parent_entity = getattr(resource.resource, config.parent_relationship, None)
        if parent_entity is None:
            return None
        parent_cls = config.parent_resource or resource_cls
        return parent_cls(parent_entity)

    @staticmethod
    def children(resource: Any) -> List[Any]:
        resource_cls = type(resource)
        config = NestingService.config(resource_cls)
        if config is None:
            return []
        members = getattr(resource.resource, config.children_relationship, None) or []
        return [resource_cls(child) for child in members]

    @staticmethod
    def has_children(resource: Any) -> bool:
        return bool(NestingService.children(resource))

    @staticmethod
    def ancestors(resource: Any) -> List[Any]:
        """Parents from the nearest up to the root, at most max_depth of them."""
        config = NestingService.config(type(resource))
        if config is None:
            return []
        found: List[Any] = []
        current = NestingService.parent(resource)
        while current is not None and len(found) < config.max_depth:
            found.append(current)
            current = NestingService.parent(current)
        return found

    @staticmethod
    def depth(resource: Any) -> int:
        return len(NestingService.ancestors(resource))

    @staticmethod
    def root(resource: Any) -> Any:
        ancestors = NestingService.ancestors(resource)
        return ancestors[-1] if ancestors else resource

    @staticmethod
    def breadcrumb(resource: Any) -> Dict[str, Any]:
        uri_key = type(resource).uri_key()
        key = resource.get_key()
        return {
            "title": resource.title_value(),
            "uri_key": uri_key,
            "id": key,
            "url": f"{ADMIN_PANEL_PATH}/resources/{uri_key}/{key}",
        }

    @staticmethod
    def breadcrumbs(resource: Any) -> List[Dict[str, Any]]:
        """Trail from the root down to the resource itself."""
        config = NestingService.config(type(resource))
        if config is None or not config.show_parent_in_breadcrumbs:
            return []
        trail = list(reversed(NestingService.ancestors(resource))) + [resource]
        return [NestingService.breadcrumb(item) for item in trail]

    @staticmethod
    def tree_info(resource: Any, request: AdminRequest) -> Dict[str, Any]:
        """Nesting block of a detail payload."""
        config = NestingService.config(type(resource))
        parent = NestingService.parent(resource)
        info: Dict[str, Any] = {
            "depth": NestingService.depth(resource),
            "parent": NestingService.breadcrumb(parent) if parent is not None else None,
            "breadcrumbs": NestingService.breadcrumbs(resource),
        }
        if config is not None and config.show_children_in_detail:
            info["children"] = [
                NestingService.breadcrumb(child)
                for child in NestingService.children(resource)
                if child.authorized_to_view(request)
            ]
        return info

    @staticmethod
    def descendants(resource: Any, depth: int = 0) -> List[Any]:
        """Children, grandchildren and so on, down to max_depth levels."""
        config = NestingService.config(type(resource))
        if config is None or depth >= config.max_depth:
            return []
        found: List[Any] = []
        for child in NestingService.children(resource):
            found.append(child)
            found.extend(NestingService.descendants(child, depth + 1))
        return found

    @staticmethod
    def can_move_to(resource: Any, new_parent: Optional[Any]) -> bool:
        """False when the new parent is the resource itself or one of its descendants."""
        if new_parent is None:
            return True
        target = new_parent.get_key()
        if target == resource.get_key():
            return False
        return all(descendant.get_key() != target for descendant in NestingService.descendants(resource))

    @staticmethod
    def move_to(resource: Any, new_parent: Optional[Any]) -> bool:
        """Point the entity at a new parent, or make it a root with None. The caller commits."""
        config = NestingService.config(type(resource))
        if config is None or not NestingService.can_move_to(resource, new_parent):
            return False
        entity = resource.resource
        setattr(entity, config.parent_key, new_parent.get_key() if new_parent is not None else None)
        # Keep an already loaded parent relationship in step with the key
        if hasattr(type(entity), config.parent_relationship):
            setattr(entity, config.parent_relationship, new_parent.resource if new_parent is not None else None)
        return True

    @staticmethod
    def tree(resource: Any, max_depth: Optional[int] = None, depth: int = 0) -> Dict[str, Any]:
        """Nested {id, title, depth, children} nodes starting at the resource."""
        if max_depth is None:
            config = NestingService.config(type(resource))
            max_depth = config.max_depth if config is not None else 0
        node: Dict[str, Any] = {
            "id": resource.get_key(),
            "title": resource.title_value(),
            "depth": depth,
            "children": [],
        }
        if depth < max_depth:
            node["children"] = [
                NestingService.tree(child, max_depth, depth + 1) for child in NestingService.children(resource)
            ]
        return node
