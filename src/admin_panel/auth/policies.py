"""
Authorization policies for admin panel resources.

A policy is a plain object with one method per ability (view_any, view,
create, update, delete, restore, force_delete, attach, detach, run_action,
export, import_). Methods receive the user followed by the ability's
arguments and return a boolean.

Policies are bound explicitly (Resource.policy, or PolicyRegistry.bind at
startup). Guessing "<Name>Policy" inside POLICY_MODULE is only a fallback.
"""

import importlib
import logging
from typing import Any, Callable, Dict, Optional, Type

from admin_panel.core.config import POLICY_MODULE
from admin_panel.utils.naming import snake, strip_suffix

logger = logging.getLogger(__name__)


def ability_method_name(ability: str) -> str:
    """Map an ability ("viewAny", "forceDelete", "import") to its policy method name."""
    name = snake(ability)
    return "import_" if name == "import" else name


class ResourcePolicy:
    """
    Base class for resource policies.

    Subclasses implement the abilities they care about. before() runs first
    and may short-circuit every check by returning a boolean.
    """

    def before(self, user: Any, ability: str) -> Optional[bool]:
        return None


class PolicyRegistry:
    """Maps resource classes to policy classes."""

    def __init__(self, policy_module: Optional[str] = POLICY_MODULE, guess: bool = True):
        self._bindings: Dict[type, Type[Any]] = {}
        self.policy_module = policy_module
        self.guess = guess

    def bind(self, resource_cls: type, policy_cls: Type[Any]) -> None:
        self._bindings[resource_cls] = policy_cls

    def unbind(self, resource_cls: type) -> None:
        self._bindings.pop(resource_cls, None)

    def bindings(self) -> Dict[type, Type[Any]]:
        return dict(self._bindings)

    def guess_policy_class_name(self, resource_cls: type) -> str:
        return f"{strip_suffix(resource_cls.__name__, 'Resource')}Policy"

    def _guess_policy_class(self, resource_cls: type) -> Optional[Type[Any]]:
        if not self.guess or not self.policy_module:
            return None
        try:
            module = importlib.import_module(self.policy_module)
        except ImportError:
            return None
        return getattr(module, self.guess_policy_class_name(resource_cls), None)

    def policy_class_for(self, resource_cls: type) -> Optional[Type[Any]]:
        explicit = getattr(resource_cls, "policy", None)
        if explicit is not None:
            return explicit
        for klass in resource_cls.__mro__:
            if klass in self._bindings:
                return self._bindings[klass]
        return self._guess_policy_class(resource_cls)

    def resolve(self, resource_cls: type) -> Optional[Any]:
        """Instantiate the policy for a resource class, or None when there is none."""
        policy_cls = self.policy_class_for(resource_cls)
        if policy_cls is None:
            return None
        return policy_cls() if isinstance(policy_cls, type) else policy_cls


def call_policy(
    policy: Any,
    ability: str,
    user: Any,
    *args: Any,
    allow_missing: bool = False,
) -> bool:
    """Invoke a policy ability, honoring before() and the missing-ability default."""
    before = getattr(policy, "before", None)
    if callable(before):
        verdict = before(user, ability)
        if verdict is not None:
            return bool(verdict)

    method: Optional[Callable[..., Any]] = getattr(policy, ability_method_name(ability), None)
    if method is None:
        method = getattr(policy, ability, None)
    if not callable(method):
        logger.debug(f"Policy {type(policy).__name__} has no '{ability}' ability")
        return allow_missing
    return bool(method(user, *args))


# Registry used by resources not registered with a panel of their own
default_policy_registry = PolicyRegistry()
