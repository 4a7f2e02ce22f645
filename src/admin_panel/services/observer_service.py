"""
Entity lifecycle observers.

Observers are registered per resource type, from the resource's
ObserverConfig (classes or dotted import paths), explicit add_observer()
calls, or, as a fallback, a "<Name>Observer" class guessed inside
OBSERVER_MODULE. Dispatch of the persistence events is wired to SQLAlchemy
mapper events on the resource's model:

    before_insert -> creating, saving      after_insert -> created, saved
    before_update -> updating, saving      after_update -> updated, saved
    before_delete -> deleting              after_delete -> deleted

The trash service dispatches trashed, restoring/restored and
force_deleting/force_deleted itself. A "restoring" or "force_deleting"
handler that returns False cancels that operation.

Each model gets one set of mapper listeners no matter how many registries
wire it. The listeners fan out to every live registry that wired a
resource over the model; registries are held weakly.
"""

import importlib
import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, List, Optional, Set, Tuple, TypeVar

from sqlalchemy import event

from admin_panel.core.config import OBSERVER_MODULE
from admin_panel.core.constants import OBSERVER_EVENTS
from admin_panel.core.exceptions import ObserverNotFoundError
from admin_panel.resources.capabilities import Observable, ObserverConfig
from admin_panel.utils.naming import strip_suffix

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAPPER_EVENTS: Dict[str, Tuple[str, ...]] = {
    "before_insert": ("creating", "saving"),
    "after_insert": ("created", "saved"),
    "before_update": ("updating", "saving"),
    "after_update": ("updated", "saved"),
    "before_delete": ("deleting",),
    "after_delete": ("deleted",),
}

# model -> registries that wired a resource over it
_model_registries: Dict[type, "weakref.WeakSet[ObserverRegistry]"] = {}
_listened_models: Set[type] = set()
_listen_lock = threading.Lock()


def _model_listener(model: type, event_names: Tuple[str, ...]) -> Callable[..., None]:
    def _dispatch(mapper, connection, target):  # type: ignore
        for registry in list(_model_registries.get(model, ())):
            registry.dispatch_model_event(model, event_names, target)
    return _dispatch


def _listen(model: type, registry: "ObserverRegistry") -> None:
    with _listen_lock:
        _model_registries.setdefault(model, weakref.WeakSet()).add(registry)
        if model in _listened_models:
            return
        for mapper_event, event_names in _MAPPER_EVENTS.items():
            event.listen(model, mapper_event, _model_listener(model, event_names))
        _listened_models.add(model)


class ResourceObserver:
    """
    Base class for observers.

    Override the events you care about; each receives the entity.
    """

    def should_handle(self, entity: Any) -> bool:
        return True

    def creating(self, entity: Any) -> Any: ...
    def created(self, entity: Any) -> Any: ...
    def updating(self, entity: Any) -> Any: ...
    def updated(self, entity: Any) -> Any: ...
    def saving(self, entity: Any) -> Any: ...
    def saved(self, entity: Any) -> Any: ...
    def deleting(self, entity: Any) -> Any: ...
    def deleted(self, entity: Any) -> Any: ...
    def trashed(self, entity: Any) -> Any: ...
    def restoring(self, entity: Any) -> Any: ...
    def restored(self, entity: Any) -> Any: ...
    def force_deleting(self, entity: Any) -> Any: ...
    def force_deleted(self, entity: Any) -> Any: ...


def _import_observer(path: str) -> type:
    module_name, _, class_name = path.rpartition(".")
    if not module_name:
        raise ObserverNotFoundError(f"Observer path must be a dotted path: {path}")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise ObserverNotFoundError(f"Observer class not found: {path}") from e


def _instantiate(observer: Any) -> Any:
    if isinstance(observer, str):
        observer = _import_observer(observer)
    return observer() if isinstance(observer, type) else observer


def _implements(observer: Any, event_name: str) -> bool:
    """True when the observer overrides the event (base no-ops don't count)."""
    method = getattr(type(observer), event_name, None)
    if method is None:
        return False
    return getattr(ResourceObserver, event_name, None) is not method


class ObserverRegistry:
    """Explicit resource-type -> observers map with dispatch control."""

    def __init__(self, observer_module: Optional[str] = OBSERVER_MODULE):
        self.observer_module = observer_module
        self._observers: Dict[type, List[Any]] = {}
        self._wired: Set[type] = set()
        self._disabled: Set[type] = set()
        self._suspended = 0
        self._lock = threading.RLock()

    # ===== Registration =====

    def guess_observer_class_name(self, resource_cls: type) -> str:
        return f"{strip_suffix(resource_cls.__name__, 'Resource')}Observer"

    def _guess_observer(self, resource_cls: type) -> Optional[type]:
        if not self.observer_module:
            return None
        try:
            module = importlib.import_module(self.observer_module)
        except ImportError:
            return None
        return getattr(module, self.guess_observer_class_name(resource_cls), None)

    def register_observers(self, resource_cls: type, observers: Optional[List[Any]] = None) -> List[Any]:
        """
        Build and wire the observer list of a resource type.

        Uses the given observers, else the resource's ObserverConfig, else
        the guessed class. Raises ObserverNotFoundError for a configured
        dotted path that cannot be imported.
        """
        config: ObserverConfig = getattr(resource_cls, "observing", ObserverConfig())
        sources: List[Any] = list(observers) if observers is not None else list(config.observers)
        if not sources and config.guess:
            guessed = self._guess_observer(resource_cls)
            if guessed is not None:
                sources.append(guessed)

        instances = [_instantiate(source) for source in sources]
        with self._lock:
            self._observers[resource_cls] = instances
            if not config.enabled:
                self._disabled.add(resource_cls)
        self.wire(resource_cls)
        logger.debug(f"Registered {len(instances)} observer(s) for {resource_cls.__name__}")
        return instances

    def wire(self, resource_cls: type) -> None:
        """Dispatch persistence events of the resource's model to its observers."""
        model = resource_cls.model
        if model is None:
            return
        with self._lock:
            self._wired.add(resource_cls)
        _listen(model, self)

    def dispatch_model_event(self, model: type, event_names: Tuple[str, ...], entity: Any) -> None:
        with self._lock:
            targets = [resource_cls for resource_cls in self._wired if resource_cls.model is model]
        for resource_cls in targets:
            for event_name in event_names:
                self.trigger(resource_cls, event_name, entity)

    def get_observers(self, resource_cls: type) -> List[Any]:
        with self._lock:
            return list(self._observers.get(resource_cls, []))

    def add_observer(self, resource_cls: type, observer: Any) -> Any:
        instance = _instantiate(observer)
        with self._lock:
            self._observers.setdefault(resource_cls, []).append(instance)
        self.wire(resource_cls)
        return instance

    def remove_observer(self, resource_cls: type, observer: Any) -> bool:
        """Remove an observer instance, or every observer of a class."""
        with self._lock:
            current = self._observers.get(resource_cls, [])
            if isinstance(observer, type):
                kept = [item for item in current if not isinstance(item, observer)]
            else:
                kept = [item for item in current if item is not observer]
            self._observers[resource_cls] = kept
            return len(kept) != len(current)

    def has_observers(self, resource_cls: type) -> bool:
        return bool(self.get_observers(resource_cls))

    def observer_events(self, resource_cls: type) -> Dict[str, List[str]]:
        """Observer class name -> events it implements."""
        return {
            type(observer).__name__: [name for name in OBSERVER_EVENTS if _implements(observer, name)]
            for observer in self.get_observers(resource_cls)
        }

    # ===== Dispatch =====

    def is_enabled(self, resource_cls: type) -> bool:
        return self._suspended == 0 and resource_cls not in self._disabled

    def trigger(self, resource_cls: type, event_name: str, entity: Any) -> bool:
        """
        Dispatch an event to the resource type's observers.

        Returns False when an observer returned False, True otherwise
        (including when observers are suspended or disabled).
        """
        if event_name not in OBSERVER_EVENTS:
            raise ValueError(f"Unknown observer event: {event_name}")
        if not self.is_enabled(resource_cls):
            return True

        for observer in self.get_observers(resource_cls):
            handler = getattr(observer, event_name, None)
            if handler is None or not observer.should_handle(entity):
                continue
            if handler(entity) is False:
                logger.info(f"{type(observer).__name__}.{event_name} halted {resource_cls.__name__}")
                return False
        return True

    def disable(self, resource_cls: Optional[type] = None) -> None:
        """Stop dispatch for one resource type, or for all of them."""
        with self._lock:
            if resource_cls is None:
                self._suspended += 1
            else:
                self._disabled.add(resource_cls)

    def enable(self, resource_cls: Optional[type] = None) -> None:
        with self._lock:
            if resource_cls is None:
                self._suspended = max(0, self._suspended - 1)
            else:
                self._disabled.discard(resource_cls)

    @contextmanager
    def observers_suspended(self) -> Generator[None, None, None]:
        """Suspend all dispatch for the block; the previous state is restored even on error."""
        self.disable()
        try:
            yield
        finally:
            self.enable()

    def without_observers(self, callback: Callable[[], T]) -> T:
        with self.observers_suspended():
            return callback()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "resources": {
                    resource_cls.__name__: [type(observer).__name__ for observer in observers]
                    for resource_cls, observers in self._observers.items()
                },
                "total_observers": sum(len(observers) for observers in self._observers.values()),
                "suspended": self._suspended > 0,
                "disabled": sorted(resource_cls.__name__ for resource_cls in self._disabled),
            }


# Global observer registry instance
observer_registry = ObserverRegistry()


def observers_for(resource_cls: type) -> ObserverRegistry:
    """Registry a resource type dispatches through."""
    return getattr(resource_cls, "observer_registry", None) or observer_registry


def is_observable(resource_cls: type) -> bool:
    return issubclass(resource_cls, Observable)
