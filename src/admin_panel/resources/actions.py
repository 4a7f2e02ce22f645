"""
Resource actions: operations run against a selection of entities.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from admin_panel.resources.request import AdminRequest
from admin_panel.utils.naming import kebab, strip_suffix, title

logger = logging.getLogger(__name__)


class Action:
    """Base action; subclasses implement handle()."""

    name: Optional[str] = None
    destructive: bool = False
    confirm_text: str = "Are you sure you want to run this action?"

    def __init__(self) -> None:
        self.name = self.name or title(strip_suffix(type(self).__name__, "Action") or type(self).__name__)
        self.see_callback: Optional[Callable[[AdminRequest], bool]] = None

    @classmethod
    def uri_key(cls) -> str:
        return kebab(cls.__name__)

    def can_see(self, callback: Callable[[AdminRequest], bool]) -> "Action":
        self.see_callback = callback
        return self

    def authorize(self, request: AdminRequest) -> bool:
        if self.see_callback is None:
            return True
        return bool(self.see_callback(request))

    def handle(self, db: Session, request: AdminRequest, entities: List[Any]) -> Dict[str, Any]:
        """Run against the selected entities; returns a response message payload."""
        raise NotImplementedError

    @staticmethod
    def message(text: str) -> Dict[str, Any]:
        return {"message": text}

    @staticmethod
    def danger(text: str) -> Dict[str, Any]:
        return {"danger": text}

    def json_serialize(self) -> Dict[str, Any]:
        return {
            "uri_key": self.uri_key(),
            "name": self.name,
            "destructive": self.destructive,
            "confirm_text": self.confirm_text,
        }


def find_action(actions: List[Action], uri_key: str) -> Optional[Action]:
    for action in actions:
        if action.uri_key() == uri_key:
            return action
    return None
