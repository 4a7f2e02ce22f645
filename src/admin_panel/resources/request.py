"""
Request context passed to resources, fields, filters and policies.

Decouples the resource core from FastAPI: the API layer builds an
AdminRequest from the incoming HTTP request, tests build one directly.
"""

import json
import logging
import re
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

_FILTER_PARAM = re.compile(r"^filters\[(?P<key>[^\]]+)\]$")


class AdminRequest:
    """Authenticated user, query-string parameters and body input of one request."""

    def __init__(
        self,
        user: Any = None,
        query: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ):
        self.user = user
        self.query: Dict[str, Any] = dict(query or {})
        self.data: Dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value from the query string, falling back to the body."""
        if key in self.query:
            return self.query[key]
        return self.data.get(key, default)

    def input(self, key: str, default: Any = None) -> Any:
        """Read a value from the body, falling back to the query string."""
        if key in self.data:
            return self.data[key]
        return self.query.get(key, default)

    def has(self, key: str) -> bool:
        """True when the body carries the key (even with a null value)."""
        return key in self.data

    def all(self) -> Dict[str, Any]:
        return {**self.query, **self.data}

    def filters(self) -> Dict[str, Any]:
        """
        Parse the filter map.

        Accepts a JSON object in "filters" (or an already-decoded dict) and
        "filters[key]=value" style parameters; the latter win on conflict.
        """
        parsed: Dict[str, Any] = {}
        raw = self.get("filters")
        if isinstance(raw, Mapping):
            parsed.update(raw)
        elif isinstance(raw, str) and raw.strip():
            try:
                decoded = json.loads(raw)
            except ValueError:
                logger.warning(f"Ignoring malformed filters parameter: {raw!r}")
            else:
                if isinstance(decoded, dict):
                    parsed.update(decoded)

        for key, value in self.query.items():
            match = _FILTER_PARAM.match(key)
            if match:
                parsed[match.group("key")] = value
        return parsed

    def is_editing(self) -> bool:
        return str(self.get("editing", "")).lower() in ("1", "true", "yes")

    def user_key(self) -> Optional[str]:
        if self.user is None:
            return None
        user_id = getattr(self.user, "user_id", None) or getattr(self.user, "id", None)
        return str(user_id) if user_id is not None else None

    def __repr__(self) -> str:
        return f"AdminRequest(user={self.user!r}, query={self.query!r}, data_keys={sorted(self.data)})"
