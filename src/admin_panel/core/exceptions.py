"""
Domain exceptions raised by the resource core.

The API layer translates these into HTTP responses; services raise them
without knowing about HTTP.
"""

from typing import Dict, List, Optional


class ResourceNotFoundError(LookupError):
    """Raised when a resource URI key or an entity key does not resolve."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message)
        self.resource = resource


class AuthorizationError(PermissionError):
    """Raised when a policy or authorization callback denies an ability."""

    def __init__(self, ability: str, message: Optional[str] = None):
        super().__init__(message or f"Unauthorized to {ability} this resource.")
        self.ability = ability


class ValidationFailed(ValueError):
    """Raised when input is rejected by the assembled rule set."""

    def __init__(self, errors: Dict[str, List[str]], message: str = "The given data was invalid."):
        super().__init__(message)
        self.errors = errors
        self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"message": self.message, "errors": self.errors}


class ExportError(RuntimeError):
    """Raised by export formatters; converted to a failure result by the export entry point."""
    pass


class ObserverNotFoundError(LookupError):
    """Raised when an explicitly configured observer class cannot be imported."""
    pass
