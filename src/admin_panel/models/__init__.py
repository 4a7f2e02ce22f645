# Package initialization
# Import all models to ensure they're registered with SQLAlchemy metadata
from .mixins import SoftDeleteMixin, TimestampMixin
from .resource_version import ResourceVersion

__all__ = [
    "SoftDeleteMixin",
    "TimestampMixin",
    "ResourceVersion",
]
