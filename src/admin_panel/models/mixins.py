"""
Reusable column mixins for entity models managed by the admin panel.

A model "supports soft deletes" exactly when it subclasses SoftDeleteMixin;
the trash service checks for the mixin rather than for a column name.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    """Adds created_at/updated_at columns, filled by the Base insert/update listeners."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the row was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the row was last updated."""


class SoftDeleteMixin:
    """
    Marks a model as soft-deletable.

    Trashed rows keep existing with deleted_at set; default resource queries
    exclude them.
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, index=True, default=None
    )
    """Timestamp when the row was moved to the trash. NULL while active."""

    @property
    def trashed(self) -> bool:
        return self.deleted_at is not None
