"""
Test utilities: sample models, resources, policies and observers.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean as SABoolean, Column, Float, ForeignKey, Integer, String, Table, Text as SAText
from sqlalchemy.orm import Mapped, mapped_column, relationship

from admin_panel.auth.dependencies import UserContext
from admin_panel.core.database import Base
from admin_panel.fields import ID, BelongsTo, BelongsToMany, Boolean, HasMany, Number, Password, Select, Text, Textarea
from admin_panel.models.mixins import SoftDeleteMixin, TimestampMixin
from admin_panel.resources.actions import Action
from admin_panel.resources.capabilities import (
    BulkOperable,
    BulkOperationsConfig,
    Cacheable,
    CachingConfig,
    Exportable,
    ExportConfig,
    Nestable,
    NestingConfig,
    Observable,
    ObserverConfig,
    SoftDeletable,
    SoftDeleteConfig,
    Versionable,
    VersioningConfig,
)
from admin_panel.resources.filters import BooleanFilter, SelectFilter
from admin_panel.resources.resource import Resource
from admin_panel.services.jwt_service import TokenPayload, jwt_service
from admin_panel.services.observer_service import ResourceObserver
from admin_panel.utils.datetime_utils import utc_now


# ===== Models =====

class Product(TimestampMixin, Base):
    __tablename__ = "test_products"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    sku: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    price: Mapped[float] = mapped_column(Float, default=0)
    status: Mapped[str] = mapped_column(String(32), default="draft")
    is_active: Mapped[bool] = mapped_column(SABoolean, default=True)
    password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Post(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "test_posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    body: Mapped[Optional[str]] = mapped_column(SAText, nullable=True)
    views: Mapped[int] = mapped_column(Integer, default=0)


class Note(Base):
    __tablename__ = "test_notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    text: Mapped[str] = mapped_column(String(255))


section_tags = Table(
    "test_section_tags",
    Base.metadata,
    Column("section_id", ForeignKey("test_sections.id"), primary_key=True),
    Column("tag_id", ForeignKey("test_tags.id"), primary_key=True),
)


class Tag(Base):
    __tablename__ = "test_tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    label: Mapped[str] = mapped_column(String(64))


class Section(Base):
    __tablename__ = "test_sections"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    parent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("test_sections.id"), nullable=True)

    parent: Mapped[Optional["Section"]] = relationship(back_populates="children", remote_side="Section.id")
    children: Mapped[List["Section"]] = relationship(back_populates="parent", order_by="Section.id")
    tags: Mapped[List[Tag]] = relationship(secondary=section_tags, order_by="Tag.id")


# ===== Policies =====

class ProductPolicy:
    """Admins may do anything; viewers may only read."""

    def view_any(self, user: Any) -> bool:
        return True

    def view(self, user: Any, product: Any) -> bool:
        return True

    def create(self, user: Any) -> bool:
        return user.is_admin()

    def update(self, user: Any, product: Any) -> bool:
        return user.is_admin()

    def delete(self, user: Any, product: Any) -> bool:
        return user.is_admin()

    def run_action(self, user: Any, action: Any) -> bool:
        return user.is_admin()

    def export(self, user: Any) -> bool:
        return True


class ReadOnlyPolicy:
    def view_any(self, user: Any) -> bool:
        return True

    def view(self, user: Any, entity: Any) -> bool:
        return True


# ===== Observers =====

class PostAuditObserver(ResourceObserver):
    """Records every event; refuses to restore posts titled "locked"."""

    def __init__(self) -> None:
        self.events: List[str] = []

    def creating(self, entity: Any) -> Any:
        self.events.append("creating")

    def created(self, entity: Any) -> Any:
        self.events.append("created")

    def updated(self, entity: Any) -> Any:
        self.events.append("updated")

    def trashed(self, entity: Any) -> Any:
        self.events.append("trashed")

    def restoring(self, entity: Any) -> Any:
        self.events.append("restoring")
        if entity.title == "locked":
            return False

    def restored(self, entity: Any) -> Any:
        self.events.append("restored")

    def force_deleted(self, entity: Any) -> Any:
        self.events.append("force_deleted")


# ===== Actions =====

class PublishProducts(Action):
    name = "Publish"

    def handle(self, db, request, entities) -> Dict[str, Any]:
        for product in entities:
            product.status = "published"
        return self.message(f"Published {len(entities)} product(s).")


# ===== Resources =====

class ProductResource(Cacheable, Exportable, Versionable, Resource):
    model = Product
    title = "name"
    search = ("name", "sku")
    group = "Catalog"
    caching = CachingConfig(ttl=60)
    exporting = ExportConfig(transformations={"name": lambda value, row: value.upper()})
    versioning = VersioningConfig(max_versions=3)

    def fields(self, request):
        return [
            ID(),
            Text("Name", rules="required|string|max:255", sortable=True),
            Text("SKU", "sku", update_rules="sometimes|string"),
            Number("Price", rules="required|numeric|min:0", sortable=True),
            Select("Status", options={"draft": "Draft", "published": "Published"}),
            Boolean("Active", "is_active"),
            Password().hide_from_index(),
        ]

    def filters(self, request):
        return [
            SelectFilter("status", {"Draft": "draft", "Published": "published"}),
            BooleanFilter("is_active", {"Active": True}, key="active"),
        ]

    def actions(self, request):
        return [PublishProducts()]


class PostResource(SoftDeletable, Observable, Resource):
    model = Post
    title = "title"
    group = "Content"
    soft_deletes = SoftDeleteConfig(retention_days=30)
    observing = ObserverConfig(observers=(PostAuditObserver,), guess=False)

    def fields(self, request):
        return [
            ID(),
            Text("Title", rules="required", searchable=True),
            Textarea("Body"),
            Number("Views", rules="integer|min:0"),
        ]


class NoteResource(Resource):
    model = Note

    def fields(self, request):
        return [ID(), Text("Text")]


class TagResource(Resource):
    model = Tag
    title = "label"
    search = ("label",)

    def fields(self, request):
        return [ID(), Text("Label", rules="required")]


class SectionResource(Nestable, BulkOperable, Resource):
    """Self-nesting sections with tags; bulk operations run two keys per batch."""

    model = Section
    title = "name"
    search = ("name",)
    nesting = NestingConfig(max_depth=5)
    bulk_operations = BulkOperationsConfig(
        batch_size=2,
        operations={"delete": "Delete Selected", "update": "Update Selected", "uppercase": "Uppercase Names"},
    )

    def fields(self, request):
        return [
            ID(),
            Text("Name", rules="required|string|max:255"),
            BelongsTo("Parent", "parent", SectionResource),
            HasMany("Children", "children", SectionResource),
            BelongsToMany("Tags", "tags", TagResource),
        ]

    def bulk_uppercase(self, db, request, data):
        if self.resource.name == "fixed":
            return False
        self.resource.name = self.resource.name.upper()


TEST_RESOURCES = (ProductResource, PostResource, NoteResource)


# ===== Helpers =====

def make_user(roles: Optional[List[str]] = None, user_id: str = "1") -> UserContext:
    return UserContext(user_id=user_id, email=f"user{user_id}@example.com", roles=roles if roles is not None else ["admin"])


def create_token(roles: List[str], user_id: str = "1") -> str:
    """Create a JWT token for an admin panel user."""
    return jwt_service.create_access_token(
        TokenPayload(sub=user_id, email=f"user{user_id}@example.com", roles=roles)
    )


def create_product(db, name: str = "Widget", price: float = 10.0, **kwargs: Any) -> Product:
    product = Product(name=name, price=price, **kwargs)
    db.add(product)
    db.commit()
    return product


def create_post(db, title: str = "Hello", trashed_days_ago: Optional[int] = None, **kwargs: Any) -> Post:
    post = Post(title=title, **kwargs)
    if trashed_days_ago is not None:
        post.deleted_at = utc_now() - timedelta(days=trashed_days_ago)
    db.add(post)
    db.commit()
    return post


def create_tag(db, label: str = "news") -> Tag:
    tag = Tag(label=label)
    db.add(tag)
    db.commit()
    return tag


def create_section(db, name: str = "Root", parent: Optional[Section] = None, tags: Optional[List[Tag]] = None) -> Section:
    section = Section(name=name, parent=parent, tags=list(tags or []))
    db.add(section)
    db.commit()
    return section
