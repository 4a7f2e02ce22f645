"""
Unit tests for batched bulk operations.
"""

import json
from dataclasses import replace

import pytest

from admin_panel.core.exceptions import ResourceNotFoundError, ValidationFailed
from admin_panel.resources.capabilities import BulkOperable, BulkOperationsConfig
from admin_panel.resources.request import AdminRequest
from admin_panel.services.bulk_operation_service import BulkOperationService
from tests.utils import (
    NoteResource,
    Post,
    PostResource,
    ProductResource,
    Section,
    SectionResource,
    create_post,
    create_product,
    create_section,
    make_user,
)


@pytest.fixture
def request_():
    return AdminRequest(user=make_user())


def sections(db, *names):
    return [create_section(db, name) for name in names]


class LockedSectionResource(SectionResource):
    """Sections named "locked" may not be updated or deleted."""

    def authorized_to_update(self, request):
        return self.resource.name != "locked"

    def authorized_to_delete(self, request):
        return self.resource.name != "locked"


class StrictSectionResource(SectionResource):
    bulk_operations = replace(SectionResource.bulk_operations, continue_on_error=False)


class BulkPostResource(BulkOperable, PostResource):
    pass


class BulkProductResource(BulkOperable, ProductResource):
    bulk_operations = BulkOperationsConfig(batch_size=10)


class TestAvailability:
    def test_configured_operations(self, request_):
        operations = BulkOperationService.available_operations(SectionResource, request_)
        assert [operation["key"] for operation in operations] == ["delete", "update", "uppercase"]
        assert operations[0]["requires_confirmation"] is True
        assert operations[1]["requires_data"] is True

    def test_export_requires_exportable_resource(self, request_):
        assert not BulkOperationService.can_perform(BulkPostResource, request_, "export")
        assert BulkOperationService.can_perform(BulkProductResource, request_, "export")
        assert "export" not in [op["key"] for op in BulkOperationService.available_operations(BulkPostResource, request_)]

    def test_anonymous_requests_get_nothing(self):
        assert BulkOperationService.available_operations(SectionResource, AdminRequest()) == []

    def test_resources_without_bulk_operations(self, request_):
        assert BulkOperationService.available_operations(NoteResource, request_) == []
        assert BulkOperationService.stats(NoteResource)["enabled"] is False

    def test_stats(self):
        stats = BulkOperationService.stats(SectionResource)
        assert stats == {
            "enabled": True,
            "batch_size": 2,
            "continue_on_error": True,
            "available_operations": ["delete", "update", "uppercase"],
            "total_operations": 3,
        }


class TestValidation:
    def test_unknown_operation(self, db_session, request_):
        with pytest.raises(ResourceNotFoundError):
            BulkOperationService.execute(db_session, SectionResource, request_, "archive", [1])

    def test_resource_without_bulk_operations(self, db_session, request_):
        with pytest.raises(ResourceNotFoundError):
            BulkOperationService.execute(db_session, NoteResource, request_, "delete", [1])

    def test_empty_selection(self, db_session, request_):
        with pytest.raises(ValidationFailed) as excinfo:
            BulkOperationService.execute(db_session, SectionResource, request_, "delete", [])
        assert "ids" in excinfo.value.errors

    def test_oversized_selection(self, db_session, request_):
        # batch_size 2 allows twenty keys
        with pytest.raises(ValidationFailed) as excinfo:
            BulkOperationService.execute(db_session, SectionResource, request_, "delete", list(range(21)))
        assert excinfo.value.errors["ids"] == ["Too many items selected. Maximum allowed: 20"]

    def test_update_requires_data(self, db_session, request_):
        with pytest.raises(ValidationFailed) as excinfo:
            BulkOperationService.execute(db_session, SectionResource, request_, "update", [1])
        assert "data" in excinfo.value.errors


class TestDelete:
    def test_deletes_in_batches(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A", "B", "C")]

        result = BulkOperationService.execute(db_session, SectionResource, request_, "delete", ids)

        assert result["success"] is True
        assert result["processed"] == 3
        assert result["failed"] == 0
        assert [detail["processed"] for detail in result["details"]] == [2, 1]
        assert result["details"][-1]["progress"] == 100.0
        assert db_session.query(Section).count() == 0

    def test_unauthorized_and_missing_items_are_reported(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A", "locked")] + [999]

        result = BulkOperationService.execute(db_session, LockedSectionResource, request_, "delete", ids)

        assert result["processed"] == 1
        assert result["failed"] == 2
        assert result["success"] is True
        assert result["errors"] == [
            f"Failed to process item {ids[1]}: unauthorized",
            "Failed to process item 999: not found",
        ]
        assert result["message"] == "Bulk operation completed with 1 successes and 2 failures."
        assert [section.name for section in db_session.query(Section).all()] == ["locked"]

    def test_soft_deletable_resources_are_trashed(self, db_session, request_):
        post = create_post(db_session, "Hello")

        result = BulkOperationService.execute(db_session, BulkPostResource, request_, "delete", [post.id])

        assert result["processed"] == 1
        db_session.refresh(post)
        assert post.deleted_at is not None
        assert db_session.query(Post).count() == 1

    def test_stops_after_failing_batch(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A")] + [999] + [
            section.id for section in sections(db_session, "B", "C")
        ]

        result = BulkOperationService.execute(db_session, StrictSectionResource, request_, "delete", ids)

        assert result["success"] is False
        assert result["message"] == "Bulk operation stopped due to errors."
        assert len(result["details"]) == 1
        assert sorted(section.name for section in db_session.query(Section).all()) == ["B", "C"]


class TestUpdate:
    def test_applies_data_through_update_fields(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A", "B")]

        result = BulkOperationService.execute(
            db_session, SectionResource, request_, "update", ids, {"name": "Renamed"}
        )

        assert result["processed"] == 2
        assert [section.name for section in db_session.query(Section).order_by(Section.id)] == ["Renamed", "Renamed"]

    def test_invalid_data_fails_each_item(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A")]

        result = BulkOperationService.execute(db_session, SectionResource, request_, "update", ids, {"name": ""})

        assert result["processed"] == 0
        assert result["success"] is False
        assert result["errors"][0].startswith(f"Failed to process item {ids[0]}:")

    def test_data_without_updatable_fields(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A")]
        result = BulkOperationService.execute(db_session, SectionResource, request_, "update", ids, {"color": "red"})
        assert result["errors"] == [f"Failed to process item {ids[0]}: no updatable fields in data"]

    def test_unauthorized_items_are_left_alone(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "A", "locked")]

        result = BulkOperationService.execute(
            db_session, LockedSectionResource, request_, "update", ids, {"name": "Renamed"}
        )

        assert result["processed"] == 1
        assert sorted(section.name for section in db_session.query(Section).all()) == ["Renamed", "locked"]


class TestCustomOperations:
    def test_dispatches_to_resource_method(self, db_session, request_):
        ids = [section.id for section in sections(db_session, "guides", "fixed")]

        result = BulkOperationService.execute(db_session, SectionResource, request_, "uppercase", ids)

        assert result["processed"] == 1
        assert result["errors"] == [f"Failed to process item {ids[1]}: 'uppercase' was refused"]
        assert sorted(section.name for section in db_session.query(Section).all()) == ["GUIDES", "fixed"]

    def test_operation_without_handler(self, db_session, request_):
        class ArchivingSectionResource(SectionResource):
            bulk_operations = BulkOperationsConfig(operations={"archive": "Archive"})

        ids = [section.id for section in sections(db_session, "A")]
        result = BulkOperationService.execute(db_session, ArchivingSectionResource, request_, "archive", ids)
        assert result["failed"] == 1
        assert "cannot handle 'archive'" in result["errors"][0]


class TestExport:
    def test_exports_selected_keys_only(self, db_session, request_):
        keep = create_product(db_session, "Kept")
        create_product(db_session, "Skipped")

        result = BulkOperationService.execute(
            db_session, BulkProductResource, request_, "export", [keep.id], {"format": "json"}
        )

        assert result["success"] is True
        assert result["processed"] == 1
        assert result["export"]["format"] == "json"
        assert [row["name"] for row in json.loads(result["export"]["data"])] == ["KEPT"]
