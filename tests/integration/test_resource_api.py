"""
Integration tests for the resource API endpoints.

Covers CRUD, authorization, validation, paging, actions, export and version
history against the test resources registered on the panel fixture.
"""

import json
from unittest.mock import patch

import pytest

from admin_panel.auth.dependencies import get_current_user
from admin_panel.main import app
from admin_panel.models.resource_version import ResourceVersion
from admin_panel.services.cache_service import ResourceCacheService
from admin_panel.services.version_service import VersionService
from tests.utils import Note, Product, ProductResource, create_product, create_token


@pytest.fixture
def viewer_client(client, viewer_user):
    """Same client, authenticated as a read-only viewer."""
    app.dependency_overrides[get_current_user] = lambda: viewer_user
    return client


class TestNavigation:
    def test_lists_grouped_resources(self, client, api_prefix):
        response = client.get(api_prefix)
        assert response.status_code == 200
        groups = {group["group"]: group["resources"] for group in response.json()["groups"]}
        assert list(groups) == ["Catalog", "Content", "Other"]
        assert groups["Catalog"] == [{"uri_key": "products", "label": "Products", "icon": None}]

    def test_requires_authentication(self, client, api_prefix):
        app.dependency_overrides.pop(get_current_user)
        assert client.get(api_prefix).status_code == 401

    def test_bearer_token(self, client, api_prefix):
        app.dependency_overrides.pop(get_current_user)
        token = create_token(["admin"])
        response = client.get(api_prefix, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200


class TestIndex:
    def test_index_payload(self, client, api_prefix, db_session):
        create_product(db_session, "Widget", 10.0, sku="W-1")
        create_product(db_session, "Gadget", 20.0)

        response = client.get(f"{api_prefix}/products")

        assert response.status_code == 200
        body = response.json()
        assert body["resource"]["uri_key"] == "products"
        assert body["resource"]["authorized_to_create"] is True
        assert [row["name"] for row in body["data"]] == ["Gadget", "Widget"]
        assert "password" not in body["data"][0]
        assert body["meta"]["total"] == 2
        assert body["sort"] == {"field": None, "direction": "desc"}
        assert [item["key"] for item in body["filters"]] == ["status", "active"]
        assert body["actions"][0]["uri_key"] == "publish-products"
        assert "trash" not in body

    def test_unknown_resource(self, client, api_prefix):
        response = client.get(f"{api_prefix}/unicorns")
        assert response.status_code == 404

    def test_per_page_is_capped(self, client, api_prefix):
        response = client.get(f"{api_prefix}/products", params={"per_page": 1000})
        assert response.status_code == 200
        assert response.json()["per_page"] == 100
        assert response.json()["meta"]["per_page"] == 100

    def test_search_sort_and_filters(self, client, api_prefix, db_session):
        create_product(db_session, "Widget", 10.0)
        create_product(db_session, "Gadget", 20.0, status="published")
        create_product(db_session, "Gizmo", 15.0)

        sorted_rows = client.get(
            f"{api_prefix}/products", params={"sort_field": "price", "sort_direction": "asc"}
        ).json()
        assert [row["name"] for row in sorted_rows["data"]] == ["Widget", "Gizmo", "Gadget"]
        assert sorted_rows["sort"] == {"field": "price", "direction": "asc"}

        searched = client.get(f"{api_prefix}/products", params={"search": "giz"}).json()
        assert [row["name"] for row in searched["data"]] == ["Gizmo"]

        filtered = client.get(
            f"{api_prefix}/products", params={"filters": json.dumps({"status": "published"})}
        ).json()
        assert [row["name"] for row in filtered["data"]] == ["Gadget"]
        assert filtered["applied_filters"] == {"status": "published"}

    def test_applied_filters_echo_only_registered_filters(self, client, api_prefix, db_session):
        create_product(db_session, "Widget", status="published")
        body = client.get(
            f"{api_prefix}/products",
            params={"filters": json.dumps({"status": "published", "bogus": "x", "active": ""})},
        ).json()
        assert body["meta"]["total"] == 1
        assert body["applied_filters"] == {"status": "published"}

    def test_index_is_cached_until_a_write(self, client, api_prefix, db_session, cache_store):
        create_product(db_session, "Widget")
        assert client.get(f"{api_prefix}/products").json()["meta"]["total"] == 1
        assert cache_store.stats().size == 1

        client.post(f"{api_prefix}/products", json={"name": "Gadget", "price": 3})
        assert client.get(f"{api_prefix}/products").json()["meta"]["total"] == 2

    def test_pagination(self, client, api_prefix, db_session):
        for n in range(5):
            create_product(db_session, f"Item {n}")
        body = client.get(f"{api_prefix}/products", params={"per_page": 2, "page": 3}).json()
        assert len(body["data"]) == 1
        assert body["meta"]["last_page"] == 3


class TestCreateAndStore:
    def test_creation_schema(self, client, api_prefix):
        response = client.get(f"{api_prefix}/products/create")
        assert response.status_code == 200
        attributes = [field["attribute"] for field in response.json()["fields"]]
        assert "id" not in attributes
        assert attributes[:2] == ["name", "sku"]

    def test_store(self, client, api_prefix, db_session):
        response = client.post(f"{api_prefix}/products", json={"name": "Widget", "price": "9.5", "password": "hunter2"})

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Product created successfully."
        assert body["redirect"] == f"/admin/resources/products/{body['id']}"
        assert response.headers["location"] == body["redirect"]
        assert body["resource"]["name"] == "Widget"

        product = db_session.query(Product).one()
        assert product.price == 9.5
        assert product.password != "hunter2"

    def test_validation_failure_persists_nothing(self, client, api_prefix, db_session):
        response = client.post(f"{api_prefix}/products", json={"name": "Widget", "price": -5})

        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "The given data was invalid."
        assert list(body["errors"]) == ["price"]
        assert db_session.query(Product).count() == 0

    def test_missing_required_fields(self, client, api_prefix):
        response = client.post(f"{api_prefix}/products", json={})
        assert response.status_code == 422
        assert set(response.json()["errors"]) == {"name", "price"}

    def test_invalid_json(self, client, api_prefix):
        response = client.post(
            f"{api_prefix}/products", content=b"{nope", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_viewer_cannot_create(self, viewer_client, api_prefix, db_session):
        response = viewer_client.post(f"{api_prefix}/products", json={"name": "Widget", "price": 1})
        assert response.status_code == 403
        assert db_session.query(Product).count() == 0
        assert viewer_client.get(f"{api_prefix}/products/create").status_code == 403

    def test_store_records_first_version(self, client, api_prefix):
        created = client.post(f"{api_prefix}/products", json={"name": "Widget", "price": 1}).json()
        versions = client.get(f"{api_prefix}/products/{created['id']}/versions").json()
        assert [version["reason"] for version in versions["versions"]] == ["Created"]
        assert versions["versions"][0]["user_id"] == "1"


class TestShowAndUpdate:
    def test_show(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget", 10.0)
        response = client.get(f"{api_prefix}/products/{product.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == product.id
        assert body["title"] == "Widget"
        assert body["data"]["price"] == 10.0
        assert body["authorizations"]["authorized_to_update"] is True
        assert body["versions"]["enabled"] is True
        assert {field["attribute"]: field["value"] for field in body["fields"]}["name"] == "Widget"

    def test_show_missing_and_malformed_keys(self, client, api_prefix):
        assert client.get(f"{api_prefix}/products/999").status_code == 404
        assert client.get(f"{api_prefix}/products/abc").status_code == 404

    def test_edit_schema(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        response = client.get(f"{api_prefix}/products/{product.id}/edit")
        assert response.status_code == 200
        values = {field["attribute"]: field["value"] for field in response.json()["fields"]}
        assert values["name"] == "Widget"
        assert values["password"] is None

    def test_update(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget", 10.0, sku="W-1")
        response = client.put(f"{api_prefix}/products/{product.id}", json={"name": "Gadget", "price": 12})

        assert response.status_code == 200
        assert response.headers["location"].endswith(f"/products/{product.id}")
        db_session.refresh(product)
        assert (product.name, product.price, product.sku) == ("Gadget", 12, "W-1")

    def test_patch_uses_update_rules(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget", 10.0)
        response = client.patch(
            f"{api_prefix}/products/{product.id}", json={"name": "Widget", "price": 10, "sku": 42}
        )
        assert response.status_code == 422
        assert list(response.json()["errors"]) == ["sku"]

    def test_viewer_cannot_update(self, viewer_client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        response = viewer_client.put(f"{api_prefix}/products/{product.id}", json={"name": "Nope", "price": 1})
        assert response.status_code == 403
        db_session.refresh(product)
        assert product.name == "Widget"

    def test_viewer_can_view(self, viewer_client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        body = viewer_client.get(f"{api_prefix}/products/{product.id}").json()
        assert body["authorizations"]["authorized_to_update"] is False


class TestSideEffectsAfterCommit:
    def test_version_failure_does_not_fail_writes(self, client, api_prefix, db_session):
        with patch.object(VersionService, "create_version", side_effect=RuntimeError("versions table locked")):
            created = client.post(f"{api_prefix}/products", json={"name": "Widget", "price": 10})
            assert created.status_code == 201
            key = created.json()["id"]

            updated = client.put(f"{api_prefix}/products/{key}", json={"name": "Gadget", "price": 12})
            assert updated.status_code == 200

        product = db_session.query(Product).one()
        assert (product.name, product.price) == ("Gadget", 12)
        assert db_session.query(ResourceVersion).count() == 0

    def test_cache_failure_does_not_fail_writes(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget", 10.0)
        with patch.object(ResourceCacheService, "clear_resource_cache", side_effect=ConnectionError("cache down")):
            response = client.put(f"{api_prefix}/products/{product.id}", json={"name": "Gadget", "price": 12})
            assert response.status_code == 200

            deleted = client.delete(f"{api_prefix}/products/{product.id}")
            assert deleted.status_code == 200

        assert db_session.query(Product).count() == 0


class TestDestroy:
    def test_hard_delete(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        response = client.delete(f"{api_prefix}/products/{product.id}")

        assert response.status_code == 200
        assert response.json() == {
            "message": "Product deleted.",
            "trashed": False,
            "redirect": "/admin/resources/products",
        }
        assert response.headers["location"] == "/admin/resources/products"
        assert db_session.query(Product).count() == 0

    def test_viewer_cannot_delete(self, viewer_client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        assert viewer_client.delete(f"{api_prefix}/products/{product.id}").status_code == 403
        assert db_session.query(Product).count() == 1


class TestActions:
    def test_run_action(self, client, api_prefix, db_session):
        first = create_product(db_session, "Widget")
        second = create_product(db_session, "Gadget")
        response = client.post(
            f"{api_prefix}/products/actions/publish-products",
            json={"resources": [first.id, second.id, 999]},
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Published 2 product(s)."}
        assert {product.status for product in db_session.query(Product).all()} == {"published"}

    def test_unknown_action(self, client, api_prefix):
        response = client.post(f"{api_prefix}/products/actions/launch-rockets", json={"resources": []})
        assert response.status_code == 404

    def test_resources_must_be_a_list(self, client, api_prefix):
        response = client.post(f"{api_prefix}/products/actions/publish-products", json={"resources": "1"})
        assert response.status_code == 400

    def test_viewer_cannot_run_actions(self, viewer_client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        response = viewer_client.post(
            f"{api_prefix}/products/actions/publish-products", json={"resources": [product.id]}
        )
        assert response.status_code == 403


class TestExport:
    def test_csv_download(self, client, api_prefix, db_session):
        create_product(db_session, "Widget", 10.0)
        response = client.get(f"{api_prefix}/products/export", params={"fields": "id,name"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["x-export-count"] == "1"
        assert 'filename="product_export_' in response.headers["content-disposition"]
        assert response.text.splitlines() == ["id,name", "1,WIDGET"]

    def test_json_with_filename(self, client, api_prefix, db_session):
        create_product(db_session, "Widget", 10.0)
        response = client.get(
            f"{api_prefix}/products/export", params={"format": "json", "filename": "catalog", "fields": "name"}
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="catalog.json"'
        assert response.json() == [{"name": "WIDGET"}]

    def test_unsupported_format(self, client, api_prefix):
        response = client.get(f"{api_prefix}/products/export", params={"format": "docx"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Unsupported export format: docx"

    def test_non_exportable_resource(self, client, api_prefix):
        assert client.get(f"{api_prefix}/notes/export").status_code == 400


class TestVersions:
    def test_update_history_compare_and_restore(self, client, api_prefix, db_session):
        created = client.post(f"{api_prefix}/products", json={"name": "Widget", "price": 10}).json()
        key = created["id"]
        client.put(f"{api_prefix}/products/{key}", json={"name": "Gadget", "price": 12})

        history = client.get(f"{api_prefix}/products/{key}/versions").json()
        assert [version["version_number"] for version in history["versions"]] == [1, 2]
        assert history["stats"]["total_versions"] == 2

        diff = client.get(f"{api_prefix}/products/{key}/versions/compare", params={"from": 1, "to": 2}).json()
        assert diff["changes"]["name"] == {"old": "Widget", "new": "Gadget", "type": "modified"}

        response = client.post(f"{api_prefix}/products/{key}/versions/1/restore", json={"reason": "Rollback"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Restored to version 1."}
        assert client.get(f"{api_prefix}/products/{key}").json()["data"]["name"] == "Widget"

    def test_history_is_capped(self, client, api_prefix):
        key = client.post(f"{api_prefix}/products", json={"name": "Widget", "price": 1}).json()["id"]
        for price in range(2, 6):
            client.put(f"{api_prefix}/products/{key}", json={"name": "Widget", "price": price})
        history = client.get(f"{api_prefix}/products/{key}/versions").json()
        assert [version["version_number"] for version in history["versions"]] == [3, 4, 5]

    def test_restore_unknown_version(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        response = client.post(f"{api_prefix}/products/{product.id}/versions/7/restore")
        assert response.status_code == 404

    def test_compare_requires_positive_versions(self, client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        response = client.get(f"{api_prefix}/products/{product.id}/versions/compare", params={"from": 0, "to": 1})
        assert response.status_code == 422

    def test_non_versioned_resource(self, client, api_prefix, db_session):
        note = Note(text="hi")
        db_session.add(note)
        db_session.commit()
        assert client.get(f"{api_prefix}/notes/{note.id}/versions").status_code == 404

    def test_viewer_cannot_restore_versions(self, viewer_client, api_prefix, db_session):
        product = create_product(db_session, "Widget")
        assert viewer_client.post(f"{api_prefix}/products/{product.id}/versions/1/restore").status_code == 403


def test_resource_registered_on_panel(panel):
    products = panel.find_resource("products")
    assert issubclass(products, ProductResource)
    assert products.declared_class() is ProductResource
