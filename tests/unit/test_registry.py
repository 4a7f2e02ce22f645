"""
Unit tests for the AdminPanel resource registry.
"""

import pytest

from admin_panel.auth.policies import PolicyRegistry
from admin_panel.fields import ID, Text
from admin_panel.resources.registry import AdminPanel, admin_panel, get_admin_panel
from admin_panel.resources.request import AdminRequest
from admin_panel.resources.resource import Resource
from admin_panel.services.observer_service import ObserverRegistry
from tests.utils import (
    Note,
    NoteResource,
    PostAuditObserver,
    PostResource,
    ProductPolicy,
    ProductResource,
    ReadOnlyPolicy,
    make_user,
)


class DuplicateNotesResource(Resource):
    model = Note

    @classmethod
    def uri_key(cls):
        return "notes"

    def fields(self, request):
        return [ID(), Text("Text")]


class HiddenNoteResource(NoteResource):
    display_in_navigation = False


class DenyAllPolicy:
    def view_any(self, user):
        return False


def test_register_and_lookup(panel):
    products = panel.find_resource("products")
    assert products.declared_class() is ProductResource
    assert panel.find_resource("posts").declared_class() is PostResource
    assert panel.find_resource("missing") is None
    assert panel.resource(NoteResource) is panel.find_resource("notes")
    assert panel.resource(products) is products
    assert [item.declared_class() for item in panel.resources()] == [ProductResource, PostResource, NoteResource]


def test_register_wires_bound_subclasses(panel):
    products = panel.find_resource("products")
    posts = panel.find_resource("posts")
    assert issubclass(products, ProductResource)
    assert products.__name__ == "ProductResource"
    assert products.uri_key() == "products"
    assert products.policy_registry is panel.policy_registry
    assert posts.observer_registry is panel.observer_registry
    assert products.cache_service is panel.cache_service
    assert panel.observer_registry.has_observers(posts)


def test_register_leaves_declared_class_untouched(panel):
    assert ProductResource.policy_registry is None
    assert PostResource.observer_registry is None
    assert ProductResource.cache_service is None


def test_panels_keep_their_own_bindings(admin_user, viewer_user):
    first = AdminPanel(policy_registry=PolicyRegistry(policy_module=None), observer_registry=ObserverRegistry(None))
    second = AdminPanel(policy_registry=PolicyRegistry(policy_module=None), observer_registry=ObserverRegistry(None))
    first.register(NoteResource)
    first.bind_policy(NoteResource, ReadOnlyPolicy)
    second.register(NoteResource)

    request = AdminRequest(user=viewer_user)
    assert first.find_resource("notes").authorized_to_create(request) is False
    assert second.find_resource("notes").authorized_to_create(request) is True
    assert first.find_resource("notes").policy_registry is first.policy_registry
    assert isinstance(first.policy_for(NoteResource), ReadOnlyPolicy)
    assert second.policy_for(NoteResource) is None

def test_duplicate_uri_key_is_rejected(panel):
    with pytest.raises(ValueError, match="notes"):
        panel.register(DuplicateNotesResource)


def test_registering_twice_is_allowed(panel):
    notes = panel.find_resource("notes")
    panel.register(NoteResource)
    panel.register(notes)
    assert panel.find_resource("notes") is notes
    assert len(panel.resources()) == 3


def test_soft_deletable_resources(panel):
    assert panel.soft_deletable_resources() == [panel.find_resource("posts")]


def test_policy_binding(panel):
    assert isinstance(panel.policy_for(ProductResource), ProductPolicy)
    assert panel.policy_for(NoteResource) is None


def test_navigation_is_grouped_and_authorized(panel, viewer_user):
    panel.bind_policy(PostResource, DenyAllPolicy)
    navigation = panel.navigation(AdminRequest(user=viewer_user))
    assert navigation == [
        {"group": "Catalog", "resources": [{"uri_key": "products", "label": "Products", "icon": None}]},
        {"group": "Other", "resources": [{"uri_key": "notes", "label": "Notes", "icon": None}]},
    ]


def test_navigation_without_user_is_empty(panel):
    assert panel.navigation(AdminRequest()) == []


def test_grouped_resources_without_request(panel):
    groups = panel.grouped_resources()
    assert list(groups) == ["Catalog", "Content", "Other"]


def test_hidden_resources_are_left_out_of_navigation():
    panel = AdminPanel(policy_registry=PolicyRegistry(policy_module=None), observer_registry=ObserverRegistry(None))
    panel.register(HiddenNoteResource)
    assert panel.navigation_resources(AdminRequest(user=make_user())) == []


def test_bind_observers(panel):
    observers = panel.bind_observers(PostResource, [PostAuditObserver, PostAuditObserver])
    assert len(observers) == 2


def test_readonly_policy_binding(panel, viewer_user):
    panel.bind_policy(NoteResource, ReadOnlyPolicy)
    assert panel.resource(NoteResource).authorized_to_create(AdminRequest(user=viewer_user)) is False
    assert NoteResource.authorized_to_create(AdminRequest(user=viewer_user)) is True


def test_default_panel_dependency():
    assert get_admin_panel() is admin_panel
