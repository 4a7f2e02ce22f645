"""
Unit tests for policy resolution and resource authorization checks.
"""

from admin_panel.auth.policies import PolicyRegistry, ResourcePolicy, ability_method_name, call_policy
from admin_panel.resources.request import AdminRequest
from tests.utils import NoteResource, PostResource, ProductPolicy, ProductResource, ReadOnlyPolicy, make_user


class AllowEverythingForAdmins(ResourcePolicy):
    def before(self, user, ability):
        if user.is_admin():
            return True
        return None

    def view_any(self, user):
        return False


def test_ability_method_names():
    assert ability_method_name("viewAny") == "view_any"
    assert ability_method_name("forceDelete") == "force_delete"
    assert ability_method_name("runAction") == "run_action"
    assert ability_method_name("import") == "import_"


class TestPolicyRegistry:
    def test_bound_policy(self):
        registry = PolicyRegistry(policy_module=None)
        registry.bind(ProductResource, ProductPolicy)
        assert isinstance(registry.resolve(ProductResource), ProductPolicy)

    def test_unbound_resource_has_no_policy(self):
        registry = PolicyRegistry(policy_module=None)
        assert registry.resolve(NoteResource) is None

    def test_guess_from_module(self):
        registry = PolicyRegistry(policy_module="tests.utils")
        # tests.utils defines ProductPolicy
        assert registry.guess_policy_class_name(ProductResource) == "ProductPolicy"
        assert isinstance(registry.resolve(ProductResource), ProductPolicy)

    def test_guessing_can_be_disabled(self):
        registry = PolicyRegistry(policy_module="tests.utils", guess=False)
        assert registry.resolve(ProductResource) is None

    def test_missing_policy_module(self):
        registry = PolicyRegistry(policy_module="no_such_module.policies")
        assert registry.resolve(ProductResource) is None

    def test_unbind(self):
        registry = PolicyRegistry(policy_module=None)
        registry.bind(ProductResource, ProductPolicy)
        registry.unbind(ProductResource)
        assert registry.bindings() == {}


class TestCallPolicy:
    def test_before_short_circuits(self):
        policy = AllowEverythingForAdmins()
        assert call_policy(policy, "viewAny", make_user(["admin"])) is True
        assert call_policy(policy, "viewAny", make_user(["viewer"])) is False

    def test_missing_ability_uses_default(self):
        policy = ReadOnlyPolicy()
        assert call_policy(policy, "delete", make_user(), object()) is False
        assert call_policy(policy, "delete", make_user(), object(), allow_missing=True) is True


class TestResourceAuthorization:
    def test_no_user_is_denied(self, panel):
        products = panel.resource(ProductResource)
        assert products.authorized_to_view_any(AdminRequest()) is False
        assert NoteResource.authorized_to_view_any(AdminRequest()) is False

    def test_no_policy_allows(self, panel):
        assert NoteResource.authorized_to_create(AdminRequest(user=make_user(["viewer"]))) is True

    def test_policy_decides(self, panel, admin_user, viewer_user):
        products = panel.resource(ProductResource)
        assert products.authorized_to_create(AdminRequest(user=admin_user)) is True
        assert products.authorized_to_create(AdminRequest(user=viewer_user)) is False
        assert products.authorized_to_view_any(AdminRequest(user=viewer_user)) is True

    def test_instance_abilities_receive_entity(self, panel, viewer_user):
        products = panel.resource(ProductResource)
        resource = products()
        request = AdminRequest(user=viewer_user)
        assert resource.authorized_to_view(request) is True
        assert resource.authorized_to_update(request) is False
        assert resource.authorized_to_run_action(request, object()) is False

    def test_missing_ability_is_denied_by_default(self, panel, admin_user):
        products = panel.resource(ProductResource)
        # ProductPolicy has no restore method
        assert products().authorized_to_restore(AdminRequest(user=admin_user)) is False

    def test_missing_ability_allowed_by_config(self, panel, admin_user, monkeypatch):
        products = panel.resource(ProductResource)
        monkeypatch.setattr("admin_panel.core.config.POLICY_ALLOW_MISSING_ABILITIES", True)
        assert products().authorized_to_restore(AdminRequest(user=admin_user)) is True

    def test_explicit_policy_attribute(self, panel, viewer_user):
        class LockedPostResource(PostResource):
            policy = ReadOnlyPolicy

        request = AdminRequest(user=viewer_user)
        assert LockedPostResource.authorized_to_view_any(request) is True
        assert LockedPostResource.authorized_to_create(request) is False

    def test_authorizations_payload(self, panel, admin_user):
        payload = PostResource().authorizations(AdminRequest(user=admin_user))
        assert payload == {
            "authorized_to_view": True,
            "authorized_to_update": True,
            "authorized_to_delete": True,
            "authorized_to_restore": True,
            "authorized_to_force_delete": True,
        }

    def test_attach_and_detach_receive_related(self, panel, admin_user):
        class TaggingPolicy(ResourcePolicy):
            def attach(self, user, entity, related):
                return related == "news"

            def detach(self, user, entity, related):
                return False

        class TaggedPostResource(PostResource):
            policy = TaggingPolicy

        resource = TaggedPostResource()
        request = AdminRequest(user=admin_user)
        assert resource.authorized_to_attach(request, "news") is True
        assert resource.authorized_to_attach(request, "sports") is False
        assert resource.authorized_to_detach(request, "news") is False
