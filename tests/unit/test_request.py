"""
Unit tests for the request context.
"""

from admin_panel.resources.request import AdminRequest
from tests.utils import make_user


def test_get_prefers_query_and_input_prefers_body():
    request = AdminRequest(query={"name": "q"}, data={"name": "b"})
    assert request.get("name") == "q"
    assert request.input("name") == "b"
    assert request.get("missing", "default") == "default"


def test_has_counts_explicit_null():
    request = AdminRequest(data={"sku": None})
    assert request.has("sku") is True
    assert request.has("name") is False


def test_all_merges_body_over_query():
    request = AdminRequest(query={"a": 1, "b": 1}, data={"b": 2})
    assert request.all() == {"a": 1, "b": 2}


def test_filters_from_json_and_brackets():
    request = AdminRequest(query={"filters": '{"status": "draft", "active": {"1": true}}', "filters[status]": "published"})
    assert request.filters() == {"status": "published", "active": {"1": True}}


def test_malformed_filters_are_ignored():
    assert AdminRequest(query={"filters": "{not json"}).filters() == {}
    assert AdminRequest(query={"filters": "[1, 2]"}).filters() == {}


def test_filters_from_decoded_mapping():
    assert AdminRequest(data={"filters": {"status": "draft"}}).filters() == {"status": "draft"}


def test_editing_flag():
    assert AdminRequest(query={"editing": "true"}).is_editing() is True
    assert AdminRequest().is_editing() is False


def test_user_key():
    assert AdminRequest(user=make_user(user_id="42")).user_key() == "42"
    assert AdminRequest().user_key() is None
