from __future__ import annotations

from databaxe import fingerprint, interpolate
from databaxe._constants import normalize_method
from databaxe._merge import deep_merge, merged
from databaxe._url import resolve_url


def test_fingerprint_ignores_key_order() -> None:
    a = fingerprint({"url": "/x", "options": {"method": "get", "headers": {"A": "1", "B": "2"}}})
    b = fingerprint({"options": {"headers": {"B": "2", "A": "1"}, "method": "get"}, "url": "/x"})

    assert a == b
    assert len(a) == 40


def test_fingerprint_distinguishes_values() -> None:
    assert fingerprint({"url": "/x"}) != fingerprint({"url": "/y"})
    assert fingerprint({"n": 1}) != fingerprint({"n": "1"})


def test_fingerprint_tolerates_non_json_values() -> None:
    assert fingerprint({"auth": object}) == fingerprint({"auth": object})


def test_interpolate() -> None:
    assert interpolate("/users/{id}/posts/{ post }", {"id": 3, "post": "p"}) == "/users/3/posts/p"
    assert interpolate("/orgs/{org.slug}", {"org": {"slug": "acme"}}) == "/orgs/acme"
    assert interpolate("/users/{id}/{missing}", {"id": 3}) == "/users/3/{missing}"
    assert interpolate("/users/{id}", None) == "/users/{id}"


def test_resolve_url() -> None:
    assert resolve_url("/a", base_url="https://h/api/") == "https://h/api/a"
    assert resolve_url("a", base_url=None, fallback_base_url="https://h") == "https://h/a"
    assert resolve_url("/a", base_url="https://own", fallback_base_url="https://h") == "https://own/a"
    assert resolve_url("https://other/a", base_url="https://h") == "https://other/a"
    assert resolve_url("/a") == "/a"


def test_deep_merge_merges_nested_mappings_and_replaces_the_rest() -> None:
    target = {"headers": {"A": "1"}, "params": {"page": 1}, "tags": [1]}
    source = {"headers": {"B": "2"}, "params": None, "tags": [2]}

    result = deep_merge(target, source, None)

    assert result is target
    assert result == {"headers": {"A": "1", "B": "2"}, "params": None, "tags": [2]}


def test_merged_never_aliases_inputs() -> None:
    nested = {"a": {"b": [1]}}

    result = merged(nested, {"c": 1})
    result["a"]["b"].append(2)

    assert nested == {"a": {"b": [1]}}


def test_normalize_method() -> None:
    assert normalize_method(" PATCH ") == "patch"
    assert normalize_method(None) == "get"
    assert normalize_method("", "post") == "post"
