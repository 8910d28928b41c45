from __future__ import annotations

import aiohttp

from databaxe._redact import redact_for_log


def test_redact_for_log_redacts_credentials_in_request_options() -> None:
    options = {
        "method": "get",
        "auth": {"login": "user", "password": "pw"},
        "headers": {"Authorization": "Bearer abc", "Accept": "application/json", "Cookie": "sid=1"},
        "params": {"api_key": "k", "page": 2},
    }

    redacted = redact_for_log(options)
    assert redacted["method"] == "get"
    assert redacted["auth"] == {"login": "user", "password": "<redacted>"}
    assert redacted["headers"]["Authorization"] == "<redacted>"
    assert redacted["headers"]["Cookie"] == "<redacted>"
    assert redacted["headers"]["Accept"] == "application/json"
    assert redacted["params"] == {"api_key": "<redacted>", "page": 2}


def test_redact_for_log_does_not_mutate_its_input() -> None:
    options = {"headers": {"authorization": "Bearer abc"}}

    redact_for_log(options)

    assert options["headers"]["authorization"] == "Bearer abc"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_handles_lists_bytes_and_objects() -> None:
    redacted = redact_for_log([{"token": "t"}, b"abc", object()])

    assert redacted[0] == {"token": "<redacted>"}
    assert redacted[1] == "<bytes:3b>"
    assert redacted[2].startswith("<object object")


def test_redact_for_log_keeps_only_the_login_of_auth_credentials() -> None:
    assert redact_for_log({"auth": ("user", "pw")}) == {"auth": ["user", "<redacted>"]}
    assert redact_for_log({"auth": aiohttp.BasicAuth("user", "pw")}) == {
        "auth": {"login": "user", "password": "<redacted>"}
    }
    assert redact_for_log({"auth": "opaque"}) == {"auth": "<redacted>"}


def test_redact_for_log_matches_credential_headers_by_name_shape() -> None:
    headers = {
        "X-Refresh-Token": "r",
        "X-Api-Key": "k",
        "X-Auth-User": "u",
        "Client-Secret": "s",
        "X-Request-Id": "42",
    }

    assert redact_for_log(headers) == {
        "X-Refresh-Token": "<redacted>",
        "X-Api-Key": "<redacted>",
        "X-Auth-User": "<redacted>",
        "Client-Secret": "<redacted>",
        "X-Request-Id": "42",
    }


def test_redact_for_log_strips_user_info_from_urls() -> None:
    redacted = redact_for_log({"url": "https://u:p@host/x", "proxy": "http://host:8080"})

    assert redacted == {"url": "https://<redacted>@host/x", "proxy": "http://host:8080"}
