"""Unit tests for request target normalization."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from shared.paths import force_end_char, force_start_char, normalize_host, render, with_query


def test_normalize_host_adds_separator_and_json_suffix() -> None:
    locator = normalize_host("https://x.example.com", "a/b")

    assert locator.host == "https://x.example.com/"
    assert render(locator) == "https://x.example.com/a/b.json"


def test_normalize_host_keeps_existing_suffix_and_separator() -> None:
    locator = normalize_host("https://x.example.com/", "a/b.json")

    assert render(locator) == "https://x.example.com/a/b.json"


def test_normalize_host_trims_whitespace() -> None:
    locator = normalize_host("  https://x.example.com  ", " users ")

    assert render(locator) == "https://x.example.com/users.json"


def test_root_location_and_empty_host() -> None:
    assert render(normalize_host("https://x.example.com", "")) == "https://x.example.com/.json"
    assert render(normalize_host("", "")) == "/.json"


def test_normalization_is_idempotent() -> None:
    for host, path in [("https://x.example.com", "a/b"), ("https://x.example.com/", "a.json"), ("h", "")]:
        locator = normalize_host(host, path)
        again = normalize_host(locator.host, locator.suffix)

        assert again == locator
        assert render(again) == render(locator)


def test_render_prefixes_query_once() -> None:
    locator = normalize_host("https://x.example.com", "a/b")

    assert render(locator, 'orderBy="ts"') == 'https://x.example.com/a/b.json?orderBy="ts"'
    assert render(locator, "?x=1") == "https://x.example.com/a/b.json?x=1"
    assert render(locator, "") == "https://x.example.com/a/b.json"


def test_with_query_is_used_unless_overridden() -> None:
    locator = with_query(normalize_host("https://x.example.com", "a"), "print=pretty")

    assert locator.query == "?print=pretty"
    assert render(locator) == "https://x.example.com/a.json?print=pretty"
    assert render(locator, "shallow=true") == "https://x.example.com/a.json?shallow=true"


def test_locator_is_immutable() -> None:
    locator = normalize_host("https://x.example.com", "a")

    with pytest.raises(ValidationError):
        locator.suffix = "b.json"


def test_force_char_helpers() -> None:
    assert force_end_char("abc", "/") == "abc/"
    assert force_end_char("abc/", "/") == "abc/"
    assert force_start_char("", "?") == ""
    assert force_start_char("a=1", "?") == "?a=1"
    assert force_start_char("?a=1", "?") == "?a=1"
