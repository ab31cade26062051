from __future__ import annotations

import json

from affiliate_posts.generation.parser import extract_json, parse_reply
from affiliate_posts.generation.prompt import POST_SCHEMA, PRODUCT_DETAILS_SCHEMA, TITLE_IDEAS_SCHEMA


def test_plain_json_object_is_accepted_and_defaults_filled() -> None:
    result = parse_reply(json.dumps({"title": "Best Widgets", "content": "<p>Hi</p>"}), POST_SCHEMA)

    assert result.ok
    assert result.value["title"] == "Best Widgets"
    assert result.value["tags"] == []
    assert result.value["metaDescription"] == ""


def test_fenced_json_is_unwrapped() -> None:
    text = 'Here you go:\n```json\n{"title": "T", "price": "9.99", "description": "D", "imageUrl": "u"}\n```'
    result = parse_reply(text, PRODUCT_DETAILS_SCHEMA)

    assert result.ok
    assert result.value["price"] == "9.99"
    assert result.value["brand"] == ""


def test_json_embedded_in_prose_is_found() -> None:
    assert extract_json('Sure! ["A", "B", "C"] Hope that helps.') == ["A", "B", "C"]
    assert extract_json("no json here") is None
    assert extract_json("") is None


def test_missing_required_key_is_rejected() -> None:
    result = parse_reply(json.dumps({"title": "Only a title"}), POST_SCHEMA)

    assert not result.ok
    assert "content" in (result.error or "")


def test_blank_required_string_is_rejected() -> None:
    result = parse_reply(json.dumps({"title": "  ", "content": "x"}), POST_SCHEMA)
    assert not result.ok


def test_wrong_kind_is_rejected() -> None:
    result = parse_reply(json.dumps({"title": "T", "content": "C", "tags": "a,b"}), POST_SCHEMA)
    assert not result.ok
    assert result.error == "tags must be an array"


def test_array_items_are_checked() -> None:
    assert parse_reply('["one", "two"]', TITLE_IDEAS_SCHEMA).value == ["one", "two"]
    assert not parse_reply('["one", 2]', TITLE_IDEAS_SCHEMA).ok
    assert not parse_reply('{"titles": []}', TITLE_IDEAS_SCHEMA).ok


def test_none_reply_does_not_raise() -> None:
    result = parse_reply(None, POST_SCHEMA)
    assert not result.ok
    assert result.raw == ""
