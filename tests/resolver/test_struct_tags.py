from __future__ import annotations

from codescan.resolver.tags import JSONTag, json_tag, lookup, parse_struct_tag


def test_parse_struct_tag_reads_every_pair() -> None:
    tag = 'json:"name,omitempty" xml:"n" validate:"required,min=1"'

    assert parse_struct_tag(tag) == {"json": "name,omitempty", "xml": "n", "validate": "required,min=1"}
    assert lookup(tag, "xml") == "n"
    assert lookup(tag, "yaml") is None


def test_json_tag_options() -> None:
    assert json_tag('json:"id,omitempty,string"') == JSONTag(name="id", as_string=True)
    assert json_tag('json:",omitempty"') == JSONTag()
    assert json_tag('json:"-"').skip
    assert json_tag("") == JSONTag()


def test_first_duplicate_key_wins() -> None:
    assert lookup('json:"a" json:"b"', "json") == "a"
