# tests/test_decoder.py
import os
import sys

import pytest

# Make sure we import from the project root
sys.path.insert(0, os.getcwd())

from bru import (
    ArrayBlock,
    BlockKind,
    BruError,
    DictionaryBlock,
    DictionaryEntry,
    TAGS,
    TextBlock,
    decode,
    new_block,
    valid,
)

E = DictionaryEntry


# Valid cases
def test_meta_single_entry():
    blocks = decode(b"meta {\n  url: https://toto.com\n}")
    assert blocks == [DictionaryBlock(name="meta", content=[E("url", "https://toto.com")])]
    assert blocks[0].type is None


def test_meta_multiple_entries_keep_trailing_commas():
    blocks = decode(b"meta {\n\turl: https://toto.com,\n toto: abcd.com\n}")
    assert blocks[0].content == [E("url", "https://toto.com,"), E("toto", "abcd.com")]


@pytest.mark.parametrize("line, value", [
    (b"  accept: text/html,\n", "text/html,"),
    (b"  a: x,,\n", "x,,"),
    (b"  a: ,\n", ","),
])
def test_trailing_commas_are_part_of_the_value(line, value):
    (block,) = decode(b"headers {\n" + line + b"}")
    assert block.content == [E(line.split(b":")[0].strip().decode(), value)]


def test_crlf_line_endings():
    data = (
        b"meta {\r\n  name: Get User\r\n  seq: 1\r\n  novalue\r\n  empty:\r\n}\r\n\r\n"
        b"vars:secret [\r\n  a,\r\n  b\r\n]\r\n\r\n"
        b"tests {\r\n  ok();\r\n}\r\n"
    )
    meta, secrets, tests = decode(data)
    assert meta.content == [E("name", "Get User"), E("seq", "1"), E("novalue", ""), E("empty", "")]
    assert secrets.content == ["a", "b"]
    assert tests.content == "  ok();\r"


def test_vars_secret_array():
    data = b"vars:secret [\n  access_key,\n  access_secret,\n  ~transactionId\n]"
    (block,) = decode(data)
    assert block == ArrayBlock(
        name="vars",
        type="secret",
        content=["access_key", "access_secret", "~transactionId"],
    )


def test_two_text_blocks_keep_order():
    data = (
        b"body {\n"
        b"  {\n"
        b"    \"hello\": \"world\"\n"
        b"  }\n"
        b"}\n"
        b"\n"
        b"tests {\n"
        b"  expect(res.status).to.equal(200);\n"
        b"}"
    )
    blocks = decode(data)
    assert blocks == [
        TextBlock(name="body", content="  {\n    \"hello\": \"world\"\n  }"),
        TextBlock(name="tests", content="  expect(res.status).to.equal(200);"),
    ]


def test_mixed_block_kinds_in_source_order():
    data = (
        b"body {\n  {}\n}\n\n"
        b"tests {\n  ok();\n}\n\n"
        b"vars:secret [\n  access_key,\n  ~transactionId\n]\n\n"
        b"meta {\n  url: https://toto.com\n}\n"
    )
    blocks = decode(data)
    assert [b.tag for b in blocks] == ["body", "tests", "vars:secret", "meta"]
    assert [b.kind for b in blocks] == [
        BlockKind.TEXT, BlockKind.TEXT, BlockKind.ARRAY, BlockKind.DICTIONARY,
    ]


@pytest.mark.parametrize("line", [b"  key:\n", b"  key: \n", b"  key\n"])
def test_valueless_dictionary_entry(line):
    (block,) = decode(b"meta {\n" + line + b"}")
    assert block.content == [E("key", "")]


def test_key_closed_by_brace():
    (block,) = decode(b"meta {\n  a: 1\n  last}")
    assert block.content == [E("a", "1"), E("last", "")]


def test_value_runs_to_end_of_line():
    (block,) = decode(b"headers {\n  Accept: text/html, application/json\n  x:   {{a}}:{{b}} \n}")
    assert block.content == [
        E("Accept", "text/html, application/json"),
        E("x", "{{a}}:{{b}} "),
    ]


def test_duplicate_and_disabled_keys_are_kept():
    (block,) = decode(b"query {\n  page: 1\n  ~page: 2\n  page: 3\n}")
    assert block.content == [E("page", "1"), E("~page", "2"), E("page", "3")]


def test_escapes_are_stored_raw():
    (block,) = decode(b"meta {\n  a: x\\n\\u00e9\\\"\n}")
    assert block.content == [E("a", "x\\n\\u00e9\\\"")]


def test_array_values_split_on_commas_and_newlines():
    (block,) = decode(b"vars:secret [a, b,c\n  d\n]")
    assert block.content == ["a", "b", "c", "d"]


def test_trailing_comma_in_array():
    (block,) = decode(b"vars:secret [\n  a,\n]")
    assert block.content == ["a"]


@pytest.mark.parametrize("data", [b"vars:secret []", b"vars:secret [\n]"])
def test_empty_array(data):
    assert decode(data)[0].content == []


@pytest.mark.parametrize("data", [b"meta {}", b"meta {\n}"])
def test_empty_dictionary(data):
    assert decode(data)[0].content == []


@pytest.mark.parametrize("data", [b"tests {}", b"tests {\n}", b"tests {\n\n}"])
def test_empty_text(data):
    assert decode(data)[0].content == ""


def test_text_keeps_blank_lines_and_indentation():
    data = b"script:pre-request {\n  const a = 1;\n\n    if (a) {\n    }\n\n}"
    (block,) = decode(data)
    assert block.name == "script"
    assert block.type == "pre-request"
    assert block.content == "  const a = 1;\n\n    if (a) {\n    }\n"


def test_text_does_not_interpret_backslashes():
    (block,) = decode(b"tests {\n  a\\qb\n}")
    assert block.content == "  a\\qb"


def test_tag_splits_on_first_colon():
    (block,) = decode(b"body:graphql:vars {\n  {}\n}")
    assert block.name == "body"
    assert block.type == "graphql:vars"
    assert block.tag == "body:graphql:vars"


def test_str_input_and_unicode():
    (block,) = decode("meta {\n  name: Créer un café ☕\n}\n")
    assert block.content == [E("name", "Créer un café ☕")]


def test_blocks_are_mutable_and_independent():
    first = decode(b"meta {\n  a: 1\n}")
    second = decode(b"meta {\n  a: 1\n}")
    first[0].content.append(E("b", "2"))
    assert second[0].content == [E("a", "1")]


# Invalid cases
def test_missing_closing_brace():
    data = b"meta {\n  url: https://toto.com\n"
    with pytest.raises(BruError) as exc:
        decode(data)
    assert str(exc.value) == "unexpected end of Bru input"
    assert exc.value.offset == len(data)


def test_unknown_tag():
    with pytest.raises(BruError) as exc:
        decode(b"meta {\n}\n\nauth:bearer {\n  token: x\n}")
    assert "could not find block for tag 'auth:bearer'" in str(exc.value)


def test_nested_composite():
    with pytest.raises(BruError) as exc:
        decode(b"vars:secret [\n  [a]\n]")
    assert "exceeded max depth" in str(exc.value)


def test_defect_anywhere_invalidates_whole_file():
    data = b"meta {\n  a: 1\n}\n\nget {\n  url: x\\z\n}"
    with pytest.raises(BruError):
        decode(data)


@pytest.mark.parametrize("data", [
    b"meta {\n  url: https://toto.com\n}",
    b"meta {\n  url: https://toto.com\n",
    b"foo {\n}",
    b"",
    b"vars:secret [\n  [a]\n]",
    b"tests {\n  a\n}\n\nmeta {\n  \\x: 1\n}",
    b"meta {\n  a: \xff\n}",
    b"tests {}\n",
    b"meta {\r\n  a: b\r\n}\r\n",
    b"meta {\n  a: b\rc\n}",
])
def test_validator_and_decoder_agree(data):
    try:
        decode(data)
    except BruError:
        decoded = False
    else:
        decoded = True
    assert valid(data) == decoded


# Block model
def test_new_block_builds_variant_from_tag_table():
    assert new_block("meta") == DictionaryBlock(name="meta")
    assert new_block("vars:secret") == ArrayBlock(name="vars", type="secret")
    assert new_block("body:json") == TextBlock(name="body", type="json")


def test_new_block_unknown_tag():
    with pytest.raises(BruError) as exc:
        new_block("docs", offset=12)
    assert str(exc.value) == "could not find block for tag 'docs'"
    assert exc.value.offset == 12


def test_every_tag_decodes_to_its_kind():
    bodies = {
        BlockKind.DICTIONARY: b" {\n  a: b\n}",
        BlockKind.TEXT: b" {\n  a\n}",
        BlockKind.ARRAY: b" [\n  a\n]",
    }
    for tag, kind in TAGS.items():
        (block,) = decode(tag.encode() + bodies[kind])
        assert block.kind is kind
        assert block.tag == tag
