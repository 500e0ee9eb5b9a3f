# bru/blocks.py
# Block model for Bru files.
#
#   <tag> {        DictionaryBlock   key: value lines
#   <tag> {        TextBlock         raw lines
#   <tag> [        ArrayBlock        one value per entry
#
# The tag decides the variant; TAGS is the closed list of legal tags.
# A tag like "body:graphql:vars" splits on its first ':' into
# name="body", type="graphql:vars".

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Union

from .errors import BruError


class BlockKind(enum.Enum):
    DICTIONARY = "dictionary"
    TEXT = "text"
    ARRAY = "array"


TAGS: Dict[str, BlockKind] = {
    "meta": BlockKind.DICTIONARY,
    "vars:secret": BlockKind.ARRAY,
    "body": BlockKind.TEXT,
    "tests": BlockKind.TEXT,
    "get": BlockKind.DICTIONARY,
    "post": BlockKind.DICTIONARY,
    "put": BlockKind.DICTIONARY,
    "delete": BlockKind.DICTIONARY,
    "options": BlockKind.DICTIONARY,
    "trace": BlockKind.DICTIONARY,
    "connect": BlockKind.DICTIONARY,
    "head": BlockKind.DICTIONARY,
    "query": BlockKind.DICTIONARY,
    "headers": BlockKind.DICTIONARY,
    "body:text": BlockKind.TEXT,
    "body:xml": BlockKind.TEXT,
    "body:form-urlencoded": BlockKind.DICTIONARY,
    "body:multipart-form": BlockKind.DICTIONARY,
    "body:graphql": BlockKind.TEXT,
    "body:graphql:vars": BlockKind.TEXT,
    "script:pre-request": BlockKind.TEXT,
    "script:post-response": BlockKind.TEXT,
    "body:test": BlockKind.TEXT,
    "body:json": BlockKind.TEXT,
    "assert": BlockKind.DICTIONARY,
    "vars": BlockKind.DICTIONARY,
}


@dataclass
class DictionaryEntry:
    """One `key: value` line. A leading '~' on the key marks it disabled."""
    key: str
    value: str = ""


@dataclass
class Block:
    name: str
    type: Optional[str] = None

    kind: ClassVar[BlockKind]

    @property
    def tag(self) -> str:
        if self.type:
            return f"{self.name}:{self.type}"
        return self.name


@dataclass
class DictionaryBlock(Block):
    content: List[DictionaryEntry] = field(default_factory=list)

    kind: ClassVar[BlockKind] = BlockKind.DICTIONARY


@dataclass
class TextBlock(Block):
    content: str = ""

    kind: ClassVar[BlockKind] = BlockKind.TEXT


@dataclass
class ArrayBlock(Block):
    content: List[str] = field(default_factory=list)

    kind: ClassVar[BlockKind] = BlockKind.ARRAY


AnyBlock = Union[DictionaryBlock, TextBlock, ArrayBlock]

_BLOCK_CLASSES = {
    BlockKind.DICTIONARY: DictionaryBlock,
    BlockKind.TEXT: TextBlock,
    BlockKind.ARRAY: ArrayBlock,
}


def unknown_tag_message(tag: str) -> str:
    return f"could not find block for tag '{tag}'"


def new_block(tag: str, offset: int = 0) -> AnyBlock:
    """
    Build an empty block for an exact tag string.
    Raises BruError when the tag is not in TAGS.
    """
    kind = TAGS.get(tag)
    if kind is None:
        raise BruError(unknown_tag_message(tag), offset)
    name, _, type_ = tag.partition(":")
    return _BLOCK_CLASSES[kind](name=name, type=type_ or None)
