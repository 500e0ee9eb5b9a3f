# bru/encoder.py
# Writes blocks back out in the Bru layout:
#
#   <name>[:<type>] {            <name>[:<type>] [
#   <indent>key: value<sep>      <indent>value<sep>
#   }                            ]
#   <blank line>                 <blank line>
#
# Text blocks are written as "{\n" + content + "\n}". The blank line after
# the last block is trimmed, so a file decoded and re-encoded with matching
# options comes back byte for byte. An empty value is always written as
# "key: ", so a source "key:" line gains a trailing space.

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .blocks import ArrayBlock, Block, DictionaryBlock, DictionaryEntry, TextBlock
from .errors import BruError

logger = logging.getLogger(__name__)

# Arrays read a trailing comma back as a delimiter. Dictionary values keep
# it, so a "," dictionary separator is layout only and shows up in values.
SEPARATORS = ("", ",")


@dataclass(frozen=True)
class EncoderConfig:
    """
    indent:           spaces before each dictionary pair / array value
    separator:        written after every dictionary pair but the last
    array_separator:  written after every array value but the last
    trailing_newline: keep a single "\\n" after the last closing brace
    """
    indent: int = 2
    separator: str = ""
    array_separator: str = ","
    trailing_newline: bool = False

    def __post_init__(self):
        if not isinstance(self.indent, int) or self.indent < 0:
            raise ValueError(f"indent must be a non-negative integer, got {self.indent!r}")
        if self.separator not in SEPARATORS:
            raise ValueError(f"separator must be one of {SEPARATORS!r}, got {self.separator!r}")
        if self.array_separator not in SEPARATORS:
            raise ValueError(
                f"array_separator must be one of {SEPARATORS!r}, got {self.array_separator!r}"
            )


class Encoder:
    def __init__(self, config: Optional[EncoderConfig] = None, **options):
        if config is not None and options:
            raise TypeError("pass either an EncoderConfig or keyword options, not both")
        self.config = config if config is not None else EncoderConfig(**options)

    def encode(self, blocks: Iterable[Block]) -> bytes:
        buf = bytearray()
        for block in blocks:
            self._block(buf, block)
        n = len(buf)
        if n > 2 and buf[n - 2:] == b"\n\n":
            keep = 1 if self.config.trailing_newline else 0
            del buf[n - 2 + keep:]
        logger.debug("encoded %d bytes", len(buf))
        return bytes(buf)

    def _block(self, buf: bytearray, block: Block) -> None:
        if not isinstance(block, (DictionaryBlock, TextBlock, ArrayBlock)):
            raise BruError(f"cannot encode {type(block).__name__} as a Bru block", len(buf))
        if ":" in block.name:
            raise BruError(f"block name {block.name!r} must not contain ':'", len(buf))

        indent = " " * self.config.indent
        content = block.content
        if isinstance(block, DictionaryBlock):
            entries = _checked(block, content, DictionaryEntry, len(buf))
            lines = [f"{indent}{e.key}: {e.value}" for e in entries]
            _write(buf, f"{block.tag} {{\n")
            _write_entries(buf, lines, self.config.separator)
            _write(buf, "}\n\n")
        elif isinstance(block, TextBlock):
            if not isinstance(content, str):
                raise _mismatch(block, content, len(buf))
            _write(buf, f"{block.tag} {{\n{content}\n}}\n\n")
        else:
            values = _checked(block, content, str, len(buf))
            _write(buf, f"{block.tag} [\n")
            _write_entries(buf, [indent + v for v in values], self.config.array_separator)
            _write(buf, "]\n\n")


def _write(buf: bytearray, s: str) -> None:
    buf += s.encode("utf-8")


def _write_entries(buf: bytearray, lines: List[str], sep: str) -> None:
    last = len(lines) - 1
    for i, line in enumerate(lines):
        _write(buf, line + ("" if i == last else sep) + "\n")


def _mismatch(block: Block, content, offset: int) -> BruError:
    return BruError(
        f"{block.kind.value} block '{block.tag}' cannot hold content of type {type(content).__name__}",
        offset,
    )


def _checked(block: Block, content, item_type: type, offset: int) -> list:
    if not isinstance(content, (list, tuple)):
        raise _mismatch(block, content, offset)
    for item in content:
        if not isinstance(item, item_type):
            raise _mismatch(block, item, offset)
    return list(content)


def encode(blocks: Iterable[Block], config: Optional[EncoderConfig] = None, **options) -> bytes:
    """Serialize blocks with an Encoder built from config or keyword options."""
    return Encoder(config, **options).encode(blocks)
