# bru/__init__.py
# Reader and writer for Bru request files.
#
#   blocks = bru.decode(data)                 # bytes or str -> [Block, ...]
#   data = bru.encode(blocks, trailing_newline=True)

from .blocks import (
    TAGS,
    ArrayBlock,
    Block,
    BlockKind,
    DictionaryBlock,
    DictionaryEntry,
    TextBlock,
    new_block,
)
from .decoder import Decoder, decode
from .encoder import Encoder, EncoderConfig, encode
from .errors import BruError
from .scanner import Op, Scanner, ScannerPool, check_valid, valid

__all__ = [
    "TAGS",
    "ArrayBlock",
    "Block",
    "BlockKind",
    "BruError",
    "Decoder",
    "DictionaryBlock",
    "DictionaryEntry",
    "Encoder",
    "EncoderConfig",
    "Op",
    "Scanner",
    "ScannerPool",
    "TextBlock",
    "check_valid",
    "decode",
    "encode",
    "new_block",
    "valid",
]
