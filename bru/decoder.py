# bru/decoder.py
# Turns a complete Bru buffer into an ordered list of blocks.
#
# decode() first runs a validating scan over the whole buffer, so nothing is
# built for a malformed file, then drives a second scan and slices keys,
# values and text lines straight out of the buffer by watching the opcodes:
#
#   BEGIN_TAG ... END_TAG                  tag text
#   CONTINUE ... DICTIONARY_VALUE          dictionary key (':' seen)
#   CONTINUE ... DICTIONARY_KEY            key or value ended by newline
#   CONTINUE ... ARRAY_VALUE | END_ARRAY   array value
#   TEXT_LINE ... SKIP_SPACE               text line

import logging
from typing import List, Union

from .blocks import AnyBlock, ArrayBlock, DictionaryBlock, DictionaryEntry, TextBlock, new_block
from .errors import BruError
from .scanner import Op, Scanner, check_valid, scanner_pool

logger = logging.getLogger(__name__)


class Decoder:
    """State of one decode pass over data."""

    def __init__(self, data: bytes, scan: Scanner):
        self.data = data
        self.off = 0  # next read offset in data
        self.opcode = Op.CONTINUE  # last scan result
        self.scan = scan

    def read_index(self) -> int:
        """Position of the last byte read."""
        return self.off - 1

    def _check(self) -> None:
        if self.opcode == Op.ERROR:
            raise self.scan.err

    def scan_next(self) -> None:
        """Process the byte at data[off]."""
        if self.off < len(self.data):
            self.opcode = self.scan.step(self.data[self.off])
            self.off += 1
        else:
            self.opcode = self.scan.eof()
            self.off = len(self.data) + 1  # processed EOF is marked with len+1
        self._check()

    def scan_while(self, op: Op) -> None:
        """Process bytes until the scanner returns something other than op."""
        scan, data, i = self.scan, self.data, self.off
        while i < len(data):
            new_op = scan.step(data[i])
            i += 1
            if new_op != op:
                self.opcode = new_op
                self.off = i
                self._check()
                return
        self.off = len(data) + 1
        self.opcode = scan.eof()
        self._check()

    def _slice(self, start: int, end: int) -> str:
        return self.data[start:end].decode("utf-8")

    def decode(self) -> List[AnyBlock]:
        self.scan.reset()
        self.scan.bytes = 0
        blocks: List[AnyBlock] = []
        while True:
            self.scan_while(Op.SKIP_SPACE)
            if self.opcode == Op.END:
                break
            blocks.append(self.block())
        return blocks

    def block(self) -> AnyBlock:
        while self.opcode != Op.BEGIN_TAG:
            self.scan_next()
        start = self.read_index()
        while self.opcode != Op.END_TAG:
            self.scan_next()
        block = new_block(self._slice(start, self.read_index()), start)
        self.scan_while(Op.SKIP_SPACE)

        if isinstance(block, DictionaryBlock):
            block.content = self.dictionary()
        elif isinstance(block, ArrayBlock):
            block.content = self.array()
        elif isinstance(block, TextBlock):
            block.content = self.text()
        else:
            raise BruError(f"no decoder for block '{block.tag}'", start)
        return block

    def dictionary(self) -> List[DictionaryEntry]:
        # opcode is BEGIN_DICTIONARY
        entries: List[DictionaryEntry] = []
        while True:
            self.scan_while(Op.SKIP_SPACE)
            if self.opcode == Op.END_BLOCK:
                break
            start = self.read_index()
            self.scan_while(Op.CONTINUE)
            key = self._slice(start, self.read_index())
            value = ""
            if self.opcode == Op.DICTIONARY_VALUE:
                self.scan_while(Op.SKIP_SPACE)
                if self.opcode == Op.CONTINUE:
                    start = self.read_index()
                    self.scan_while(Op.CONTINUE)
                    value = self._slice(start, self.read_index())
            entries.append(DictionaryEntry(key, value))
            if self.opcode == Op.END_BLOCK:
                break
        return entries

    def array(self) -> List[str]:
        # opcode is BEGIN_ARRAY
        values: List[str] = []
        while True:
            self.scan_while(Op.SKIP_SPACE)
            if self.opcode == Op.END_ARRAY:
                break
            start = self.read_index()
            self.scan_while(Op.CONTINUE)
            values.append(self._slice(start, self.read_index()))
            if self.opcode == Op.END_ARRAY:
                break
        return values

    def text(self) -> str:
        # opcode is BEGIN_TEXT; skip to the first line or an immediate close
        while self.opcode != Op.TEXT_LINE and self.opcode != Op.END_BLOCK:
            self.scan_next()
        content = ""
        while self.opcode != Op.END_BLOCK:
            start = self.read_index()
            if self.data[start] == 0x0A:
                line = ""
            else:
                self.scan_while(Op.CONTINUE)
                line = self._slice(start, self.read_index())
            content += line + "\n"
            self.scan_next()
        # drop the terminator added after the last line
        return content[:-1]


def decode(data: Union[bytes, str]) -> List[AnyBlock]:
    """
    Parse a complete Bru file into its blocks, in source order.
    Raises BruError (with .offset) if the file is malformed.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    with scanner_pool.borrow() as scan:
        check_valid(data, scan)
        blocks = Decoder(data, scan).decode()
    logger.debug("decoded %d blocks from %d bytes", len(blocks), len(data))
    return blocks
