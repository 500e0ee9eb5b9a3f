# bru/scanner.py
# Byte-level state machine for Bru files.
#
#   file   := block*
#   block  := tag ws? (dict | text | arr)
#   tag    := [a-z] <non-space bytes>      -- must be a key of TAGS
#   dict   := '{' ws? (pair (newline pair)*)? ws? '}'
#   pair   := key (':' blanks? value)?     -- value runs to end of line
#   arr    := '[' ws? (value ((',' | newline) ws? value)*)? ws? ']'
#   text   := '{' blanks? '\n' line* '}'   -- '}' must start its line
#
# Keys and values end at "\r\n" as well as "\n"; text lines keep their '\r'.
#
# Callers reset() the scanner and feed it one byte at a time with step().
# Each call returns an Op describing what that byte meant, so a caller can
# follow the structure without re-lexing. Once Op.ERROR is returned every
# later byte returns Op.ERROR too; scanner.err holds the BruError.

import enum
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .blocks import TAGS, BlockKind, unknown_tag_message
from .errors import BruError

# Composite values never nest in Bru.
MAX_NESTING_DEPTH = 1

_SPACE = 0x20
_NEWLINE = 0x0A
_CR = 0x0D


class Op(enum.IntEnum):
    CONTINUE = 0          # uninteresting byte
    SKIP_SPACE = 1        # whitespace, or the newline ending a text line
    BEGIN_TAG = 2         # first byte of a block tag
    END_TAG = 3           # whitespace ending a recognized tag
    BEGIN_ARRAY = 4
    BEGIN_TEXT = 5
    BEGIN_DICTIONARY = 6
    END_BLOCK = 7         # '}' closing a dictionary or text block
    END_ARRAY = 8
    ARRAY_VALUE = 9       # separator ending an array value
    DICTIONARY_KEY = 10   # newline ending a pair; a new key may follow
    DICTIONARY_VALUE = 11  # ':' ending a key; a value may follow
    TEXT_LINE = 12        # first byte of a text line
    END = 13              # whole input scanned successfully
    ERROR = 14


class ParseState(enum.Enum):
    ARRAY_VALUE = 0
    DICTIONARY_KEY = 1
    DICTIONARY_VALUE = 2
    TEXT_VALUE = 3


class State(enum.Enum):
    BEGIN_BLOCK_LINE = "begin-block-line"
    READING_TAG = "reading-tag"
    WAITING_FOR_OPEN_BLOCK = "waiting-for-open-block"
    OPEN_BLOCK = "open-block"
    NEW_DICTIONARY_PAIR = "new-dictionary-pair"
    IN_KEY = "in-key"
    BEGIN_DICTIONARY_VALUE = "begin-dictionary-value"
    IN_VALUE = "in-value"
    NEW_ARRAY_VALUE = "new-array-value"
    NEW_TEXT_LINE = "new-text-line"
    IN_TEXT = "in-text"
    STRING_ESC = "string-esc"
    STRING_ESC_U = "string-esc-u"
    STRING_ESC_U1 = "string-esc-u1"
    STRING_ESC_U12 = "string-esc-u12"
    STRING_ESC_U123 = "string-esc-u123"
    AFTER_CR = "after-cr"
    ERROR = "error"
    END = "end"


_PARSE_STATE_FOR_KIND = {
    BlockKind.DICTIONARY: ParseState.DICTIONARY_KEY,
    BlockKind.ARRAY: ParseState.ARRAY_VALUE,
    BlockKind.TEXT: ParseState.TEXT_VALUE,
}

_SIMPLE_ESCAPES = frozenset(b'bfnrt\\/"')
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_NAMED_CONTROLS = {
    0x07: "\\a", 0x08: "\\b", 0x0C: "\\f", 0x0A: "\\n",
    0x0D: "\\r", 0x09: "\\t", 0x0B: "\\v",
}


def is_space(c: int) -> bool:
    return c == 0x20 or c == 0x09 or c == 0x0D or c == 0x0A


def _is_blank(c: int) -> bool:
    # whitespace that does not end a line
    return c == 0x20 or c == 0x09 or c == 0x0D


def quote_char(c: int) -> str:
    """Format a byte as a quoted character literal for error messages."""
    if c == ord("'"):
        return "'\\''"
    if c == ord('"'):
        return "'\"'"
    if c in _NAMED_CONTROLS:
        return f"'{_NAMED_CONTROLS[c]}'"
    ch = chr(c)
    if ch.isprintable():
        return f"'{ch}'"
    if c < 0x80:
        return "'\\x%02x'" % c
    return "'\\u%04x'" % c


class Scanner:
    """
    Bru scanning state machine.

    `bytes` counts every byte given to step() and is what error offsets
    report. reset() deliberately leaves it alone; ScannerPool.get() zeroes it.
    """

    def __init__(self):
        self.bytes = 0
        self.parse_state: List[ParseState] = []
        self._handlers: Dict[State, Callable[[int], Op]] = {
            State.BEGIN_BLOCK_LINE: self._begin_block_line,
            State.READING_TAG: self._reading_tag,
            State.WAITING_FOR_OPEN_BLOCK: self._waiting_for_open_block,
            State.OPEN_BLOCK: self._open_block,
            State.NEW_DICTIONARY_PAIR: self._new_dictionary_pair,
            State.IN_KEY: self._in_key,
            State.BEGIN_DICTIONARY_VALUE: self._begin_dictionary_value,
            State.IN_VALUE: self._in_value,
            State.NEW_ARRAY_VALUE: self._new_array_value,
            State.NEW_TEXT_LINE: self._new_text_line,
            State.IN_TEXT: self._in_text,
            State.STRING_ESC: self._string_esc,
            State.STRING_ESC_U: self._string_esc_u,
            State.STRING_ESC_U1: self._string_esc_u1,
            State.STRING_ESC_U12: self._string_esc_u12,
            State.STRING_ESC_U123: self._string_esc_u123,
            State.AFTER_CR: self._after_cr,
            State.ERROR: self._error_state,
            State.END: self._end_state,
        }
        self.reset()

    def reset(self) -> None:
        """Prepare for a new scan. Must be called before step()."""
        self.state = State.BEGIN_BLOCK_LINE
        self.parse_state.clear()
        self.err: Optional[BruError] = None
        self.end_block = False
        self.tag_name = bytearray()
        self._esc_return = State.IN_VALUE
        self._cr_return = State.BEGIN_BLOCK_LINE

    def step(self, c: int) -> Op:
        self.bytes += 1
        return self._handlers[self.state](c)

    def eof(self) -> Op:
        """
        Tell the scanner the input is exhausted. A space is fed to flush
        whatever is in flight; the scan only succeeds if that leaves us
        between blocks.
        """
        if self.err is not None:
            return Op.ERROR
        if self.end_block:
            self.state = State.END
            return Op.END
        self._handlers[self.state](_SPACE)
        if self.end_block:
            self.state = State.END
            return Op.END
        if self.err is None:
            self.err = BruError("unexpected end of Bru input", self.bytes)
        self.state = State.ERROR
        return Op.ERROR

    # -------- Parse stack --------
    def _push_parse_state(self, c: int, new_state: ParseState, success: Op) -> Op:
        self.parse_state.append(new_state)
        if len(self.parse_state) <= MAX_NESTING_DEPTH:
            return success
        return self._error(c, "exceeded max depth")

    def _pop_parse_state(self) -> None:
        self.parse_state.pop()
        self.end_block = True
        self.state = State.BEGIN_BLOCK_LINE

    # -------- Errors --------
    def _error(self, c: int, context: str) -> Op:
        return self._fail(f"invalid character {quote_char(c)} {context}")

    def _fail(self, msg: str) -> Op:
        self.state = State.ERROR
        self.err = BruError(msg, self.bytes)
        return Op.ERROR

    def _error_state(self, c: int) -> Op:
        return Op.ERROR

    def _end_state(self, c: int) -> Op:
        return Op.END

    # -------- Tags --------
    def _begin_block_line(self, c: int) -> Op:
        if is_space(c):
            return Op.SKIP_SPACE
        if ord("a") <= c <= ord("z"):
            self.tag_name = bytearray((c,))
            self.end_block = False
            self.state = State.READING_TAG
            return Op.BEGIN_TAG
        return self._error(c, "looking for beginning of block tag")

    def _reading_tag(self, c: int) -> Op:
        if is_space(c):
            return self._check_tag(c)
        self.tag_name.append(c)
        return Op.CONTINUE

    def _check_tag(self, c: int) -> Op:
        tag = self.tag_name.decode("utf-8", "replace")
        self.tag_name = bytearray()
        kind = TAGS.get(tag)
        if kind is None:
            return self._fail("invalid tag name: " + unknown_tag_message(tag))
        self.state = State.WAITING_FOR_OPEN_BLOCK
        return self._push_parse_state(c, _PARSE_STATE_FOR_KIND[kind], Op.END_TAG)

    def _waiting_for_open_block(self, c: int) -> Op:
        if is_space(c):
            return Op.SKIP_SPACE
        ps = self.parse_state[-1]
        if ps is ParseState.DICTIONARY_KEY and c == ord("{"):
            self.state = State.OPEN_BLOCK
            return Op.BEGIN_DICTIONARY
        if ps is ParseState.TEXT_VALUE and c == ord("{"):
            self.state = State.OPEN_BLOCK
            return Op.BEGIN_TEXT
        if ps is ParseState.ARRAY_VALUE and c == ord("["):
            self.state = State.OPEN_BLOCK
            return Op.BEGIN_ARRAY
        return self._error(c, "after block tag")

    def _open_block(self, c: int) -> Op:
        ps = self.parse_state[-1]
        if ps is ParseState.DICTIONARY_KEY:
            return self._new_dictionary_pair(c)
        if ps is ParseState.ARRAY_VALUE:
            return self._new_array_value(c)
        # text: only blanks may follow '{' on its line
        if c == _NEWLINE:
            self.state = State.NEW_TEXT_LINE
            return Op.SKIP_SPACE
        if _is_blank(c):
            return Op.SKIP_SPACE
        if c == ord("}"):
            self._pop_parse_state()
            return Op.END_BLOCK
        return self._error(c, "after text block opening brace")

    # -------- End of a key, value or text line --------
    def _end_value(self, c: int) -> Op:
        ps = self.parse_state[-1]
        if ps is ParseState.DICTIONARY_VALUE or ps is ParseState.DICTIONARY_KEY:
            # newline ends the pair, with or without a value
            self.parse_state[-1] = ParseState.DICTIONARY_KEY
            self.state = State.NEW_DICTIONARY_PAIR
            return Op.DICTIONARY_KEY
        if ps is ParseState.ARRAY_VALUE:
            if c == ord("]"):
                self._pop_parse_state()
                return Op.END_ARRAY
            self.state = State.NEW_ARRAY_VALUE
            return Op.ARRAY_VALUE
        self.state = State.NEW_TEXT_LINE
        return Op.SKIP_SPACE

    def _end_line_cr(self) -> Op:
        # '\r' ends the key or value; the '\n' that must follow is skipped
        op = self._end_value(_NEWLINE)
        self._cr_return = self.state
        self.state = State.AFTER_CR
        return op

    def _after_cr(self, c: int) -> Op:
        if c == _NEWLINE:
            self.state = self._cr_return
            return Op.SKIP_SPACE
        return self._error(c, "after carriage return")

    # -------- Dictionaries --------
    def _new_dictionary_pair(self, c: int) -> Op:
        if is_space(c):
            return Op.SKIP_SPACE
        if c == ord("}"):
            self._pop_parse_state()
            return Op.END_BLOCK
        if c == ord(":"):
            return self._error(c, "looking for beginning of dictionary key")
        self.state = State.IN_KEY
        return self._in_key(c)

    def _in_key(self, c: int) -> Op:
        if c == ord(":"):
            self.parse_state[-1] = ParseState.DICTIONARY_VALUE
            self.state = State.BEGIN_DICTIONARY_VALUE
            return Op.DICTIONARY_VALUE
        if c == _NEWLINE:
            return self._end_value(c)
        if c == _CR:
            return self._end_line_cr()
        if c == ord("}"):
            self._pop_parse_state()
            return Op.END_BLOCK
        if c == ord("\\"):
            self._esc_return = State.IN_KEY
            self.state = State.STRING_ESC
            return Op.CONTINUE
        if c < 0x20:
            return self._error(c, "in dictionary key")
        return Op.CONTINUE

    def _begin_dictionary_value(self, c: int) -> Op:
        if c == _NEWLINE:
            return self._end_value(c)
        if _is_blank(c):
            return Op.SKIP_SPACE
        self.state = State.IN_VALUE
        return self._in_value(c)

    def _in_value(self, c: int) -> Op:
        if c == ord("\\"):
            self._esc_return = State.IN_VALUE
            self.state = State.STRING_ESC
            return Op.CONTINUE
        if c == _NEWLINE:
            return self._end_value(c)
        if c == _CR:
            return self._end_line_cr()
        if self.parse_state[-1] is ParseState.ARRAY_VALUE and (c == ord(",") or c == ord("]")):
            return self._end_value(c)
        if c < 0x20:
            return self._error(c, "in value literal")
        return Op.CONTINUE

    # -------- Arrays --------
    def _new_array_value(self, c: int) -> Op:
        if is_space(c):
            return Op.SKIP_SPACE
        if c == ord("]"):
            self._pop_parse_state()
            return Op.END_ARRAY
        if c == ord("[") or c == ord("{"):
            return self._push_parse_state(c, ParseState.ARRAY_VALUE, Op.BEGIN_ARRAY)
        if c == ord(","):
            return self._error(c, "looking for beginning of array value")
        self.state = State.IN_VALUE
        return self._in_value(c)

    # -------- Text --------
    def _new_text_line(self, c: int) -> Op:
        if c == ord("}"):
            self._pop_parse_state()
            return Op.END_BLOCK
        if c != _NEWLINE:
            self.state = State.IN_TEXT
        return Op.TEXT_LINE

    def _in_text(self, c: int) -> Op:
        if c == _NEWLINE:
            return self._end_value(c)
        return Op.CONTINUE

    # -------- Escapes (accepted, never decoded) --------
    def _string_esc(self, c: int) -> Op:
        if c in _SIMPLE_ESCAPES:
            self.state = self._esc_return
            return Op.CONTINUE
        if c == ord("u"):
            self.state = State.STRING_ESC_U
            return Op.CONTINUE
        return self._error(c, "in string escape code")

    def _hex_step(self, c: int, next_state: State) -> Op:
        if c in _HEX_DIGITS:
            self.state = next_state
            return Op.CONTINUE
        return self._error(c, "in \\u hexadecimal character escape")

    def _string_esc_u(self, c: int) -> Op:
        return self._hex_step(c, State.STRING_ESC_U1)

    def _string_esc_u1(self, c: int) -> Op:
        return self._hex_step(c, State.STRING_ESC_U12)

    def _string_esc_u12(self, c: int) -> Op:
        return self._hex_step(c, State.STRING_ESC_U123)

    def _string_esc_u123(self, c: int) -> Op:
        return self._hex_step(c, self._esc_return)


# -------- Scanner pool --------
class ScannerPool:
    """Lock-protected free list of scanners, safe to share between threads."""

    def __init__(self, max_size: int = 16):
        self.max_size = max_size
        self._free: List[Scanner] = []
        self._lock = threading.Lock()

    def get(self) -> Scanner:
        with self._lock:
            scan = self._free.pop() if self._free else None
        if scan is None:
            scan = Scanner()
        scan.bytes = 0
        scan.reset()
        return scan

    def put(self, scan: Scanner) -> None:
        with self._lock:
            if len(self._free) < self.max_size:
                self._free.append(scan)

    @contextmanager
    def borrow(self) -> Iterator[Scanner]:
        scan = self.get()
        try:
            yield scan
        finally:
            self.put(scan)

    def __len__(self) -> int:
        with self._lock:
            return len(self._free)


scanner_pool = ScannerPool()


# -------- Validation --------
def check_valid(data: bytes, scan: Scanner) -> None:
    """
    Run one full scan over data without building any blocks, then make
    sure the whole buffer is UTF-8. Raises BruError at the first defect.
    """
    scan.reset()
    for c in data:
        if scan.step(c) == Op.ERROR:
            raise scan.err
    if scan.eof() == Op.ERROR:
        raise scan.err
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BruError("invalid UTF-8 in Bru input", e.start + 1) from None


def valid(data: bytes) -> bool:
    """Report whether data is a well-formed Bru file."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    with scanner_pool.borrow() as scan:
        try:
            check_valid(data, scan)
        except BruError:
            return False
    return True
