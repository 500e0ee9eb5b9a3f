# bru/cli.py
# Command-line wrapper around the Bru engine.
#
#   bru PATH              print an outline of the blocks
#   bru --check PATH      validate only
#   bru --format PATH     re-encode to stdout (-w rewrites PATH)
#
# Outline (LF-only):
#   begin-<kind> -- <tag>
#   key -- value          dictionary entries
#   value                 array values / text lines
#   end-<kind>
#
# Errors: print exactly one line to stderr starting with "ERROR -- " and exit 66.

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from .blocks import AnyBlock, ArrayBlock, DictionaryBlock
from .decoder import decode
from .encoder import SEPARATORS, EncoderConfig, encode
from .errors import BruError
from .scanner import check_valid, scanner_pool

logger = logging.getLogger(__name__)

EXIT_ERROR = 66


def _writeline_stdout(line: str) -> None:
    sys.stdout.buffer.write((line + "\n").encode("utf-8"))


def _writeline_stderr_error(msg: str) -> None:
    sys.stderr.buffer.write((f"ERROR -- {msg}\n").encode("utf-8"))


def outline(blocks: List[AnyBlock]) -> List[str]:
    out: List[str] = []
    for block in blocks:
        kind = block.kind.value
        out.append(f"begin-{kind} -- {block.tag}")
        if isinstance(block, DictionaryBlock):
            out.extend(f"{e.key} -- {e.value}" for e in block.content)
        elif isinstance(block, ArrayBlock):
            out.extend(block.content)
        elif block.content:
            out.extend(block.content.split("\n"))
        out.append(f"end-{kind}")
    return out


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="bru", description="Inspect, check and re-format Bru files")
    parser.add_argument("path", help="Bru file to read")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--check", action="store_true", help="Only validate the file")
    mode.add_argument("--format", action="store_true", help="Re-encode the file to stdout")
    parser.add_argument("-w", "--write", action="store_true", help="With --format, rewrite PATH in place")
    parser.add_argument("--indent", type=int, default=2, help="Indent width for entries")
    parser.add_argument(
        "--separator",
        default="",
        choices=SEPARATORS,
        help="Separator written after every dictionary pair but the last",
    )
    parser.add_argument(
        "--array-separator",
        default=",",
        choices=SEPARATORS,
        help="Separator written after every array value but the last",
    )
    parser.add_argument(
        "--trailing-newline",
        action="store_true",
        help="Keep a single newline after the last block",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug details to stderr")
    args = parser.parse_args(argv)
    if args.write and not args.format:
        parser.error("-w/--write requires --format")
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    if args.verbose and not logging.getLogger().handlers:
        logging.basicConfig(level=logging.DEBUG)

    try:
        with open(args.path, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        _writeline_stderr_error("file not found")
        return EXIT_ERROR
    except OSError as e:
        _writeline_stderr_error(e.strerror or str(e))
        return EXIT_ERROR

    try:
        if args.check:
            with scanner_pool.borrow() as scan:
                check_valid(data, scan)
            logger.debug("%s is valid", args.path)
            return 0
        blocks = decode(data)
        if args.format:
            config = EncoderConfig(
                indent=args.indent,
                separator=args.separator,
                array_separator=args.array_separator,
                trailing_newline=args.trailing_newline,
            )
            encoded = encode(blocks, config)
            if args.write:
                with open(args.path, "wb") as f:
                    f.write(encoded)
                logger.debug("rewrote %s", args.path)
            else:
                sys.stdout.buffer.write(encoded)
            return 0
        for line in outline(blocks):
            _writeline_stdout(line)
        return 0
    except BruError as e:
        _writeline_stderr_error(f"{e} (offset {e.offset})")
        return EXIT_ERROR
    except ValueError as e:
        _writeline_stderr_error(str(e))
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
