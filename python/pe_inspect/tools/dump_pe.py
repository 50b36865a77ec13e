#!/usr/bin/env python3
"""
PE header dump CLI tool.

Decodes a PE binary and prints its headers, section table and exports, or
writes the same summary as MessagePack.

Usage:
    python -m pe_inspect.tools.dump_pe <binary> [--verbose] [--rva-mode MODE]
        [--format text|msgpack] [--output PATH]
"""

import argparse
import logging
import sys
from pathlib import Path

from pe_inspect import (
    DecodeOptions,
    format_image,
    pack_image,
    read_pe,
)


def dump_binary(
    binary: Path,
    options: DecodeOptions,
    fmt: str = "text",
    output: Path | None = None,
) -> None:
    """Decode a binary and emit its summary.

    Args:
        binary: Path to PE binary
        options: Decode settings
        fmt: "text" or "msgpack"
        output: File to write to (stdout if None)

    Raises:
        PeDecodeError: If the binary cannot be decoded
    """
    image = read_pe(binary, options)

    if fmt == "msgpack":
        payload = pack_image(image)
        if output is None:
            sys.stdout.buffer.write(payload)
            sys.stdout.buffer.flush()
        else:
            output.write_bytes(payload)
        return

    text = format_image(image)
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Dump the headers, sections and exports of a PE binary"
    )
    parser.add_argument("binary", type=Path, help="Path to PE binary to decode")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging from the decoder",
    )
    parser.add_argument(
        "--format",
        choices=["text", "msgpack"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Write output to this file instead of stdout",
    )
    DecodeOptions.configure_argparse(parser)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.binary.exists():
        print(f"Error: {args.binary} does not exist", file=sys.stderr)
        sys.exit(1)

    try:
        options = DecodeOptions.from_args(args)
        dump_binary(args.binary, options, args.format, args.output)
    except ValueError as e:  # PeDecodeError or a bad $PE_INSPECT_RVA_MODE
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
