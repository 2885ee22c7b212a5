import argparse
import sys

from typing import List, Optional
from codec import CodeTableError, FormatError, HuffmanCodec, TruncatedStreamError
from huffman import EOF_SYMBOL, code_lengths

SUFFIX = ".huf"  #: Default extension of encoded files


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Static Huffman file compressor"
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    encode = subparsers.add_parser(
        "encode", aliases=["e"], help="Compress a file"
    )
    encode.add_argument("input", help="File to compress")
    encode.add_argument(
        "-o",
        "--output",
        default=None,
        help=f"Output file path (default: input + '{SUFFIX}')",
    )

    decode = subparsers.add_parser(
        "decode", aliases=["d"], help="Decompress a file"
    )
    decode.add_argument("input", help="Encoded file to decompress")
    decode.add_argument(
        "-o",
        "--output",
        default=None,
        help=f"Output file path (default: input without '{SUFFIX}')",
    )

    for sub in (encode, decode):
        sub.add_argument(
            "-P",
            "--no-progress",
            action="store_true",
            help="Hide progress output",
        )
        sub.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Print the frequency and code tables",
        )

    return parser


def default_output_path(input_path: str, encoding: bool) -> str:
    """Pick an output path when none was given.

    :param input_path: Path of the file being processed.
    :type input_path: str
    :param encoding: ``True`` for encode, ``False`` for decode.
    :type encoding: bool
    :returns: ``input + '.huf'`` when encoding; when decoding, the input
        with ``.huf`` stripped, or ``input + '.out'`` otherwise.
    :rtype: str
    """
    if encoding:
        return input_path + SUFFIX
    if input_path.endswith(SUFFIX) and len(input_path) > len(SUFFIX):
        return input_path[:-len(SUFFIX)]
    return input_path + ".out"


def _print_progress(line: str) -> None:
    """Render and flush a single progress line in-place (carriage return).

    :param line: The textual progress line to display.
    :type line: str
    :returns: None
    :rtype: None
    """
    sys.stdout.write("\r" + line)
    sys.stdout.flush()


def _fmt_pct(done: int, total: int) -> str:
    """Format a completion percentage string like ``12.34%``.

    :param done: Units completed.
    :type done: int
    :param total: Total units to complete.
    :type total: int
    :returns: Percentage.
    :rtype: str
    """
    pct = 100.0 * (done / float(total))
    return f"{pct:6.2f}%"


def _fmt_bytes(n: int) -> str:
    """Format a byte count into a human-readable string.

    :param n: Number of bytes.
    :type n: int
    :returns: Human-readable string.
    :rtype: str
    """
    for unit in ['', 'Ki', 'Mi', 'Gi', 'Ti']:
        if abs(n) < 1024:
            return f"{n:.2f} {unit}B"
        n /= 1024
    return f"{n:.2f} PiB"


def _fmt_symbol(symbol: int) -> str:
    if symbol == EOF_SYMBOL:
        return "EOF"
    if 32 < symbol < 127:
        return f"{symbol:3d} {chr(symbol)!r}"
    return f"{symbol:3d}"


class Progress:
    """Callable progress reporter for a single encode/decode run.

    :ivar label: Action label (e.g., "Encoding" or "Decoding").
    :type label: str
    :ivar path: Path of the file being processed.
    :type path: str
    """

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        self._last_reported = -1

    def __call__(self, done: int, total: int) -> None:
        """Update the progress line, at most once per percent.

        :param done: Bytes processed so far.
        :type done: int
        :param total: Total bytes to process.
        :type total: int
        :returns: None
        :rtype: None
        """
        if total <= 0:
            return
        percent_bucket = int((done * 100) / total)
        if percent_bucket == self._last_reported:
            return
        self._last_reported = percent_bucket
        _print_progress(f"{self.label} {self.path}  {_fmt_pct(done, total)}")


def print_tables(freq_table: List[int], code_table=None) -> None:
    """Dump the non-zero frequencies and, if given, the codes.

    :param freq_table: 257-entry frequency table.
    :type freq_table: List[int]
    :param code_table: 257-entry code table, or ``None``.
    :type code_table: List[Optional[str]] | None
    :returns: None
    :rtype: None
    """
    lengths = code_lengths(code_table) if code_table is not None else {}
    print("Symbol      Count  Code")
    for symbol, count in enumerate(freq_table):
        if not count:
            continue
        code = code_table[symbol] if code_table is not None else ""
        line = f"{_fmt_symbol(symbol):<9} {count:>7}  {code}"
        if symbol in lengths:
            line += f" ({lengths[symbol]} bits)"
        print(line)


def print_sizes(before: int, after: int) -> None:
    print("Size before compression: ", _fmt_bytes(before))
    print("Size after compression: ", _fmt_bytes(after))
    if after > 0:
        print(f"Compression ratio: {before / after:.2f}")


def encode_file(
    input_path: str, output_path: str, hide_progress: bool, verbose: bool
) -> int:
    """Compress ``input_path`` into ``output_path`` and report statistics.

    :param input_path: File to compress.
    :type input_path: str
    :param output_path: Destination of the encoded file.
    :type output_path: str
    :param hide_progress: Whether to hide the progress line.
    :type hide_progress: bool
    :param verbose: Whether to print the frequency and code tables.
    :type verbose: bool
    :returns: Process exit status.
    :rtype: int
    """
    on_prog = None if hide_progress else Progress("Encoding", input_path)
    try:
        stats = HuffmanCodec().encode(input_path, output_path, on_prog)
    except FileNotFoundError:
        print(f"[!] Input file not found: {input_path}")
        return 1
    except PermissionError as e:
        print(f"[!] Permission error happened while accessing {e.filename}")
        return 1
    except CodeTableError as e:
        print(f"[!] {input_path} changed while encoding: {e}")
        return 1
    except ValueError as e:
        print(f"[!] {e}")
        return 1
    except OSError as e:
        print(f"[!] Cannot encode {input_path}: {e.strerror or e}")
        return 1
    if not hide_progress:
        sys.stdout.write("\n")
        sys.stdout.flush()
    if verbose:
        print_tables(stats.freq_table, stats.code_table)
    print_sizes(stats.input_size, stats.output_size)
    return 0


def decode_file(
    input_path: str, output_path: str, hide_progress: bool, verbose: bool
) -> int:
    """Decompress ``input_path`` into ``output_path``.

    :param input_path: Encoded file.
    :type input_path: str
    :param output_path: Destination of the decoded file.
    :type output_path: str
    :param hide_progress: Whether to hide the progress line.
    :type hide_progress: bool
    :param verbose: Whether to print the frequency table.
    :type verbose: bool
    :returns: Process exit status.
    :rtype: int
    """
    on_prog = None if hide_progress else Progress("Decoding", input_path)
    try:
        stats = HuffmanCodec().decode(input_path, output_path, on_prog)
    except FileNotFoundError:
        print(f"[!] Encoded file not found: {input_path}")
        return 1
    except PermissionError as e:
        print(f"[!] Permission error happened while accessing {e.filename}")
        return 1
    except FormatError as e:
        print(f"[!] Not a valid encoded file: {e}")
        return 1
    except TruncatedStreamError as e:
        print(f"[!] Encoded file is truncated: {e}")
        return 1
    except ValueError as e:
        print(f"[!] {e}")
        return 1
    except OSError as e:
        print(f"[!] Cannot decode {input_path}: {e.strerror or e}")
        return 1
    if not hide_progress:
        sys.stdout.write("\n")
        sys.stdout.flush()
    if verbose:
        print_tables(stats.freq_table)
    print_sizes(stats.output_size, stats.input_size)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI tool.

    :param argv: Arguments to parse; ``sys.argv[1:]`` if omitted.
    :type argv: List[str] | None
    :returns: Process exit status.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)
    encoding = args.cmd in ["encode", "e"]
    output = args.output or default_output_path(args.input, encoding)

    if encoding:
        return encode_file(args.input, output, args.no_progress, args.verbose)
    return decode_file(args.input, output, args.no_progress, args.verbose)


if __name__ == "__main__":
    sys.exit(main())
