import contextlib
import io
import os
import struct
from typing import BinaryIO, Callable, List, NamedTuple, Optional

from bitops import BLOCK_SIZE, BitReader, BitWriter
from huffman import (
    ALPHABET_SIZE,
    EOF_SYMBOL,
    HuffmanNode,
    build_code_table,
    build_frequency_table,
    build_tree,
    validate_frequency_table,
)

MAGIC = b"HUF1"  #: Encoded stream magic number
VERSION = 1  #: Current header version
HEADER_FORMAT = f"<4sB{ALPHABET_SIZE}Q"  #: magic, version, 257 uint64 counts
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

ProgressCallback = Callable[[int, int], None]


class FormatError(ValueError):
    """The encoded header is missing, malformed or unsupported."""


class TruncatedStreamError(EOFError):
    """The payload ended before the end-of-stream code was read."""


class CodeTableError(ValueError):
    """The code table does not cover the data being encoded.

    Raised when a byte has no code, or when the input no longer matches the
    frequency table it was counted into.
    """


class EncodeStats(NamedTuple):
    input_size: int
    output_size: int
    freq_table: List[int]
    code_table: List[Optional[str]]


class DecodeStats(NamedTuple):
    input_size: int
    output_size: int
    freq_table: List[int]


def _report(on_progress: Optional[ProgressCallback], done: int, total: int):
    """Invoke a progress callback, ignoring any error it raises."""
    if on_progress is not None:
        try:
            on_progress(done, total)
        except Exception:
            pass


def write_header(sink: BinaryIO, freq_table: List[int]) -> int:
    """Serialize the frequency table header.

    Layout (little-endian): magic ``HUF1`` (4 bytes), version (uint8),
    then 257 uint64 counts in symbol order.

    :param sink: Writable binary stream.
    :type sink: BinaryIO
    :param freq_table: 257-entry frequency table.
    :type freq_table: List[int]
    :returns: Number of header bytes written.
    :rtype: int
    """
    header = struct.pack(HEADER_FORMAT, MAGIC, VERSION, *freq_table)
    sink.write(header)
    return len(header)


def read_header(source: BinaryIO) -> List[int]:
    """Read and validate the frequency table header.

    :param source: Readable binary stream positioned at the header.
    :type source: BinaryIO
    :returns: The stored frequency table.
    :rtype: List[int]
    :raises FormatError: If the header is short, has a bad magic number or
        version, or holds an invalid frequency table.
    """
    raw = source.read(HEADER_SIZE)
    if len(raw) < HEADER_SIZE:
        raise FormatError(
            f"Header too short: expected {HEADER_SIZE} bytes, got {len(raw)}"
        )
    magic, version, *freq_table = struct.unpack(HEADER_FORMAT, raw)
    if magic != MAGIC:
        raise FormatError("Invalid encoded format (bad magic)")
    if version != VERSION:
        raise FormatError(f"Unsupported version: {version}")
    try:
        validate_frequency_table(freq_table)
    except ValueError as e:
        raise FormatError(str(e)) from e
    return freq_table


def encode_data(
    source: BinaryIO,
    code_table: List[Optional[str]],
    writer: BitWriter,
    total: int = 0,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Write the code of every byte of ``source``, then the end-of-stream code.

    :param source: Readable binary stream holding the data to encode.
    :type source: BinaryIO
    :param code_table: Codes indexed by symbol.
    :type code_table: List[Optional[str]]
    :param writer: Bit writer receiving the payload.
    :type writer: BitWriter
    :param total: Expected input size, passed through to ``on_progress``.
    :type total: int
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Number of input bytes encoded.
    :rtype: int
    :raises CodeTableError: If a byte or the sentinel has no code.
    """
    packed = [
        None if code is None else (int(code, 2), len(code))
        for code in code_table
    ]
    if packed[EOF_SYMBOL] is None:
        raise CodeTableError("No code for the end-of-stream symbol")

    done = 0
    while True:
        block = source.read(BLOCK_SIZE)
        if not block:
            break
        for byte in block:
            entry = packed[byte]
            if entry is None:
                raise CodeTableError(f"No code for byte {byte}")
            writer.write_bits(*entry)
        done += len(block)
        _report(on_progress, done, total)

    writer.write_bits(*packed[EOF_SYMBOL])
    return done


def decode_data(
    reader: BitReader,
    root: HuffmanNode,
    sink: BinaryIO,
    total: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Walk the tree bit by bit, writing each decoded byte to ``sink``.

    A ``0`` bit descends left and a ``1`` bit descends right. When the root
    is a leaf, each bit read yields that leaf. Decoding stops at the
    end-of-stream leaf.

    :param reader: Bit reader positioned at the payload.
    :type reader: BitReader
    :param root: Root of the tree rebuilt from the header.
    :type root: HuffmanNode
    :param sink: Writable binary stream for the decoded bytes.
    :type sink: BinaryIO
    :param total: Number of bytes the header promises, if known.
    :type total: int | None
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Number of bytes written.
    :rtype: int
    :raises TruncatedStreamError: If the bits run out before end-of-stream.
    :raises FormatError: If more bytes decode than the header promises.
    """
    out = bytearray()
    done = 0
    node = root
    while True:
        bit = reader.read_bit()
        if bit is None:
            raise TruncatedStreamError(
                f"Encoded data ended after {done + len(out)} decoded bytes"
            )
        if not root.is_leaf:
            node = node.right if bit else node.left
        if not node.is_leaf:
            continue
        if node.symbol == EOF_SYMBOL:
            break
        out.append(node.symbol)
        node = root
        if len(out) >= BLOCK_SIZE:
            done += len(out)
            if total is not None and done > total:
                raise FormatError("Payload holds more data than the header")
            sink.write(bytes(out))
            out.clear()
            _report(on_progress, done, total or done)

    done += len(out)
    if total is not None and done != total:
        raise FormatError(
            f"Decoded {done} bytes, header promises {total}"
        )
    if out:
        sink.write(bytes(out))
    _report(on_progress, done, total or done)
    return done


def _check_distinct(input_path: str, output_path: str):
    """Refuse to write the output over the input file.

    :raises ValueError: If both paths name the same file.
    """
    if os.path.exists(output_path) and os.path.samefile(input_path, output_path):
        raise ValueError(f"Output path is the input file: {output_path}")


@contextlib.contextmanager
def _replace_on_success(output_path: str):
    """Write to ``output_path + '.part'`` and move it into place on success.

    On any error the partial file is removed and ``output_path`` is left
    untouched.
    """
    part_path = output_path + ".part"
    try:
        with open(part_path, "wb") as sink:
            yield sink
    except BaseException:
        if os.path.exists(part_path):
            os.remove(part_path)
        raise
    os.replace(part_path, output_path)


class HuffmanCodec:
    """Static Huffman encoder/decoder.

    Every call builds its own frequency table, tree and code table.
    """

    def encode_stream(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        on_progress: Optional[ProgressCallback] = None,
    ) -> EncodeStats:
        """Encode a seekable ``source`` into ``sink``.

        The source is read twice: once to count, then again from the start
        to encode.

        :param source: Seekable readable binary stream.
        :type source: BinaryIO
        :param sink: Writable binary stream; left open.
        :type sink: BinaryIO
        :param on_progress: Optional callback ``on_progress(done, total)``.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Sizes and tables of the encoding.
        :rtype: EncodeStats
        """
        start = source.tell()
        freq_table = build_frequency_table(source)
        source.seek(start)
        return self._encode(freq_table, source, sink, on_progress)

    def _encode(self, freq_table, source, sink, on_progress):
        code_table = build_code_table(build_tree(freq_table))
        total = sum(freq_table[:EOF_SYMBOL])

        header_size = write_header(sink, freq_table)
        with BitWriter(sink, close_sink=False) as writer:
            done = encode_data(source, code_table, writer, total, on_progress)
        if done != total:
            raise CodeTableError(
                f"Encoded {done} bytes, frequency table counted {total}"
            )
        _report(on_progress, total, total)
        return EncodeStats(
            total, header_size + writer.bytes_written, freq_table, code_table
        )

    def decode_stream(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DecodeStats:
        """Decode a stream produced by :meth:`encode_stream`.

        :param source: Readable binary stream positioned at the header.
        :type source: BinaryIO
        :param sink: Writable binary stream; left open.
        :type sink: BinaryIO
        :param on_progress: Optional callback ``on_progress(done, total)``.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Sizes and frequency table of the decoding.
        :rtype: DecodeStats
        :raises FormatError: If the header is invalid.
        :raises TruncatedStreamError: If the payload is cut short.
        """
        freq_table = read_header(source)
        return self._decode(freq_table, source, sink, on_progress)

    def _decode(self, freq_table, source, sink, on_progress):
        root = build_tree(freq_table)
        total = sum(freq_table[:EOF_SYMBOL])
        with BitReader(source) as reader:
            written = decode_data(reader, root, sink, total, on_progress)
        return DecodeStats(HEADER_SIZE + reader.bytes_read, written, freq_table)

    def compress(self, data: bytes) -> bytes:
        """Encode in-memory ``data``.

        :param data: Input bytes.
        :type data: bytes
        :returns: Header followed by the packed payload.
        :rtype: bytes
        """
        out = io.BytesIO()
        self.encode_stream(io.BytesIO(data), out)
        return out.getvalue()

    def decompress(self, data: bytes) -> bytes:
        """Decode in-memory ``data`` produced by :meth:`compress`."""
        out = io.BytesIO()
        self.decode_stream(io.BytesIO(data), out)
        return out.getvalue()

    def encode(
        self,
        input_path: str,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> EncodeStats:
        """Encode the file at ``input_path`` into ``output_path``.

        The input is opened twice, once for counting and once for encoding.

        :raises OSError: If either path cannot be opened.
        :raises ValueError: If ``output_path`` is the input file.
        :raises CodeTableError: If the input changed between the two passes.
        """
        _check_distinct(input_path, output_path)
        with open(input_path, "rb") as counting:
            freq_table = build_frequency_table(counting)
        with open(input_path, "rb") as source, \
                _replace_on_success(output_path) as sink:
            return self._encode(freq_table, source, sink, on_progress)

    def decode(
        self,
        input_path: str,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DecodeStats:
        """Decode the file at ``input_path`` into ``output_path``.

        The header is validated before ``output_path`` is created, and
        ``output_path`` is only replaced once decoding succeeds.

        :raises OSError: If either path cannot be opened.
        :raises ValueError: If ``output_path`` is the input file.
        :raises FormatError: If the header is invalid.
        :raises TruncatedStreamError: If the payload is cut short.
        """
        _check_distinct(input_path, output_path)
        with open(input_path, "rb") as source:
            freq_table = read_header(source)
            with _replace_on_success(output_path) as sink:
                return self._decode(freq_table, source, sink, on_progress)


def encode(input_path: str, output_path: str) -> EncodeStats:
    return HuffmanCodec().encode(input_path, output_path)


def decode(input_path: str, output_path: str) -> DecodeStats:
    return HuffmanCodec().decode(input_path, output_path)
