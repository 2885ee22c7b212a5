from typing import BinaryIO, Optional

BLOCK_SIZE = 4096  #: Bytes buffered between reads/writes of the wrapped stream


class BitWriter:
    """Bit-packing writer over a binary sink.

    Accumulates individual bits into bytes (MSB first) and hands them to
    the sink in blocks.

    :ivar sink: Underlying writable binary stream.
    :type sink: BinaryIO
    :ivar buffer: Fully written bytes not yet handed to ``sink``.
    :type buffer: bytearray
    :ivar bit_buffer: 8-bit scratch register for accumulating pending bits.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer`` (0-7).
    :type bit_count: int
    :ivar bytes_written: Number of bytes emitted so far.
    :type bytes_written: int
    """

    def __init__(self, sink: BinaryIO, close_sink: bool = True):
        """Wrap ``sink`` for bit-level output.

        :param sink: Writable binary stream.
        :type sink: BinaryIO
        :param close_sink: Whether :meth:`close` also closes ``sink``.
        :type close_sink: bool
        :returns: None
        :rtype: None
        """
        self.sink = sink
        self.close_sink = close_sink
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bytes_written = 0
        self.closed = False

    def write_bit(self, bit: int):
        """Write a single bit.

        :param bit: Bit value; only the lowest bit is used.
        :type bit: int
        :returns: None
        :rtype: None
        """
        self.bit_buffer = (self.bit_buffer << 1) | (bit & 1)
        self.bit_count += 1
        if self.bit_count == 8:
            self._emit_byte()

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value``, MSB first.

        :param value: Integer whose bits will be written.
        :type value: int
        :param nbits: Number of bits from ``value`` to write.
        :type nbits: int
        :returns: None
        :rtype: None
        """
        for i in range(nbits - 1, -1, -1):
            self.bit_buffer = (self.bit_buffer << 1) | ((value >> i) & 1)
            self.bit_count += 1
            if self.bit_count == 8:
                self._emit_byte()

    def _emit_byte(self):
        self.buffer.append(self.bit_buffer)
        self.bytes_written += 1
        self.bit_buffer = 0
        self.bit_count = 0
        if len(self.buffer) >= BLOCK_SIZE:
            self.sink.write(bytes(self.buffer))
            self.buffer.clear()

    def close(self):
        """Pad the pending byte with zeros, flush, and release the sink.

        Calling it more than once has no further effect.

        :returns: None
        :rtype: None
        """
        if self.closed:
            return
        self.closed = True
        try:
            if self.bit_count > 0:
                self.bit_buffer <<= (8 - self.bit_count)
                self._emit_byte()
            if self.buffer:
                self.sink.write(bytes(self.buffer))
                self.buffer.clear()
            self.sink.flush()
        finally:
            if self.close_sink:
                self.sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class BitReader:
    """Bit-unpacking reader over a binary source.

    :ivar source: Underlying readable binary stream.
    :type source: BinaryIO
    :ivar data: Current block read from ``source``.
    :type data: bytes
    :ivar pos: Index of the next unread byte in ``data``.
    :type pos: int
    :ivar bit_buffer: Scratch register holding the current source byte.
    :type bit_buffer: int
    :ivar bit_count: Number of unread bits remaining in ``bit_buffer`` (0-8).
    :type bit_count: int
    :ivar bytes_read: Number of bytes consumed from ``source``.
    :type bytes_read: int
    """

    def __init__(self, source: BinaryIO, close_source: bool = False):
        """Wrap ``source`` for bit-level input.

        :param source: Readable binary stream, positioned where bits start.
        :type source: BinaryIO
        :param close_source: Whether :meth:`close` also closes ``source``.
        :type close_source: bool
        :returns: None
        :rtype: None
        """
        self.source = source
        self.close_source = close_source
        self.data = b""
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.bytes_read = 0

    def read_bit(self) -> Optional[int]:
        """Read the next bit, MSB first.

        :returns: ``0`` or ``1``, or ``None`` once the source is exhausted.
        :rtype: int | None
        """
        if self.bit_count == 0:
            if self.pos >= len(self.data):
                self.data = self.source.read(BLOCK_SIZE)
                self.pos = 0
                if not self.data:
                    return None
            self.bit_buffer = self.data[self.pos]
            self.pos += 1
            self.bytes_read += 1
            self.bit_count = 8
        self.bit_count -= 1
        return (self.bit_buffer >> self.bit_count) & 1

    def close(self):
        if self.close_source:
            self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
