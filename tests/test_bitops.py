import io

from bitops import BLOCK_SIZE, BitWriter, BitReader


def test_bitwriter_write_bits_and_close_basic():
    sink = io.BytesIO()
    bw = BitWriter(sink, close_sink=False)
    bw.write_bits(0b1010, 4)
    bw.write_bits(0b11110000, 8)
    bw.close()
    out = sink.getvalue()
    assert len(out) == 2
    assert out[0] == 0b10101111
    assert out[1] == 0b00000000
    assert bw.bytes_written == 2


def test_bitwriter_write_bit_msb_first_and_padding():
    sink = io.BytesIO()
    with BitWriter(sink, close_sink=False) as bw:
        for bit in (1, 0, 1):
            bw.write_bit(bit)
    assert sink.getvalue() == bytes([0b10100000])


def test_bitwriter_close_releases_sink_and_is_idempotent():
    sink = io.BytesIO()
    bw = BitWriter(sink)
    bw.write_bit(1)
    bw.close()
    bw.close()
    assert sink.closed


def test_bitwriter_closes_sink_on_error():
    sink = io.BytesIO()
    try:
        with BitWriter(sink) as bw:
            bw.write_bit(1)
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert sink.closed


def test_bitwriter_no_pending_bits_writes_nothing_extra():
    sink = io.BytesIO()
    with BitWriter(sink, close_sink=False) as bw:
        bw.write_bits(0xAA, 8)
        bw.write_bits(0, 0)
    assert sink.getvalue() == bytes([0xAA])


def test_bitwriter_flushes_in_blocks():
    sink = io.BytesIO()
    bw = BitWriter(sink, close_sink=False)
    for _ in range(BLOCK_SIZE):
        bw.write_bits(0x55, 8)
    assert len(sink.getvalue()) == BLOCK_SIZE
    bw.close()
    assert len(sink.getvalue()) == BLOCK_SIZE


def test_bitreader_reads_msb_first():
    br = BitReader(io.BytesIO(bytes([0b11001010])))
    bits = [br.read_bit() for _ in range(8)]
    assert bits == [1, 1, 0, 0, 1, 0, 1, 0]
    assert br.bytes_read == 1


def test_bitreader_signals_end_of_stream():
    br = BitReader(io.BytesIO(b"\xF0"))
    for _ in range(8):
        assert br.read_bit() in (0, 1)
    assert br.read_bit() is None
    assert br.read_bit() is None


def test_bitreader_empty_source():
    assert BitReader(io.BytesIO(b"")).read_bit() is None


def test_bitreader_spans_blocks():
    data = bytes([0xFF]) * BLOCK_SIZE + bytes([0x00])
    br = BitReader(io.BytesIO(data))
    bits = [br.read_bit() for _ in range(8 * (BLOCK_SIZE + 1))]
    assert bits[:8 * BLOCK_SIZE] == [1] * (8 * BLOCK_SIZE)
    assert bits[8 * BLOCK_SIZE:] == [0] * 8
    assert br.read_bit() is None


def test_writer_and_reader_agree_on_bit_order():
    bits = [1, 0, 0, 1, 1, 1, 0, 1, 0, 1, 1]
    sink = io.BytesIO()
    with BitWriter(sink, close_sink=False) as bw:
        for bit in bits:
            bw.write_bit(bit)
    br = BitReader(io.BytesIO(sink.getvalue()))
    assert [br.read_bit() for _ in bits] == bits
    # padding
    assert [br.read_bit() for _ in range(5)] == [0] * 5
