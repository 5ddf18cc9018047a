import io

import pytest

from byteio import EOF, ByteSource, StreamSink, StreamSource


class _Unseekable(io.RawIOBase):
    def __init__(self, data):
        self._data = io.BytesIO(data)

    def readable(self):
        return True

    def readinto(self, b):
        chunk = self._data.read(len(b))
        b[:len(chunk)] = chunk
        return len(chunk)


def test_stream_source_reads_until_eof():
    src = StreamSource(io.BytesIO(b"\x00\xff"))
    assert src.read_byte() == 0
    assert src.read_byte() == 0xFF
    assert src.read_byte() == EOF


def test_stream_source_mark_and_reset():
    src = StreamSource(io.BytesIO(b"abcd"))
    src.read_byte()
    src.mark(2)
    assert src.read_byte() == ord("b")
    assert src.read_byte() == ord("c")
    src.reset()
    assert src.read_byte() == ord("b")
    # reset keeps the mark
    src.reset()
    assert src.read_byte() == ord("b")


def test_stream_source_mark_invalidated_past_limit():
    src = StreamSource(io.BytesIO(b"abcd"))
    src.mark(1)
    src.read_byte()
    src.read_byte()
    with pytest.raises(OSError):
        src.reset()


def test_stream_source_unseekable_has_no_mark():
    src = StreamSource(_Unseekable(b"xy"))
    assert not src.mark_supported()
    src.mark(10)
    assert src.read_byte() == ord("x")
    with pytest.raises(OSError):
        src.reset()


def test_base_source_defaults():
    src = ByteSource()
    assert not src.mark_supported()
    src.mark(1)
    with pytest.raises(OSError):
        src.reset()
    with pytest.raises(NotImplementedError):
        src.read_byte()


def test_stream_sink_writes_and_closes():
    out = io.BytesIO()
    with StreamSink(out) as sink:
        sink.write_byte(0x41)
        sink.write_byte(0)
        sink.flush()
        assert out.getvalue() == b"A\x00"
        with pytest.raises(ValueError):
            sink.write_byte(256)
    assert out.closed
