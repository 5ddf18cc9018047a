import io
import sys
from pathlib import Path
import importlib
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from byteio import ByteSink  # noqa: E402


@pytest.fixture()
def m():
    """Lazily import the main module for tests to avoid module-level import."""
    return importlib.import_module("main")


class RecordingSink(ByteSink):
    """Sink keeping written bytes and the order of flush/close calls.

    Set ``fail_writes`` to make every ``write_byte`` raise ``OSError``.
    """

    def __init__(self):
        self.data = bytearray()
        self.calls = []
        self.fail_writes = False

    def write_byte(self, b):
        if self.fail_writes:
            self.calls.append("write-failed")
            raise OSError("sink is broken")
        self.calls.append("write")
        self.data.append(b)

    def flush(self):
        self.calls.append("flush")

    def close(self):
        self.calls.append("close")


@pytest.fixture()
def recording_sink():
    return RecordingSink()


@pytest.fixture()
def pack():
    """Return a helper packing ``(value, nbits)`` pairs into bytes."""
    from bitops import BitWriter

    def _pack(pairs):
        sink = RecordingSink()
        writer = BitWriter(sink)
        for value, nbits in pairs:
            writer.write_bits(value, nbits)
        writer.close()
        return bytes(sink.data)

    return _pack


@pytest.fixture()
def reader_for():
    """Return a factory building a BitReader over in-memory bytes."""
    from bitops import BitReader
    from byteio import StreamSource

    def _reader(data: bytes):
        return BitReader(StreamSource(io.BytesIO(data)))

    return _reader
