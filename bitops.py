import logging
import threading

from typing import NamedTuple, Optional

from byteio import EOF, ByteSink, ByteSource

logger = logging.getLogger(__name__)

BITS_PER_BYTE = 8
MAX_BITS = 32  #: Widest bit-run accepted by a single read/write call


class InvalidArgumentError(ValueError):
    """Bit count out of range, or value too wide for the bit count."""


class EndOfStreamError(EOFError):
    """The source ran out before all requested bits could be read."""


def _check_nbits(nbits: int) -> None:
    if not 1 <= nbits <= MAX_BITS:
        raise InvalidArgumentError(
            f"Bit count must be between 1 and {MAX_BITS}, got {nbits}"
        )


def _check_range(size: int, offset: int, length: Optional[int]) -> int:
    """Validate a ``(offset, length)`` window over a buffer of ``size``.

    :returns: The effective length.
    :rtype: int
    :raises IndexError: If the window does not fit in the buffer.
    """
    if length is None:
        length = size - offset
    if offset < 0 or offset > size or offset + max(length, 0) > size:
        raise IndexError(
            f"Range offset={offset} length={length} outside buffer of {size}"
        )
    return length


class BitWriter:
    """Bit-packing writer on top of a byte sink.

    Values are packed most significant bit first. Bits are collected in a
    single byte accumulator which is handed to the sink as soon as it is
    full. A trailing partial byte is only written by :meth:`close`, zero
    padded in its low bits, so ``close`` must always be called.

    :ivar sink: Destination of the packed bytes.
    :type sink: byteio.ByteSink
    """

    def __init__(self, sink: ByteSink):
        """Create a writer over ``sink``.

        :param sink: Byte sink receiving complete bytes.
        :type sink: byteio.ByteSink
        :returns: None
        :rtype: None
        """
        self.sink = sink
        self._bit_buffer = 0
        self._bit_count = 0
        self._closed = False

    @property
    def pending_bits(self) -> int:
        """Number of bits waiting in the accumulator (0-8)."""
        return self._bit_count

    @property
    def closed(self) -> bool:
        return self._closed

    def write_bits(self, value: int, nbits: int) -> None:
        """Write ``value`` using exactly ``nbits`` bits, MSB first.

        If ``value`` needs fewer than ``nbits`` bits it is left-padded
        with zeros.

        :param value: Non-negative integer to write.
        :type value: int
        :param nbits: Number of bits to use (1-32).
        :type nbits: int
        :returns: None
        :rtype: None
        :raises InvalidArgumentError: If ``nbits`` is out of range or
            ``value`` cannot be written in ``nbits`` bits.
        :raises ValueError: If the writer is closed.
        :raises OSError: If the sink fails.
        """
        _check_nbits(nbits)
        if value < 0 or value > (1 << nbits) - 1:
            raise InvalidArgumentError(
                f"{value} cannot be written in {nbits} bits"
            )
        if self._closed:
            raise ValueError("I/O operation on closed writer")

        remaining = nbits
        while remaining > 0:
            if self._bit_count < BITS_PER_BYTE:
                empty = BITS_PER_BYTE - self._bit_count
                take = min(remaining, empty)
                remaining -= take
                bits = (value >> remaining) & ((1 << take) - 1)
                self._bit_buffer |= bits << (empty - take)
                self._bit_count += take
            if self._bit_count == BITS_PER_BYTE:
                # a failing sink leaves the full byte pending for a retry
                self.sink.write_byte(self._bit_buffer)
                self._bit_buffer = 0
                self._bit_count = 0

    def write_byte(self, b: int) -> None:
        """Write the low 8 bits of ``b``."""
        self.write_bits(b & 0xFF, BITS_PER_BYTE)

    def write(self, data, offset: int = 0, length: Optional[int] = None):
        """Write ``length`` bytes of ``data`` starting at ``offset``.

        The bytes are not aligned: any pending bits stay in front of them.

        :param data: Bytes-like object or sequence of ints.
        :param offset: Index of the first byte to write.
        :type offset: int
        :param length: Number of bytes to write (default: rest of ``data``).
        :type length: Optional[int]
        :returns: None
        :rtype: None
        :raises IndexError: If the range lies outside ``data``.
        """
        length = _check_range(len(data), offset, length)
        for i in range(offset, offset + length):
            self.write_byte(data[i])

    def flush(self) -> None:
        """Do nothing.

        The partial byte and the sink flush are left to :meth:`close`.
        """

    def close(self) -> None:
        """Write the pending partial byte, then flush and close the sink.

        The sink is flushed and closed even if writing the last byte fails.
        Closing twice has no effect.

        :returns: None
        :rtype: None
        :raises OSError: If the sink fails.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._bit_count > 0:
                logger.debug(
                    "Writing final partial byte (%d bits used)",
                    self._bit_count,
                )
                self.sink.write_byte(self._bit_buffer)
                self._bit_buffer = 0
                self._bit_count = 0
        finally:
            try:
                self.sink.flush()
            finally:
                self.sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class _Mark(NamedTuple):
    """Accumulator state saved together with the source's byte mark."""

    bit_count: int
    bit_buffer: int


class BitReader:
    """Bit-unpacking reader on top of a byte source.

    Mirrors :class:`BitWriter`: bytes are pulled from the source one at a
    time into an accumulator whose top bits are the ones not consumed yet.
    Also offers the byte-oriented ``read_byte``/``readinto``/``skip`` calls
    which report end of data with :data:`byteio.EOF` instead of raising.

    :ivar source: Source of the packed bytes.
    :type source: byteio.ByteSource
    """

    def __init__(self, source: ByteSource):
        """Create a reader over ``source``.

        :param source: Byte source to unpack.
        :type source: byteio.ByteSource
        :returns: None
        :rtype: None
        """
        self.source = source
        self._bit_buffer = 0
        self._bit_count = 0
        self._mark = _Mark(0, 0)
        self._mark_lock = threading.Lock()

    @property
    def pending_bits(self) -> int:
        """Number of unread bits left in the accumulator (0-8)."""
        return self._bit_count

    def read_bits(self, nbits: int) -> int:
        """Read the next ``nbits`` bits as an unsigned integer, MSB first.

        Either all bits are read or :class:`EndOfStreamError` is raised;
        a partial value is never returned.

        :param nbits: Number of bits to read (1-32).
        :type nbits: int
        :returns: The value formed by the bits.
        :rtype: int
        :raises InvalidArgumentError: If ``nbits`` is out of range.
        :raises EndOfStreamError: If the source ends first.
        :raises OSError: If the source fails.
        """
        _check_nbits(nbits)

        result = 0
        remaining = nbits
        while remaining > 0:
            if self._bit_count == 0:
                b = self.source.read_byte()
                if b == EOF:
                    raise EndOfStreamError(
                        f"End of data with {remaining} of {nbits} bits "
                        "still to read"
                    )
                self._bit_buffer = b
                self._bit_count = BITS_PER_BYTE
            take = min(remaining, self._bit_count)
            remaining -= take
            result |= (self._bit_buffer >> (BITS_PER_BYTE - take)) << remaining
            self._bit_buffer = (self._bit_buffer << take) & 0xFF
            self._bit_count -= take
        return result

    def read_byte(self) -> int:
        """Read the next 8 bits.

        :returns: Byte value, or :data:`byteio.EOF` at end of data.
        :rtype: int
        """
        try:
            return self.read_bits(BITS_PER_BYTE)
        except EndOfStreamError:
            return EOF

    def readinto(self, buffer, offset: int = 0,
                 length: Optional[int] = None) -> int:
        """Read up to ``length`` bytes into ``buffer`` at ``offset``.

        Stops early, without error, when the data runs out.

        :param buffer: Writable sequence (``bytearray``, ``memoryview``...).
        :param offset: First index of ``buffer`` to fill.
        :type offset: int
        :param length: Maximum number of bytes (default: rest of ``buffer``).
        :type length: Optional[int]
        :returns: Number of bytes stored; ``0`` if ``length <= 0``;
            :data:`byteio.EOF` if no byte could be read at all.
        :rtype: int
        :raises IndexError: If the range lies outside ``buffer``.
        """
        length = _check_range(len(buffer), offset, length)
        if length <= 0:
            return 0
        b = self.read_byte()
        if b == EOF:
            return EOF
        buffer[offset] = b
        count = 1
        while count < length:
            b = self.read_byte()
            if b == EOF:
                break
            buffer[offset + count] = b
            count += 1
        return count

    def skip(self, n: int) -> int:
        """Skip up to ``n`` bytes.

        :returns: Number of bytes actually skipped.
        :rtype: int
        """
        count = 0
        while count < n:
            if self.read_byte() == EOF:
                break
            count += 1
        return count

    def mark_supported(self) -> bool:
        return self.source.mark_supported()

    def mark(self, limit: int) -> None:
        """Mark the current bit position.

        :param limit: Bytes that may be read before the mark becomes
            invalid, as understood by the source.
        :type limit: int
        :returns: None
        :rtype: None
        """
        with self._mark_lock:
            self.source.mark(limit)
            self._mark = _Mark(self._bit_count, self._bit_buffer)
            logger.debug("Marked with %d bits pending", self._bit_count)

    def reset(self) -> None:
        """Return to the bit position of the last :meth:`mark`.

        :returns: None
        :rtype: None
        :raises OSError: If the source cannot reset; the accumulator is
            left untouched in that case.
        """
        with self._mark_lock:
            self.source.reset()
            self._bit_count, self._bit_buffer = self._mark
            logger.debug("Reset with %d bits pending", self._bit_count)

    def close(self) -> None:
        self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
