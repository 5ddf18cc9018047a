import io
import logging

from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)

EOF = -1  #: End-of-data sentinel returned by byte-oriented reads


class ByteSink:
    """Destination of single bytes consumed by :class:`bitops.BitWriter`."""

    def write_byte(self, b: int) -> None:
        """Write one byte (``0..255``).

        :param b: Byte value.
        :type b: int
        :returns: None
        :rtype: None
        :raises OSError: If the underlying device fails.
        """
        raise NotImplementedError

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ByteSource:
    """Origin of single bytes consumed by :class:`bitops.BitReader`.

    Subclasses that can rewind override :meth:`mark`, :meth:`reset` and
    :meth:`mark_supported`.
    """

    def read_byte(self) -> int:
        """Read one byte.

        :returns: Byte value ``0..255`` or :data:`EOF` when no data is left.
        :rtype: int
        :raises OSError: If the underlying device fails.
        """
        raise NotImplementedError

    def mark(self, limit: int) -> None:
        pass

    def reset(self) -> None:
        raise OSError("mark/reset not supported")

    def mark_supported(self) -> bool:
        return False

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class StreamSink(ByteSink):
    """Byte sink writing to a binary file object.

    :ivar stream: Target file object (``io.BytesIO``, file opened ``"wb"``).
    :type stream: BinaryIO
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def write_byte(self, b: int) -> None:
        if not 0 <= b <= 0xFF:
            raise ValueError(f"Byte value out of range: {b}")
        self.stream.write(bytes((b,)))

    def flush(self) -> None:
        self.stream.flush()

    def close(self) -> None:
        self.stream.close()


class StreamSource(ByteSource):
    """Byte source reading from a binary file object.

    Mark/reset is implemented with ``tell``/``seek`` and is therefore only
    available on seekable streams. A mark stays valid while no more than
    ``limit`` bytes have been read past it.

    :ivar stream: Source file object (``io.BytesIO``, file opened ``"rb"``).
    :type stream: BinaryIO
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self._mark_pos: Optional[int] = None
        self._mark_limit = 0
        self._since_mark = 0

    def read_byte(self) -> int:
        data = self.stream.read(1)
        if not data:
            return EOF
        if self._mark_pos is not None:
            self._since_mark += 1
            if self._since_mark > self._mark_limit:
                logger.debug(
                    "Mark invalidated after reading %d bytes (limit %d)",
                    self._since_mark, self._mark_limit,
                )
                self._mark_pos = None
        return data[0]

    def mark_supported(self) -> bool:
        try:
            return self.stream.seekable()
        except (AttributeError, ValueError):
            return False

    def mark(self, limit: int) -> None:
        """Remember the current position.

        Does nothing on a non-seekable stream, as with any source that does
        not support marking.

        :param limit: Number of bytes that may be read before the mark is
            invalidated.
        :type limit: int
        :returns: None
        :rtype: None
        """
        if not self.mark_supported():
            return
        self._mark_pos = self.stream.tell()
        self._mark_limit = max(int(limit), 0)
        self._since_mark = 0

    def reset(self) -> None:
        """Rewind to the last mark.

        :returns: None
        :rtype: None
        :raises OSError: If marking is unsupported, no mark was set, or the
            mark was invalidated by reading past its limit.
        """
        if not self.mark_supported():
            raise OSError("mark/reset not supported")
        if self._mark_pos is None:
            raise OSError("Resetting to invalid mark")
        self.stream.seek(self._mark_pos, io.SEEK_SET)
        self._since_mark = 0

    def close(self) -> None:
        self.stream.close()
