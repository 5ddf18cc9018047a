import argparse
import logging
import sys

from typing import List, Optional

from bitops import MAX_BITS, BitReader, BitWriter, EndOfStreamError
from byteio import StreamSink, StreamSource

FORMATS = ("dec", "hex", "bin")  #: Output formats accepted by ``unpack``


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Pack and unpack integers using a fixed number of bits"
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    pack = subparsers.add_parser(
        "pack", aliases=["p"], help="Pack integers into a binary file"
    )
    pack.add_argument(
        "values",
        nargs="+",
        help="Values to pack (0b, 0o and 0x prefixes are accepted)",
    )
    pack.add_argument(
        "-w", "--width", type=int, required=True,
        help=f"Bits per value (1-{MAX_BITS})",
    )
    pack.add_argument(
        "-o", "--output", required=True, help="Output file path"
    )
    pack.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    unpack = subparsers.add_parser(
        "unpack", aliases=["u"], help="Unpack integers from a binary file"
    )
    unpack.add_argument("input", help="Packed file to read")
    unpack.add_argument(
        "-w", "--width", type=int, required=True,
        help=f"Bits per value (1-{MAX_BITS})",
    )
    unpack.add_argument(
        "-n", "--count", type=int, default=None,
        help="Number of values to read (default: until end of data)",
    )
    unpack.add_argument(
        "-f", "--format", choices=FORMATS, default="dec",
        help="Output format (default: dec)",
    )
    unpack.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    return parser


def _parse_values(values: List[str]) -> List[int]:
    """Parse integer literals given on the command line.

    :param values: Literals such as ``"5"``, ``"0b101"`` or ``"0xff"``.
    :type values: List[str]
    :returns: Parsed integers.
    :rtype: List[int]
    :raises ValueError: If a literal is not an integer.
    """
    return [int(v, 0) for v in values]


def _fmt_value(value: int, width: int, fmt: str) -> str:
    """Render an unpacked value.

    :param value: Value to render.
    :type value: int
    :param width: Bit width used to zero-pad ``bin``/``hex`` output.
    :type width: int
    :param fmt: One of :data:`FORMATS`.
    :type fmt: str
    :returns: Rendered value.
    :rtype: str
    """
    if fmt == "bin":
        return f"0b{value:0{width}b}"
    if fmt == "hex":
        return f"0x{value:0{(width + 3) // 4}x}"
    return str(value)


def pack_values(values: List[int], width: int, output_path: str) -> int:
    """Write ``values`` to ``output_path`` using ``width`` bits each.

    The last byte is zero padded.

    :param values: Non-negative integers that fit in ``width`` bits.
    :type values: List[int]
    :param width: Bits per value.
    :type width: int
    :param output_path: Destination file path.
    :type output_path: str
    :returns: Number of bytes written.
    :rtype: int
    :raises bitops.InvalidArgumentError: If the width is out of range or a
        value does not fit.
    """
    with open(output_path, "wb") as out:
        with BitWriter(StreamSink(out)) as writer:
            for value in values:
                writer.write_bits(value, width)
    return (len(values) * width + 7) // 8


def unpack_values(
    input_path: str, width: int, count: Optional[int] = None
) -> List[int]:
    """Read values of ``width`` bits from ``input_path``.

    :param input_path: Packed file path.
    :type input_path: str
    :param width: Bits per value.
    :type width: int
    :param count: Maximum number of values; ``None`` reads until the data
        runs out.
    :type count: Optional[int]
    :returns: Values read.
    :rtype: List[int]
    """
    values: List[int] = []
    with BitReader(StreamSource(open(input_path, "rb"))) as reader:
        while count is None or len(values) < count:
            try:
                values.append(reader.read_bits(width))
            except EndOfStreamError:
                break
    return values


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI tool.

    :param argv: Arguments (default: ``sys.argv[1:]``).
    :type argv: Optional[List[str]]
    :returns: Process exit status.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        if args.cmd in ["pack", "p"]:
            values = _parse_values(args.values)
            size = pack_values(values, args.width, args.output)
            print(f"Packed {len(values)} values into {size} bytes")
        elif args.cmd in ["unpack", "u"]:
            for value in unpack_values(args.input, args.width, args.count):
                print(_fmt_value(value, args.width, args.format))
    except FileNotFoundError as e:
        print(f"[!] File not found: {e.filename}")
        return 1
    except ValueError as e:
        print(f"[!] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
