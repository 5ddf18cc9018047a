import pytest


def test_parse_values_accepts_prefixes(m):
    assert m._parse_values(["5", "0b101", "0x1f", "0o7"]) == [5, 5, 31, 7]
    with pytest.raises(ValueError):
        _ = m._parse_values(["five"])


def test_fmt_value_formats(m):
    assert m._fmt_value(5, 3, "dec") == "5"
    assert m._fmt_value(5, 5, "bin") == "0b00101"
    assert m._fmt_value(10, 12, "hex") == "0x00a"
    assert m._fmt_value(1, 1, "hex") == "0x1"


def test_cli_parser_accepts_subcommands(m):
    parser = m.get_parser()
    ns = parser.parse_args(["pack", "1", "2", "-w", "3", "-o", "out.bin"])
    assert ns.cmd in ("pack", "p")
    assert ns.values == ["1", "2"] and ns.width == 3
    ns2 = parser.parse_args(["u", "in.bin", "-w", "5", "-n", "2", "-f", "hex"])
    assert ns2.cmd in ("unpack", "u")
    assert ns2.count == 2 and ns2.format == "hex" and not ns2.verbose


def test_cli_parser_requires_width(m):
    parser = m.get_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["pack", "1", "-o", "out.bin"])
