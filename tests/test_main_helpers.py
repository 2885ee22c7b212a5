def test_default_output_path(m):
    assert m.default_output_path("a.txt", True) == "a.txt.huf"
    assert m.default_output_path("a.txt.huf", False) == "a.txt"
    assert m.default_output_path("a.bin", False) == "a.bin.out"
    assert m.default_output_path(".huf", False) == ".huf.out"


def test_fmt_pct_and_bytes(m):
    assert m._fmt_pct(50, 100).strip().endswith("%")
    assert m._fmt_pct(10, 10).strip().startswith("100")

    assert m._fmt_bytes(0) == "0.00 B"
    assert m._fmt_bytes(1024).endswith("KiB")


def test_fmt_symbol(m):
    assert m._fmt_symbol(256) == "EOF"
    assert "'A'" in m._fmt_symbol(65)
    assert m._fmt_symbol(10).strip() == "10"


def test_progress_calls_bucketed(no_progress, m):
    p = m.Progress("Encoding", "x.txt")
    p(0, 100)
    p(0, 100)
    p(10, 100)
    p(10, 100)
    p(19, 100)
    p(19, 100)
    p(5, 0)
    assert len(no_progress) == 3
    assert all(line.startswith("Encoding x.txt") for line in no_progress)


def test_print_tables_skips_zero_counts(capsys, m):
    counts = [0] * 257
    counts[65] = 3
    counts[256] = 1
    codes = [None] * 257
    codes[65] = "1"
    codes[256] = "0"
    m.print_tables(counts, codes)
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3
    assert "(1 bits)" in lines[1]


def test_cli_parser_accepts_subcommands(m):
    parser = m.get_parser()
    ns = parser.parse_args(["encode", "file1", "-o", "out.huf"])
    assert ns.cmd in ("encode", "e")
    assert ns.output == "out.huf"
    ns2 = parser.parse_args(["d", "in.huf", "-P", "-v"])
    assert ns2.cmd in ("decode", "d")
    assert ns2.no_progress and ns2.verbose and ns2.output is None
