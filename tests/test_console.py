import pytest

from xv6sim.console import BACKSPACE, CgaScreen, Console, ctrl
from xv6sim.errors import KernelPanic


def test_line_read_and_echo():
    con = Console()
    con.interrupt("ab\n")
    assert con.read(10) == b"ab\n"
    assert con.output == b"ab\n"


def test_incomplete_line_is_not_readable():
    con = Console()
    con.interrupt("abc")
    with pytest.raises(BlockingIOError):
        con.read(10)


def test_carriage_return_becomes_newline():
    con = Console()
    con.interrupt("x\r")
    assert con.read(10) == b"x\n"


def test_backspace_edits_line():
    con = Console()
    con.interrupt("ab\x7fc\n")
    assert con.read(10) == b"ac\n"
    assert b"\b \b" in con.output


def test_kill_line():
    con = Console()
    con.interrupt("abc" + chr(ctrl("U")) + "x\n")
    assert con.read(10) == b"x\n"


def test_backspace_cannot_erase_completed_line():
    con = Console()
    con.interrupt("a\n\x7f\x7fb\n")
    assert con.read(10) == b"a\n"
    assert con.read(10) == b"b\n"


def test_control_d_gives_eof_after_data():
    con = Console()
    con.interrupt("ab" + chr(ctrl("D")))
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_read_stops_at_count():
    con = Console()
    con.interrupt("hello\n")
    assert con.read(2) == b"he"
    assert con.read(10) == b"llo\n"


def test_procdump_called_once():
    calls = []
    con = Console(procdump=lambda: calls.append(1))
    con.interrupt(chr(ctrl("P")) + "a" + chr(ctrl("P")))
    assert calls == [1]


def test_write_reaches_screen_and_serial():
    con = Console()
    assert con.write(b"hi\nthere") == 8
    assert con.screen.text().splitlines() == ["hi", "there"]
    assert con.output == b"hi\nthere"


def test_printf_uses_kernel_dialect():
    con = Console()
    con.printf("%d-%x", 10, 255)
    assert con.output == b"10-ff"


def test_printf_null_format_panics():
    with pytest.raises(KernelPanic):
        Console().printf(None)


def test_screen_scrolls():
    con = Console()
    for i in range(30):
        con.write(f"line{i}\n".encode())
    lines = con.screen.text().splitlines()
    assert "line29" in lines
    assert "line0" not in lines
    assert con.screen.pos // 80 < 24


def test_screen_backspace_at_origin_stays():
    screen = CgaScreen()
    screen.putc(BACKSPACE)
    assert screen.pos == 0
    screen.putc(ord("a"))
    assert screen.pos == 1
    screen.putc(BACKSPACE)
    assert screen.pos == 0
    assert "a" not in screen.text()


def test_input_buffer_limit_completes_line():
    con = Console()
    con.interrupt("z" * 200)
    data = con.read(500)
    assert data == b"z" * 128