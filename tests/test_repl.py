import pytest

import bel.__main__ as repl


def feed(monkeypatch, *lines):
    it = iter(lines)

    def fake_read_line(prompt: str) -> str:
        return next(it, "")
    monkeypatch.setattr(repl, "read_line", fake_read_line)


def test_repl_exit_immediately(monkeypatch, capsys):
    feed(monkeypatch, "exit")
    repl.main([])
    out = capsys.readouterr().out
    assert "BEL REPL" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


def test_repl_prints_values(monkeypatch, capsys):
    feed(monkeypatch, "1 + 2\n", "\n", "[1, 'a']\n", "exit\n")
    repl.main([])
    out, err = capsys.readouterr()
    assert "\n3\n" in out
    assert '[1, "a"]' in out
    assert err == ""


def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    feed(monkeypatch, "1 / 0\n", "2\n", "exit\n")
    repl.main([])
    out, err = capsys.readouterr()
    assert "DivisionByZero" in err
    assert "^" in err
    assert "\n2\n" in out


def test_repl_end_of_input(monkeypatch, capsys):
    feed(monkeypatch)
    repl.main([])
    assert "Exiting." in capsys.readouterr().out


def test_run_expression_file(tmp_path, capsys):
    path = tmp_path / "expr.bel"
    path.write_text("[1, 2, 3].map(x, x * x) // squares\n", encoding="utf-8")
    repl.main([str(path)])
    assert capsys.readouterr().out.strip() == "[1, 4, 9]"


def test_run_expression_file_failure(tmp_path, capsys):
    path = tmp_path / "bad.bel"
    path.write_text("1 +", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        repl.main([str(path)])
    assert excinfo.value.code == 1
    assert "ParseError" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit):
        repl.main([str(tmp_path / "nope.bel")])
    assert "file not found" in capsys.readouterr().err
