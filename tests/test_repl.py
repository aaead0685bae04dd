import io

from exprnode_repl import run_line, run_script_file, main
from exprnode.expr_runtime import ExpressionNode


def run(node, line):
    out, err = io.StringIO(), io.StringIO()
    ok = run_line(node, line, out=out, err=err)
    return ok, out.getvalue(), err.getvalue()


def test_expression_then_assignment():
    node = ExpressionNode()
    assert run(node, "a * 2 + b") == (True, "0\n", "")
    assert run(node, "a = 1.5") == (True, "3\n", "")
    ok, out, _ = run(node, ":bindings")
    assert out == "a = 1.5\nb = 0\n"


def test_parse_error_keeps_previous_expression():
    node = ExpressionNode()
    run(node, "x + 1")
    ok, out, err = run(node, "x + ")
    assert not ok
    assert out == ""
    assert err.startswith("ParseError: ")
    assert run(node, ":text") == (True, "x + 1\n", "")


def test_assignment_errors():
    node = ExpressionNode()
    run(node, "x")
    ok, _, err = run(node, "y = 2")
    assert not ok
    assert "no binding named 'y'" in err
    ok, _, err = run(node, "x = abc")
    assert not ok
    assert "not a number" in err


def test_blank_line_is_ignored():
    assert run(ExpressionNode(), "   ") == (True, "", "")


def test_run_script_file(tmp_path, capsys):
    script = tmp_path / "calc.txt"
    script.write_text("w * h\nw = 3\nh = 4\n", encoding="utf-8")
    assert run_script_file(str(script)) == 0
    assert capsys.readouterr().out.splitlines() == ["0", "0", "12"]


def test_run_script_file_stops_on_error(tmp_path, capsys):
    script = tmp_path / "bad.txt"
    script.write_text("1 +\n2\n", encoding="utf-8")
    assert run_script_file(str(script)) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "ParseError" in captured.err


def test_missing_script_file(tmp_path):
    assert main([str(tmp_path / "missing.txt")]) == 1


def test_interactive_loop(monkeypatch, capsys):
    lines = iter(["2 * 21", "exit"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(lines))
    assert main([]) == 0
    assert "42" in capsys.readouterr().out.splitlines()
