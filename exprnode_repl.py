import re
import sys
from pathlib import Path

from exprnode.expr_runtime import ExpressionNode
from exprnode.expr_printer import format_float

_ASSIGN = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(\S+)\s*$")


def run_line(node: ExpressionNode, line: str, out=None, err=None) -> bool:
    """Process one REPL line against `node`. Returns False when the line was rejected."""
    out = out or sys.stdout
    err = err or sys.stderr
    line = line.strip()
    if not line:
        return True

    if line == ":bindings":
        for name, value in zip(node.bindings, node.values):
            print(f"{name} = {format_float(value)}", file=out)
        return True
    if line == ":text":
        print(node.text, file=out)
        return True

    m = _ASSIGN.match(line)
    if m:
        name, raw = m.groups()
        try:
            node.set_value(name, float(raw))
        except ValueError:
            print(f"Error: not a number: {raw}", file=err)
            return False
        except KeyError:
            print(f"Error: no binding named {name!r}", file=err)
            return False
        print(node.output_text(), file=out)
        return True

    result = node.commit_text(line)
    if not result.changed:
        # Pretty, position-aware message
        print(result.format_error(), file=err)
        return False
    print(node.output_text(), file=out)
    return True


def run_script_file(file_path: str) -> int:
    """Run a file of REPL lines non-interactively and return an exit status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        return 1
    node = ExpressionNode()
    for line in source.splitlines():
        if not run_line(node, line):
            return 1
    return 0


def main(argv=None) -> int:
    """Run a script file when provided, otherwise start the interactive REPL."""
    argv = sys.argv[1:] if argv is None else argv
    if argv and not argv[0].startswith("-"):
        return run_script_file(argv[0])

    print("exprnode REPL")
    print("Type an expression, 'name = value' to set an input, or 'exit' to quit.")

    node = ExpressionNode()
    while True:
        try:
            raw = input(">> ")
        except EOFError:
            print("\nExiting.")
            break
        line = raw.strip()
        if line == "exit":
            break
        run_line(node, line)
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        print("\nExiting.")
