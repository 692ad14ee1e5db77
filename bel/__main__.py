import logging
import sys
from pathlib import Path

from bel.bel_config import EngineConfig
from bel.bel_printer import Printer
from bel.bel_runtime import Runner


def read_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def run_expression_file(file_path: str, runner: Runner):
    """Evaluate an expression file non-interactively and exit with appropriate status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_expression(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    print(Printer().pformat(result.value))


def main(argv=None):
    """Evaluate a file when one is given, otherwise start the interactive REPL."""
    argv = sys.argv[1:] if argv is None else argv
    config = EngineConfig.from_env()
    if config.debug:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)
    runner = Runner(config=config)

    if argv and not argv[0].startswith("-"):
        run_expression_file(argv[0], runner)
        return

    print("BEL REPL")
    print("Type 'exit' or press Ctrl+D to quit.")
    printer = Printer()

    while True:
        raw = read_line(">> ")
        if raw == "":
            print("\nExiting.")
            break
        line = raw.strip()
        if not line:
            continue
        if line == "exit":
            break

        result = runner.handle_expression(line)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue
        print(printer.pformat(result.value))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
