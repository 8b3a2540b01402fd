#!/usr/bin/env python3
"""
CLI for the ezr² interpreter.

Usage:
    python -m ezrsquared run FILE [-I DIR ...] [--loop-limit N] [--recursion-limit N]
    python -m ezrsquared tokens FILE
    python -m ezrsquared ast FILE [--dump]
    python -m ezrsquared shell

Examples:
    # Run a script, searching ./lib for included scripts
    python -m ezrsquared run examples/hello.ezr -I lib

    # Show the token stream of a script
    python -m ezrsquared tokens examples/hello.ezr

    # Show a quick-syntax script in verbose syntax
    python -m ezrsquared ast examples/quick.ezr

    # Interactive shell; type 'switch mode' to enter multi-line scripts
    python -m ezrsquared shell

Environment:
    EZRSQUARED_PATH  os.pathsep-separated directories appended to the include search path

Exit status is 0 on success, 1 on a language error and 2 on a fatal error
(such as unbounded recursion).
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from pprint import pformat
from typing import List, Optional

SHELL_SWITCH = "switch mode"
SHELL_RUN = "run code"
SHELL_QUIT = "quit shell"


def build_interpreter(args):
    """Create an interpreter configured from the CLI flags and the environment."""
    from .runtime import Interpreter, ModuleLoader

    search_paths = list(args.include_path or [])
    search_paths.extend(path for path in os.environ.get("EZRSQUARED_PATH", "").split(os.pathsep) if path)
    return Interpreter(ModuleLoader(search_paths), loop_limit=args.loop_limit)


def read_source(path: Path) -> Optional[str]:
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return None
    return path.read_text(encoding="utf-8")


def cmd_run(args):
    """Run a script file."""
    from .runtime import run

    source = read_source(Path(args.file))
    if source is None:
        return 1

    try:
        error, _ = run(args.file, source, interpreter=build_interpreter(args))
    except RecursionError:
        print("Fatal error: maximum recursion depth exceeded", file=sys.stderr)
        return 2

    if error is not None:
        print(error.format())
        return 1
    return 0


def cmd_tokens(args):
    """Print the token stream of a script."""
    from . import tokenize, LexerError

    source = read_source(Path(args.file))
    if source is None:
        return 1

    try:
        tokens = tokenize(source, args.file)
    except LexerError as error:
        print(error.format())
        return 1

    for token in tokens:
        print(f"{token.span.start.line}:{token.span.start.column}\t{token}")
    return 0


def cmd_ast(args):
    """Print a parsed script as verbose source, or as a structural dump."""
    from . import tokenize, parse, format_node, dump, EzrError

    source = read_source(Path(args.file))
    if source is None:
        return 1

    try:
        program = parse(tokenize(source, args.file))
    except EzrError as error:
        print(error.format())
        return 1

    if args.dump:
        print(pformat(dump(program)))
    else:
        print(format_node(program))
    return 0


def show_results(value) -> None:
    """Print shell results: one value directly, several as an array."""
    from .runtime import ArrayValue, NothingValue

    if not isinstance(value, ArrayValue):
        return
    if len(value.elements) == 1:
        if not isinstance(value.elements[0], NothingValue):
            print(value.elements[0])
    elif value.elements:
        print(value)


def cmd_shell(args):
    """Interactive shell sharing one <main> context across inputs."""
    from . import __version__
    from .runtime import Context, get_global_context, run

    interpreter = build_interpreter(args)
    context = Context("<main>", get_global_context())
    script_mode = False
    script: List[str] = []

    print(f"ezr² {__version__} - type '{SHELL_SWITCH}' for script mode, '{SHELL_QUIT}' to leave")
    while True:
        try:
            line = input("... " if script_mode else ">>> ")
        except EOFError:
            print()
            return 0

        command = line.strip()
        if command == SHELL_QUIT:
            return 0
        if command == SHELL_SWITCH:
            script_mode = not script_mode
            script = []
            continue
        if script_mode and command != SHELL_RUN:
            script.append(line)
            continue

        source = "\n".join(script) if script_mode else line
        script = []
        if not source.strip():
            continue

        try:
            error, value = run("<stdin>", source, context, interpreter)
        except RecursionError:
            print("Fatal error: maximum recursion depth exceeded", file=sys.stderr)
            continue

        if error is not None:
            print(error.format())
        else:
            show_results(value)


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        prog='python -m ezrsquared',
        description='ezr² interpreter',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='action', required=True)

    def add_runtime_options(subparser):
        subparser.add_argument('-I', '--include-path', action='append', metavar='DIR',
                               help='Directory searched by include (can be repeated)')
        subparser.add_argument('--loop-limit', type=int, metavar='N',
                               help='Maximum iterations of any single loop')
        subparser.add_argument('--recursion-limit', type=int, metavar='N',
                               help='Python recursion limit used while evaluating')

    # run command
    run_parser = subparsers.add_parser('run', help='Run a script')
    run_parser.add_argument('file', help='ezr² source file')
    add_runtime_options(run_parser)

    # tokens command
    tokens_parser = subparsers.add_parser('tokens', help='Print the token stream of a script')
    tokens_parser.add_argument('file', help='ezr² source file')

    # ast command
    ast_parser = subparsers.add_parser('ast', help='Print the parsed program')
    ast_parser.add_argument('file', help='ezr² source file')
    ast_parser.add_argument('--dump', action='store_true', help='Print the structural dump instead of source')

    # shell command
    shell_parser = subparsers.add_parser('shell', help='Start the interactive shell')
    add_runtime_options(shell_parser)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    if getattr(args, 'recursion_limit', None):
        sys.setrecursionlimit(args.recursion_limit)

    if args.action == 'run':
        return cmd_run(args)
    elif args.action == 'tokens':
        return cmd_tokens(args)
    elif args.action == 'ast':
        return cmd_ast(args)
    elif args.action == 'shell':
        return cmd_shell(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
