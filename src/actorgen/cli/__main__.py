"""
Main Entry Point for the actorgen CLI.

This module handles argument parsing and dispatches to the command
handlers defined in `actorgen.cli.commands`.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from actorgen import __version__
from actorgen.cli import commands
from actorgen.config import parse_cli_key_values
from actorgen.utils.console import set_log_level


def _add_common(cmd: argparse.ArgumentParser) -> None:
  cmd.add_argument("path", type=Path, help="Python file containing the class")
  cmd.add_argument("--class", dest="class_name", default=None, help="Class to use when the file defines several")
  cmd.add_argument(
    "--config",
    nargs="*",
    help="Compiler settings in key=value format (e.g. call_timeout=10 method_prefix=_m_)",
  )


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="actorgen: Compile classes into actor modules")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  parser.add_argument("-q", "--quiet", action="store_true", help="Only report warnings and errors")

  subparsers = parser.add_subparsers(dest="command")

  # --- Command: COMPILE ---
  cmd_compile = subparsers.add_parser("compile", help="Generate the actor module for a class")
  _add_common(cmd_compile)
  cmd_compile.add_argument("--out", type=Path, help="Output file (prints to stdout if omitted)")
  cmd_compile.add_argument(
    "--json-trace", type=Path, default=None, help="Dump the compile trace (phases, clause rewrites) to a JSON file."
  )

  # --- Command: INSPECT ---
  cmd_inspect = subparsers.add_parser("inspect", help="Show the dispatch table of a class")
  _add_common(cmd_inspect)

  # --- Command: RUN ---
  cmd_run = subparsers.add_parser("run", help="Create an object and call methods on it")
  _add_common(cmd_run)
  cmd_run.add_argument(
    "--call",
    dest="calls",
    action="append",
    default=[],
    help='Method call as "name arg ..." (repeatable, e.g. --call "increment 5")',
  )
  cmd_run.add_argument("--init", dest="init_args", default=None, help="Arguments passed to initialize")
  cmd_run.add_argument("--timeout", type=float, default=None, help="Seconds to wait for each reply")

  args = parser.parse_args(argv)

  if args.command is None:
    parser.print_help()
    return 0

  if args.quiet:
    set_log_level(logging.WARNING)

  settings = parse_cli_key_values(args.config)

  if args.command == "compile":
    return commands.handle_compile(args.path, args.class_name, args.out, settings, args.json_trace)

  elif args.command == "inspect":
    return commands.handle_inspect(args.path, args.class_name, settings)

  elif args.command == "run":
    return commands.handle_run(args.path, args.class_name, args.calls, args.init_args, args.timeout, settings)

  return 0


if __name__ == "__main__":
  sys.exit(main())
