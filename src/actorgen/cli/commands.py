"""
CLI Command Handlers.

Implements the ``actorgen`` commands:
1. ``compile``: Python class source -> generated module source.
2. ``inspect``: Show the dispatch table of a compiled class.
3. ``run``: Load a class, create one object and call methods on it.
"""

import ast
import json
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.markup import escape
from rich.table import Table

from actorgen.config import CompilerConfig
from actorgen.core.engine import ClassCompiler
from actorgen.core.errors import CompileError, LoadError
from actorgen.enums import FunctionKind
from actorgen.loader import load
from actorgen.runtime import gen_server
from actorgen.runtime.errors import ActorError
from actorgen.runtime.objects import call, new_instance
from actorgen.utils.console import console, log_error, log_info, log_success


def _read_source(path: Path) -> Optional[str]:
  if not path.is_file():
    log_error(f"Input not found: {path}")
    return None
  return path.read_text(encoding="utf-8")


def _load_config(path: Path, settings: Dict[str, Any]) -> Optional[CompilerConfig]:
  try:
    return CompilerConfig.load(overrides=settings, search_path=path.parent)
  except ValueError as e:
    log_error(f"Invalid configuration: {escape(str(e))}")
    return None


def parse_call(text: str) -> Tuple[str, List[Any]]:
  """
  Splits a ``--call`` string into a method name and arguments.

  Arguments are read as Python literals where possible and as plain strings
  otherwise: ``"increment 5"`` -> ``("increment", [5])``.

  Args:
      text (str): Method name followed by whitespace separated arguments.

  Returns:
      Tuple[str, List[Any]]: The method name and argument values.

  Raises:
      ValueError: If the string is empty.
  """
  parts = shlex.split(text)
  if not parts:
    raise ValueError("Empty call")

  arguments = []
  for raw in parts[1:]:
    try:
      arguments.append(ast.literal_eval(raw))
    except (ValueError, SyntaxError):
      arguments.append(raw)
  return parts[0], arguments


def handle_compile(
  input_path: Path,
  class_name: Optional[str],
  output_path: Optional[Path],
  settings: Dict[str, Any],
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'compile' command.

  Args:
      input_path: Python file containing the class.
      class_name: Class to compile when the file holds several.
      output_path: Where to write the generated module. Printed if omitted.
      settings: ``--config`` overrides.
      json_trace_path: Optional path to dump the compile trace as JSON.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  source = _read_source(input_path)
  if source is None:
    return 1

  if json_trace_path:
    settings = {**settings, "trace": True}
  config = _load_config(input_path, settings)
  if config is None:
    return 1

  result = ClassCompiler(config).run(source, class_name)

  if json_trace_path:
    json_trace_path.write_text(json.dumps(result.trace_events, indent=2, default=str), encoding="utf-8")
    log_info(f"Trace written to [path]{json_trace_path}[/path]")

  if not result.success:
    for error in result.errors:
      log_error(escape(error))
    return 1

  if output_path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(result.code, encoding="utf-8")
    log_success(f"Class [bold]{result.class_name}[/bold] compiled to [path]{output_path}[/path]")
  else:
    console.print(result.code, markup=False, highlight=False)
  return 0


def handle_inspect(input_path: Path, class_name: Optional[str], settings: Dict[str, Any]) -> int:
  """
  Handles the 'inspect' command: prints the generated functions and dispatch table.
  """
  source = _read_source(input_path)
  if source is None:
    return 1
  config = _load_config(input_path, settings)
  if config is None:
    return 1

  try:
    module = ClassCompiler(config).compile_source(source, class_name)
  except CompileError as e:
    log_error(escape(str(e)))
    return 1

  table = Table(title=f"Class {module.name}")
  table.add_column("Method", style="method")
  table.add_column("Function")
  table.add_column("Clauses", justify="right")
  for entry in module.dispatch_table:
    table.add_row(entry.method_name, entry.function_name, str(entry.clause_count))
  console.print(table)

  counts = ", ".join(f"{len(module.functions_of(kind))} {kind.value}" for kind in FunctionKind)
  console.print(f"{len(module.functions)} functions ({counts})")
  return 0


def handle_run(
  input_path: Path,
  class_name: Optional[str],
  calls: List[str],
  init_args: Optional[str],
  timeout: Optional[float],
  settings: Dict[str, Any],
) -> int:
  """
  Handles the 'run' command.

  Compiles and loads the class, creates one object (``initialize`` receives
  ``init_args``) and performs each call in order, printing the results.
  A failing call is reported and the remaining calls still run.

  Returns:
      int: 0 if every call succeeded, 1 otherwise.
  """
  source = _read_source(input_path)
  if source is None:
    return 1
  if timeout is not None:
    settings = {**settings, "call_timeout": timeout}
  config = _load_config(input_path, settings)
  if config is None:
    return 1

  try:
    module = load(ClassCompiler(config).compile_source(source, class_name), config)
  except (CompileError, LoadError) as e:
    log_error(escape(str(e)))
    return 1

  try:
    _, arguments = parse_call(f"initialize {init_args or ''}")
    handle = new_instance(module, *arguments, timeout=config.call_timeout)
  except (ActorError, ValueError) as e:
    log_error(f"initialize failed: {escape(str(e))}")
    return 1

  failures = 0
  try:
    for text in calls:
      try:
        method, arguments = parse_call(text)
      except ValueError as e:
        log_error(f"Invalid call {escape(repr(text))}: {e}")
        failures += 1
        continue

      try:
        value = call(handle, method, *arguments, timeout=config.call_timeout)
      except ActorError as e:
        log_error(f"{method}: {escape(str(e))}")
        failures += 1
        continue
      console.print(f"[method]{method}[/method] -> {escape(repr(value))}")
  finally:
    if handle.pid.is_alive():
      gen_server.stop(handle.pid)

  return 1 if failures else 0
