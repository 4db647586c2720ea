"""
Python Snippet Compiler.

Parses literal source text into LibCST nodes. The class compiler writes its
fixed boilerplate (lifecycle hooks, spawn functions, default methods,
dispatch arms) as text templates and splices user nodes into the parsed
result, rather than assembling every node by hand.
"""

from typing import List

import libcst as cst

from actorgen.core.errors import CompileError


def parse_function(source: str) -> cst.FunctionDef:
  """
  Parses a single function definition.

  Args:
      source: Python source of exactly one ``def`` statement.

  Returns:
      cst.FunctionDef: The parsed function.

  Raises:
      CompileError: If the text does not parse or is not a function definition.
  """
  node = parse_statement(source)
  if not isinstance(node, cst.FunctionDef):
    raise CompileError(f"Snippet is not a function definition: {source!r}")
  return node


def parse_statement(source: str) -> cst.BaseStatement:
  """
  Parses a single statement.

  Raises:
      CompileError: If the text is not valid Python.
  """
  try:
    return cst.parse_statement(source)
  except cst.ParserSyntaxError as e:
    raise CompileError(f"Invalid snippet: {e}") from e


def parse_statements(source: str) -> List[cst.BaseStatement]:
  """
  Parses a block of statements (e.g. an import header).

  Raises:
      CompileError: If the text is not valid Python.
  """
  try:
    return list(cst.parse_module(source).body)
  except cst.ParserSyntaxError as e:
    raise CompileError(f"Invalid snippet: {e}") from e

