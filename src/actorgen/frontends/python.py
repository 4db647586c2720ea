"""
Python Class Frontend.

Reads ordinary Python class syntax into a :class:`ClassDefinition`:

.. code-block:: python

    class Counter:
        def increment(self, n):
            self.total = (self.total or 0) + n

        @when(n < 0)
        def step(self, n):
            "negative"

        def step(self, n):
            "positive"

- Every ``def`` in the class body is a method; repeated names add clauses in
  declaration order.
- ``@when(expr)`` gives a clause its guard.
- ``@selector("name?")`` sets a public method name that is not an identifier.
- A trailing underscore after a keyword is dropped (``def class_(self)``
  defines ``class``).
- Positional parameters become capture patterns and ``*rest`` a rest pattern.
"""

import keyword
from typing import Dict, List, Optional

import libcst as cst

from actorgen.core.errors import CompileError
from actorgen.core.model import ClassDefinition, Clause, MethodDefinition
from actorgen.utils.console import log_warning

GUARD_DECORATOR = "when"
SELECTOR_DECORATOR = "selector"


def _is_docstring(stmt: cst.CSTNode) -> bool:
  return (
    isinstance(stmt, cst.SimpleStatementLine)
    and len(stmt.body) == 1
    and isinstance(stmt.body[0], cst.Expr)
    and isinstance(stmt.body[0].value, (cst.SimpleString, cst.ConcatenatedString))
  )


def _suite_statements(suite: cst.BaseSuite) -> List[cst.BaseStatement]:
  """Statements of an indented block, or of a one-line suite split into lines."""
  if isinstance(suite, cst.IndentedBlock):
    return list(suite.body)
  return [cst.SimpleStatementLine(body=[small.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)]) for small in suite.body]


def _decorator_argument(decorator: cst.Decorator, name: str) -> cst.BaseExpression:
  call = decorator.decorator
  if len(call.args) != 1 or call.args[0].keyword is not None or call.args[0].star:
    raise CompileError(f"@{name} takes exactly one positional argument")
  return call.args[0].value


def _decorator_name(decorator: cst.Decorator) -> Optional[str]:
  node = decorator.decorator
  if isinstance(node, cst.Call) and isinstance(node.func, cst.Name):
    return node.func.value
  return None


def _public_name(function_name: str) -> str:
  if function_name.endswith("_") and keyword.iskeyword(function_name[:-1]):
    return function_name[:-1]
  return function_name


def _capture(name: str) -> cst.MatchAs:
  # "_" is the wildcard pattern, it binds nothing
  return cst.MatchAs() if name == "_" else cst.MatchAs(name=cst.Name(name))


def _param_patterns(node: cst.FunctionDef) -> List[cst.CSTNode]:
  params = node.params
  positional = list(params.posonly_params) + list(params.params)
  name = node.name.value

  if not positional or positional[0].name.value != "self":
    raise CompileError(f"Method '{name}' must take 'self' as its first parameter")
  if params.kwonly_params or params.star_kwarg is not None:
    raise CompileError(f"Method '{name}' uses keyword-only or ** parameters, which are not supported")

  patterns: List[cst.CSTNode] = []
  bound: List[str] = []
  for param in positional[1:]:
    if param.default is not None:
      raise CompileError(f"Method '{name}' has a default for '{param.name.value}'; use another clause instead")
    patterns.append(_capture(param.name.value))
    bound.append(param.name.value)

  if isinstance(params.star_arg, cst.Param):
    star = params.star_arg.name.value
    patterns.append(cst.MatchStar(name=None if star == "_" else cst.Name(star)))
    bound.append(star)

  named = [n for n in bound if n != "_"]
  if len(set(named)) != len(named):
    raise CompileError(f"Method '{name}' repeats a parameter name")
  return patterns


def method_from_function(node: cst.FunctionDef) -> MethodDefinition:
  """
  Converts one ``def`` into a single-clause method.

  Args:
      node: The method definition.

  Returns:
      MethodDefinition: The method with one clause.

  Raises:
      CompileError: For async methods, unsupported parameters or decorators.
  """
  if node.asynchronous is not None:
    raise CompileError(f"Method '{node.name.value}' is async; methods run on an actor thread")

  guard: Optional[cst.BaseExpression] = None
  selector: Optional[str] = None
  for decorator in node.decorators:
    kind = _decorator_name(decorator)
    if kind == GUARD_DECORATOR:
      if guard is not None:
        raise CompileError(f"Method '{node.name.value}' has more than one @{GUARD_DECORATOR} guard")
      guard = _decorator_argument(decorator, GUARD_DECORATOR)
    elif kind == SELECTOR_DECORATOR:
      value = _decorator_argument(decorator, SELECTOR_DECORATOR)
      literal = value.evaluated_value if isinstance(value, (cst.SimpleString, cst.ConcatenatedString)) else None
      if not isinstance(literal, str) or selector is not None:
        raise CompileError(f"@{SELECTOR_DECORATOR} takes one plain string literal")
      selector = literal
    else:
      raise CompileError(f"Unsupported decorator on method '{node.name.value}'")

  body = _suite_statements(node.body)
  if body and _is_docstring(body[0]):
    body = body[1:]

  clause = Clause(params=tuple(_param_patterns(node)), guard=guard, body=tuple(body))
  return MethodDefinition(selector if selector is not None else _public_name(node.name.value), (clause,))


def class_from_node(node: cst.ClassDef) -> ClassDefinition:
  """
  Converts a class statement into a ClassDefinition.

  Raises:
      CompileError: If the class inherits, is decorated, or has non-method members.
  """
  name = node.name.value
  if node.bases or node.keywords:
    raise CompileError(f"Class '{name}' has base classes; inheritance is not supported")
  if node.decorators:
    raise CompileError(f"Class '{name}' is decorated; class decorators are not supported")

  methods: Dict[str, MethodDefinition] = {}
  for stmt in _suite_statements(node.body):
    if isinstance(stmt, cst.FunctionDef):
      method = method_from_function(stmt)
      existing = methods.get(method.name)
      if existing is None:
        methods[method.name] = method
      else:
        methods[method.name] = MethodDefinition(method.name, existing.clauses + method.clauses)
    elif _is_docstring(stmt):
      continue
    elif isinstance(stmt, cst.SimpleStatementLine) and all(isinstance(s, cst.Pass) for s in stmt.body):
      continue
    else:
      raise CompileError(f"Class '{name}' may only contain method definitions")

  return ClassDefinition(name, tuple(methods.values()))


class PythonFrontend:
  """
  Parses Python source and extracts its classes.
  """

  def __init__(self, code: str) -> None:
    """
    Args:
        code: Python source text.

    Raises:
        CompileError: If the source is not valid Python.
    """
    try:
      self.tree = cst.parse_module(code)
    except cst.ParserSyntaxError as e:
      raise CompileError(f"Parse error: {e}") from e

  def class_nodes(self) -> List[cst.ClassDef]:
    """Top-level class statements in source order."""
    return [stmt for stmt in self.tree.body if isinstance(stmt, cst.ClassDef)]

  def parse_classes(self) -> List[ClassDefinition]:
    """Converts every top-level class."""
    return [class_from_node(node) for node in self.class_nodes()]

  def parse_class(self, name: Optional[str] = None) -> ClassDefinition:
    """
    Converts one top-level class.

    Args:
        name: Class to select. May be omitted when the source has exactly one class.

    Raises:
        CompileError: If no class (or more than one, without a name) matches.
    """
    nodes = self.class_nodes()
    if name is not None:
      nodes = [node for node in nodes if node.name.value == name]
      if not nodes:
        raise CompileError(f"No class named '{name}' in source")
    elif len(nodes) != 1:
      found = ", ".join(node.name.value for node in nodes) or "none"
      raise CompileError(f"Expected exactly one class in source, found: {found}")

    others = [
      stmt for stmt in self.tree.body if not isinstance(stmt, cst.ClassDef) and not _is_docstring(stmt)
    ]
    if others:
      log_warning(f"Ignoring {len(others)} module-level statement(s) outside classes")

    return class_from_node(nodes[0])
