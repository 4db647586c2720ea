"""
Instance-Variable State Threading.

Rewrites one method clause into a ``case`` arm that takes the instance store
as an explicit value and hands the final store back with the reply.

The store is an immutable :class:`~actorgen.runtime.store.InstanceStore`.
Inside a clause it lives in versioned variables ``__ivars_0``, ``__ivars_1``,
... and every write produces the next version:

- ``self.f`` (read) becomes ``__ivars_k.get('f')``.
- ``self.f = v`` becomes ``__ivars_{k+1} = __ivars_k.set('f', v)``.
- ``self.f op= v`` becomes ``__ivars_{k+1} = __ivars_k.set('f', __ivars_k.get('f') op v)``.
- ``del self.f`` becomes ``__ivars_{k+1} = __ivars_k.delete('f')``.

Compound statements (``if``, ``for``, ``while``, ``try``, ``with``, ``match``)
that write anywhere inside are preceded by ``__ivars_{k+1} = __ivars_k`` and
rebind ``__ivars_{k+1}`` in place, so every path out of them leaves the
latest store in one variable. The version reached after the last statement is
the store returned by the clause.
"""

from typing import List, Optional, Set, Tuple

import libcst as cst
from libcst import matchers as m

from actorgen.config import CompilerConfig
from actorgen.core.errors import CompileError
from actorgen.core.model import Clause
from actorgen.core.snippets import parse_statement
from actorgen.core.tracer import TraceLogger, get_tracer
from actorgen.enums import ReplyTag
from actorgen.utils.node_diff import capture_node_source

_AUG_TO_BINARY = {
  cst.AddAssign: cst.Add,
  cst.SubtractAssign: cst.Subtract,
  cst.MultiplyAssign: cst.Multiply,
  cst.DivideAssign: cst.Divide,
  cst.FloorDivideAssign: cst.FloorDivide,
  cst.ModuloAssign: cst.Modulo,
  cst.PowerAssign: cst.Power,
  cst.MatrixMultiplyAssign: cst.MatrixMultiply,
  cst.LeftShiftAssign: cst.LeftShift,
  cst.RightShiftAssign: cst.RightShift,
  cst.BitAndAssign: cst.BitAnd,
  cst.BitOrAssign: cst.BitOr,
  cst.BitXorAssign: cst.BitXor,
}

# Operands that never need parentheses on the right of a binary operator.
_ATOMIC_EXPRESSIONS = (
  cst.Name,
  cst.Integer,
  cst.Float,
  cst.Imaginary,
  cst.SimpleString,
  cst.ConcatenatedString,
  cst.FormattedString,
  cst.Call,
  cst.Attribute,
  cst.Subscript,
  cst.List,
  cst.Dict,
  cst.Set,
  cst.ListComp,
  cst.DictComp,
  cst.SetComp,
)

_SELF_FIELD = m.Attribute(value=m.Name("self"))

# Pattern name bound to the caller in every clause arm.
CALLER_VARIABLE = "_caller"


def field_name(node: cst.CSTNode) -> Optional[str]:
  """
  Returns ``f`` if ``node`` is the instance-variable access ``self.f``.
  """
  if m.matches(node, _SELF_FIELD):
    return node.attr.value
  return None


def declares_self(node: cst.CSTNode) -> bool:
  """
  True for a nested ``def`` or ``lambda`` with its own ``self`` parameter.

  Inside such a scope ``self`` is another object, so its attributes are not
  instance variables of the enclosing method.
  """
  if not isinstance(node, (cst.FunctionDef, cst.Lambda)):
    return False
  params = node.params
  declared = [*params.posonly_params, *params.params, *params.kwonly_params]
  for extra in (params.star_arg, params.star_kwarg):
    if isinstance(extra, cst.Param):
      declared.append(extra)
  return any(param.name.value == "self" for param in declared)


def _binds_field(target: cst.CSTNode) -> bool:
  if field_name(target) is not None:
    return True
  if isinstance(target, (cst.Tuple, cst.List)):
    return any(_binds_field(element.value) for element in target.elements)
  if isinstance(target, cst.StarredElement):
    return _binds_field(target.value)
  return False


def _store_call(store: str, method: str, *args: cst.BaseExpression) -> cst.Call:
  return cst.Call(
    func=cst.Attribute(value=cst.Name(store), attr=cst.Name(method)),
    args=[cst.Arg(value=arg) for arg in args],
  )


def _field_literal(name: str) -> cst.SimpleString:
  return cst.SimpleString(repr(name))


def _parenthesize(node: cst.BaseExpression) -> cst.BaseExpression:
  if isinstance(node, _ATOMIC_EXPRESSIONS) or node.lpar:
    return node
  return node.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])


def _bind(name: str, value: cst.BaseExpression) -> cst.Assign:
  return cst.Assign(targets=[cst.AssignTarget(target=cst.Name(name))], value=value)


def reply_value(value: cst.BaseExpression, store: str) -> cst.Tuple:
  """
  Builds ``("reply", ("ok", value), store)``.
  """
  if isinstance(value, cst.Tuple) and not value.lpar:
    value = value.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])
  payload = cst.Tuple(
    elements=[
      cst.Element(cst.SimpleString(f'"{ReplyTag.OK.value}"')),
      cst.Element(value),
    ]
  )
  return cst.Tuple(
    elements=[
      cst.Element(cst.SimpleString(f'"{ReplyTag.REPLY.value}"')),
      cst.Element(payload),
      cst.Element(cst.Name(store)),
    ]
  )


def reply_statement(value: cst.BaseExpression, store: str) -> cst.SimpleStatementLine:
  """
  Builds the closing ``return ("reply", ("ok", value), store)`` of a clause.
  """
  return cst.SimpleStatementLine(body=[cst.Return(value=reply_value(value, store))])


def rewrite_write(small: cst.BaseSmallStatement, current: str, following: str) -> Optional[cst.BaseSmallStatement]:
  """
  Turns a write to an instance variable into a store update.

  Reads of instance variables inside the produced statement are left as
  ``self.f`` for the read pass to resolve against ``current``.

  Args:
      small: The statement to inspect.
      current: Store variable read by the update.
      following: Store variable bound by the update.

  Returns:
      The replacement statement, or None if ``small`` writes no instance variable.

  Raises:
      CompileError: For writes that cannot be expressed as a single store update.
  """
  if isinstance(small, cst.Assign):
    if not any(_binds_field(t.target) for t in small.targets):
      if any(m.matches(t.target, m.Name("self")) for t in small.targets):
        raise CompileError("'self' cannot be rebound inside a method")
      return None
    if len(small.targets) != 1 or field_name(small.targets[0].target) is None:
      raise CompileError(
        "Instance variables can only be assigned one at a time "
        f"(got '{capture_node_source(small).strip()}')"
      )
    name = field_name(small.targets[0].target)
    update = _store_call(current, "set", _field_literal(name), small.value)

  elif isinstance(small, cst.AugAssign):
    name = field_name(small.target)
    if name is None:
      return None
    operator = _AUG_TO_BINARY[type(small.operator)]()
    combined = cst.BinaryOperation(left=small.target, operator=operator, right=_parenthesize(small.value))
    update = _store_call(current, "set", _field_literal(name), combined)

  elif isinstance(small, cst.AnnAssign):
    name = field_name(small.target)
    if name is None:
      return None
    if small.value is None:
      raise CompileError(f"Instance variable 'self.{name}' is annotated but never assigned")
    update = _store_call(current, "set", _field_literal(name), small.value)

  elif isinstance(small, cst.Del):
    name = field_name(small.target)
    if name is None:
      if _binds_field(small.target):
        raise CompileError("Instance variables can only be deleted one at a time")
      return None
    update = _store_call(current, "delete", _field_literal(name))

  else:
    return None

  return _bind(following, update).with_changes(semicolon=small.semicolon)


class _BodyScanner(cst.CSTVisitor):
  """
  Finds instance-variable writes and rejects constructs the threading cannot express.
  """

  def __init__(self) -> None:
    self.has_write = False
    self._depth = 0  # nested function, class and lambda scopes

  def _enter(self) -> None:
    self._depth += 1

  def _leave(self) -> None:
    self._depth -= 1

  def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
    self._enter()
    return not declares_self(node)

  def leave_FunctionDef(self, original_node: cst.FunctionDef) -> None:
    self._leave()

  def visit_ClassDef(self, node: cst.ClassDef) -> None:
    self._enter()

  def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
    self._leave()

  def visit_Lambda(self, node: cst.Lambda) -> bool:
    self._enter()
    return not declares_self(node)

  def leave_Lambda(self, original_node: cst.Lambda) -> None:
    self._leave()

  def visit_Try(self, node: cst.Try) -> None:
    self._check_finally(node)

  def visit_TryStar(self, node: cst.TryStar) -> None:
    self._check_finally(node)

  def _check_finally(self, node: cst.BaseCompoundStatement) -> None:
    # A return builds its reply before the finally block runs.
    if self._depth or node.finalbody is None:
      return
    if not scan_body(node.finalbody):
      return
    exits = [node.body, *node.handlers]
    if node.orelse is not None:
      exits.append(node.orelse)
    if any(has_return(part) for part in exits):
      raise CompileError(
        "Instance variables cannot be assigned in a 'finally' block whose 'try' returns; "
        "assign before returning instead"
      )

  def visit_Call(self, node: cst.Call) -> None:
    name = field_name(node.func)
    if name is not None:
      raise CompileError(
        f"'self.{name}(...)' is not supported; instance variables hold values and "
        "methods cannot be called through 'self'"
      )

  def _note_write(self) -> None:
    if self._depth:
      raise CompileError("Instance variables cannot be assigned inside nested functions or classes")
    self.has_write = True

  def visit_Assign(self, node: cst.Assign) -> None:
    if any(_binds_field(t.target) for t in node.targets):
      self._note_write()

  def visit_AugAssign(self, node: cst.AugAssign) -> None:
    if field_name(node.target) is not None:
      self._note_write()

  def visit_AnnAssign(self, node: cst.AnnAssign) -> None:
    if field_name(node.target) is not None:
      self._note_write()

  def visit_Del(self, node: cst.Del) -> None:
    if _binds_field(node.target):
      self._note_write()

  def visit_For(self, node: cst.For) -> None:
    if _binds_field(node.target):
      raise CompileError("Instance variables cannot be used as loop targets")
    if node.asynchronous is not None and not self._depth:
      raise CompileError("'async for' is not supported in methods")

  def visit_With(self, node: cst.With) -> None:
    if node.asynchronous is not None and not self._depth:
      raise CompileError("'async with' is not supported in methods")

  def visit_WithItem(self, node: cst.WithItem) -> None:
    if node.asname is not None and _binds_field(node.asname.name):
      raise CompileError("Instance variables cannot be bound by 'with ... as'")

  def visit_MatchValue(self, node: cst.MatchValue) -> None:
    if m.findall(node, _SELF_FIELD):
      raise CompileError("Instance variables cannot be used as match patterns")

  def visit_Yield(self, node: cst.Yield) -> None:
    if not self._depth:
      raise CompileError("Methods cannot be generators")

  def visit_Await(self, node: cst.Await) -> None:
    if not self._depth:
      raise CompileError("Methods cannot await")


def scan_body(node: cst.CSTNode) -> bool:
  """
  Checks a statement for unsupported constructs.

  Returns:
      bool: True if the statement writes an instance variable.

  Raises:
      CompileError: On writes or constructs that cannot be threaded.
  """
  scanner = _BodyScanner()
  node.visit(scanner)
  return scanner.has_write


class _ReturnFinder(cst.CSTVisitor):
  def __init__(self) -> None:
    self.found = False

  def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
    return False

  def visit_ClassDef(self, node: cst.ClassDef) -> bool:
    return False

  def visit_Lambda(self, node: cst.Lambda) -> bool:
    return False

  def visit_Return(self, node: cst.Return) -> None:
    self.found = True


def has_return(node: cst.CSTNode) -> bool:
  """True if ``node`` contains a ``return`` of the method itself (not of a nested scope)."""
  finder = _ReturnFinder()
  node.visit(finder)
  return finder.found


class _FieldReads(cst.CSTTransformer):
  """Replaces ``self.f`` reads with ``<store>.get('f')``."""

  def __init__(self, store: str) -> None:
    self.store = store

  def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
    return not declares_self(node)

  def visit_Lambda(self, node: cst.Lambda) -> bool:
    return not declares_self(node)

  def visit_Attribute(self, node: cst.Attribute) -> bool:
    return field_name(node) is None

  def leave_Attribute(self, original_node: cst.Attribute, updated_node: cst.Attribute) -> cst.BaseExpression:
    name = field_name(original_node)
    if name is None:
      return updated_node
    return _store_call(self.store, "get", _field_literal(name)).with_changes(
      lpar=original_node.lpar, rpar=original_node.rpar
    )


class _EarlyReturns(cst.CSTTransformer):
  """Turns ``return v`` into a reply carrying ``store``. Nested scopes keep their returns."""

  def __init__(self, store: str) -> None:
    self.store = store

  def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
    return False

  def visit_ClassDef(self, node: cst.ClassDef) -> bool:
    return False

  def visit_Lambda(self, node: cst.Lambda) -> bool:
    return False

  def leave_Return(self, original_node: cst.Return, updated_node: cst.Return) -> cst.Return:
    value = updated_node.value if updated_node.value is not None else cst.Name("None")
    return cst.Return(value=reply_value(value, self.store), semicolon=updated_node.semicolon)


class _InPlaceWrites(cst.CSTTransformer):
  """Rebinds one store variable for every write inside a compound statement."""

  def __init__(self, store: str) -> None:
    self.store = store

  # Nested scopes hold no writes to this instance; the body scan rejects the rest.
  def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
    return False

  def visit_ClassDef(self, node: cst.ClassDef) -> bool:
    return False

  def visit_Lambda(self, node: cst.Lambda) -> bool:
    return False

  def _rewrite(self, updated_node: cst.BaseSmallStatement) -> cst.BaseSmallStatement:
    replacement = rewrite_write(updated_node, self.store, self.store)
    return updated_node if replacement is None else replacement

  def leave_Assign(self, original_node: cst.Assign, updated_node: cst.Assign) -> cst.BaseSmallStatement:
    return self._rewrite(updated_node)

  def leave_AugAssign(self, original_node: cst.AugAssign, updated_node: cst.AugAssign) -> cst.BaseSmallStatement:
    return self._rewrite(updated_node)

  def leave_AnnAssign(self, original_node: cst.AnnAssign, updated_node: cst.AnnAssign) -> cst.BaseSmallStatement:
    return self._rewrite(updated_node)

  def leave_Del(self, original_node: cst.Del, updated_node: cst.Del) -> cst.BaseSmallStatement:
    return self._rewrite(updated_node)


class _NameUses(cst.CSTVisitor):
  """Collects identifiers, skipping attribute names (``self.f`` uses no name ``f``)."""

  def __init__(self) -> None:
    self.names: Set[str] = set()

  def visit_Attribute(self, node: cst.Attribute) -> bool:
    node.value.visit(self)
    return False

  def visit_Name(self, node: cst.Name) -> None:
    self.names.add(node.value)


def rewrite_reads(node: cst.CSTNode, store: str) -> cst.CSTNode:
  """Resolves every ``self.f`` read in ``node`` against ``store``."""
  return node.visit(_FieldReads(store))


def _split_lines(body: List[cst.BaseStatement]) -> List[cst.BaseStatement]:
  """One small statement per line, so each write gets its own store version."""
  statements: List[cst.BaseStatement] = []
  for stmt in body:
    if isinstance(stmt, cst.SimpleStatementLine) and len(stmt.body) > 1:
      for index, small in enumerate(stmt.body):
        statements.append(
          cst.SimpleStatementLine(
            body=[small.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)],
            leading_lines=stmt.leading_lines if index == 0 else (),
          )
        )
    else:
      statements.append(stmt)
  return statements


class StateThreadingTransform:
  """
  Converts method clauses into ``case`` arms of a per-method dispatch function.

  Each produced arm has the pattern ``([<params>], _caller, __ivars_0)`` plus
  the clause guard, and ends in ``return ("reply", ("ok", <result>), <store>)``.
  """

  def __init__(self, config: Optional[CompilerConfig] = None, tracer: Optional[TraceLogger] = None) -> None:
    self.config = config or CompilerConfig()
    self.tracer = tracer if tracer is not None else get_tracer()

  def store_name(self, version: int) -> str:
    """Name of the store variable holding version ``version``."""
    return f"{self.config.store_variable}_{version}"

  def is_reserved(self, name: str) -> bool:
    """True for names bound by the generated arm: the caller, store versions and the result."""
    if name in (CALLER_VARIABLE, self.config.return_variable):
      return True
    prefix = f"{self.config.store_variable}_"
    return name.startswith(prefix) and name[len(prefix) :].isdigit()

  def check_names(self, clause: Clause) -> None:
    """
    Rejects clauses that bind or read a reserved name.

    Raises:
        CompileError: Naming the clashing identifiers.
    """
    uses = _NameUses()
    nodes = [*clause.params, *clause.body]
    if clause.guard is not None:
      nodes.append(clause.guard)
    for node in nodes:
      node.visit(uses)
    clashes = sorted(name for name in uses.names if self.is_reserved(name))
    if clashes:
      raise CompileError(f"Reserved for generated code, cannot be used in a method: {', '.join(clashes)}")

  def thread_clause(self, clause: Clause) -> cst.MatchCase:
    """
    Rewrites one clause.

    Args:
        clause: Parameters, optional guard and body of the clause.

    Returns:
        cst.MatchCase: The arm matching ``(arguments, caller, ivars)``.

    Raises:
        CompileError: If the body uses constructs that cannot be threaded, or
            names that the generated arm binds itself.
    """
    self.check_names(clause)
    if clause.guard is not None:
      scan_body(clause.guard)
    statements, _ = self.thread_body(list(clause.body))

    params = ", ".join(capture_node_source(param) for param in clause.params)
    guard = ""
    if clause.guard is not None:
      guard = " if " + capture_node_source(rewrite_reads(clause.guard, self.store_name(0)))

    header = f"match (arguments, caller, ivars):\n    case ([{params}], {CALLER_VARIABLE}, {self.store_name(0)}){guard}:\n        pass\n"
    match_node = parse_statement(header)
    case = match_node.cases[0].with_changes(body=cst.IndentedBlock(body=statements))

    self.tracer.log_mutation(
      "Clause",
      "".join(capture_node_source(stmt) for stmt in clause.body),
      capture_node_source(case),
    )
    return case

  def thread_body(self, body: List[cst.BaseStatement]) -> Tuple[List[cst.BaseStatement], int]:
    """
    Threads the store through a clause body and appends the closing reply.

    Args:
        body: The clause statements. An empty body evaluates to ``None``.

    Returns:
        Tuple[List[cst.BaseStatement], int]: The rewritten statements and the final store version.
    """
    statements = _split_lines(body)
    if not statements:
      statements = [cst.SimpleStatementLine(body=[cst.Expr(cst.Name("None"))])]

    version = 0
    output: List[cst.BaseStatement] = []
    last = len(statements) - 1
    for index, stmt in enumerate(statements):
      steps = self._bind_result(stmt) if index == last else [stmt]
      for step in steps:
        threaded, version = self._thread_statement(step, version)
        output.extend(threaded)

    result = cst.Name(self.config.return_variable)
    output.append(reply_statement(result, self.store_name(version)))
    return output, version

  def _bind_result(self, stmt: cst.BaseStatement) -> List[cst.BaseStatement]:
    """Makes the final statement bind the method result."""
    result = self.config.return_variable

    def line(small: cst.BaseSmallStatement) -> cst.SimpleStatementLine:
      return cst.SimpleStatementLine(body=[small])

    if not isinstance(stmt, cst.SimpleStatementLine):
      return [stmt, line(_bind(result, cst.Name("None")))]

    small = stmt.body[0].with_changes(semicolon=cst.MaybeSentinel.DEFAULT)
    first = stmt.leading_lines

    if isinstance(small, cst.Expr):
      return [line(_bind(result, small.value)).with_changes(leading_lines=first)]

    if isinstance(small, cst.Return):
      value = small.value if small.value is not None else cst.Name("None")
      return [line(_bind(result, value)).with_changes(leading_lines=first)]

    if isinstance(small, cst.Assign):
      return [
        line(_bind(result, small.value)).with_changes(leading_lines=first),
        line(small.with_changes(value=cst.Name(result))),
      ]

    if isinstance(small, cst.AnnAssign) and small.value is not None:
      return [
        line(_bind(result, small.value)).with_changes(leading_lines=first),
        line(small.with_changes(value=cst.Name(result))),
      ]

    if isinstance(small, cst.AugAssign):
      return [line(small).with_changes(leading_lines=first), line(_bind(result, small.target))]

    return [stmt, line(_bind(result, cst.Name("None")))]

  def _thread_statement(self, stmt: cst.BaseStatement, version: int) -> Tuple[List[cst.BaseStatement], int]:
    current = self.store_name(version)
    writes = scan_body(stmt)

    if isinstance(stmt, cst.SimpleStatementLine):
      replacement = rewrite_write(stmt.body[0], current, self.store_name(version + 1))
      if replacement is not None:
        return [rewrite_reads(stmt.with_changes(body=[replacement]), current)], version + 1
      return [rewrite_reads(stmt.visit(_EarlyReturns(current)), current)], version

    if not writes:
      return [rewrite_reads(stmt.visit(_EarlyReturns(current)), current)], version

    following = self.store_name(version + 1)
    snapshot = cst.SimpleStatementLine(body=[_bind(following, cst.Name(current))], leading_lines=stmt.leading_lines)
    inner = stmt.with_changes(leading_lines=()).visit(_InPlaceWrites(following))
    inner = rewrite_reads(inner.visit(_EarlyReturns(following)), following)
    return [snapshot, inner], version + 1
