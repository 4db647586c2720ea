"""
Class and Module Representation.

Data structures exchanged between the front end, the class compiler and the
loader. The input side (:class:`ClassDefinition`) describes a class as named
methods made of clauses whose parameters, guards and bodies are LibCST nodes.
The output side (:class:`GeneratedModule`) holds the generated functions.

Both sides are immutable once built.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import libcst as cst

from actorgen.enums import FunctionKind


@dataclass(frozen=True)
class Clause:
  """
  One alternative of a method, selected by argument-list shape and guard.
  """

  params: Tuple[cst.CSTNode, ...] = ()
  """Parameter patterns (``MatchAs``, ``MatchValue``, ... or a ``MatchStar`` rest pattern)."""

  guard: Optional[cst.BaseExpression] = None
  """Optional condition evaluated after the parameters matched."""

  body: Tuple[cst.BaseStatement, ...] = ()
  """Statements executed when the clause is selected."""


@dataclass(frozen=True)
class MethodDefinition:
  """
  A named method made of one or more clauses, tried in declaration order.
  """

  name: str
  """Public method name (any string; mangled before use as a Python name)."""

  clauses: Tuple[Clause, ...] = ()


@dataclass(frozen=True)
class ClassDefinition:
  """
  A source class: a name plus its methods in declaration order.
  """

  name: str
  methods: Tuple[MethodDefinition, ...] = ()


@dataclass(frozen=True)
class DispatchEntry:
  """
  Routing of one public method name to its generated function.
  """

  method_name: str
  function_name: str
  clause_count: int = 1


@dataclass(frozen=True)
class GeneratedFunction:
  """
  A function of a generated class module.
  """

  name: str
  kind: FunctionKind
  node: cst.FunctionDef


@dataclass(frozen=True)
class GeneratedModule:
  """
  The output of compiling one class.

  Functions are ordered: spawn functions, lifecycle functions, the dispatch
  function, then one function per method.
  """

  name: str
  functions: Tuple[GeneratedFunction, ...]
  header: Tuple[cst.BaseStatement, ...] = ()
  dispatch_table: Tuple[DispatchEntry, ...] = field(default=())

  def function_names(self) -> List[str]:
    """Returns the generated function names in module order."""
    return [fn.name for fn in self.functions]

  def functions_of(self, kind: FunctionKind) -> List[GeneratedFunction]:
    """Returns the generated functions with the given role."""
    return [fn for fn in self.functions if fn.kind == kind]

  @property
  def code(self) -> str:
    """
    Renders the module as Python source.

    Returns:
        str: The generated module source.
    """
    from actorgen.backends.python import PythonBackend

    return PythonBackend().emit(self)
