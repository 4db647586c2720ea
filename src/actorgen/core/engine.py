"""
Orchestration Engine for Class Compilation.

This module provides the `ClassCompiler`, the driver turning one class
definition into one generated module.

The pipeline consists of:

1.  **Validation**: The definition must be well formed (names, clauses,
    parameter patterns, statement nodes). Failures raise `CompileError`
    before anything is generated.
2.  **Merging**: Default methods (`class`, `initialize`, `to_s`, `inspect`)
    are combined with the user's methods; the user wins.
3.  **State Threading & Dispatch**: Every clause is rewritten to pass the
    instance store explicitly, and the dispatch function plus one function
    per method are generated.
4.  **Assembly**: Spawn functions, lifecycle callbacks, the dispatcher and
    the method functions are collected, in that order, into a frozen
    `GeneratedModule`.

`compile` raises on failure. `run` wraps the whole pipeline (including
parsing Python class source) and reports failures in a `CompilationResult`.
"""

from typing import Any, Dict, List, Optional

import libcst as cst
from pydantic import BaseModel, Field

from actorgen.config import CompilerConfig
from actorgen.core.errors import CompileError
from actorgen.core.mangle import NameMangler
from actorgen.core.model import ClassDefinition, Clause, GeneratedFunction, GeneratedModule, MethodDefinition
from actorgen.core.rewriter import CallBridge, DispatchTableBuilder, MethodSetMerger, StateThreadingTransform
from actorgen.core.tracer import TraceLogger, get_tracer, reset_tracer
from actorgen.enums import FunctionKind
from actorgen.utils.console import log_info


class CompilationResult(BaseModel):
  """
  Structured result of compiling one class from source.
  """

  code: str = Field(default="", description="The generated module source.")
  class_name: Optional[str] = Field(default=None, description="Name of the compiled class.")
  errors: List[str] = Field(default_factory=list, description="A list of error messages.")
  success: bool = Field(
    default=True,
    description="True if the class compiled without errors.",
  )
  trace_events: List[Dict[str, Any]] = Field(default_factory=list, description="A log of internal trace events.")

  @property
  def has_errors(self) -> bool:
    """
    Returns True if any errors were recorded during compilation.

    Returns:
        bool: True if errors list is non-empty.
    """
    return len(self.errors) > 0


def _validate_clause(method_name: str, clause: Any) -> Clause:
  if not isinstance(clause, Clause):
    raise CompileError(f"Method '{method_name}' has a clause of type {type(clause).__name__}, expected Clause")

  params = tuple(clause.params)
  body = tuple(clause.body)

  stars = 0
  for param in params:
    if isinstance(param, cst.MatchStar):
      stars += 1
    elif not isinstance(param, cst.MatchPattern):
      raise CompileError(f"Method '{method_name}' has a parameter that is not a match pattern: {param!r}")
  if stars > 1:
    raise CompileError(f"Method '{method_name}' has more than one rest parameter")

  if clause.guard is not None and not isinstance(clause.guard, cst.BaseExpression):
    raise CompileError(f"Method '{method_name}' has a guard that is not an expression")

  for stmt in body:
    if not isinstance(stmt, (cst.SimpleStatementLine, cst.BaseCompoundStatement)):
      raise CompileError(f"Method '{method_name}' has a body entry that is not a statement: {stmt!r}")

  return Clause(params=params, guard=clause.guard, body=body)


def validate_definition(definition: Any) -> ClassDefinition:
  """
  Checks a class definition and normalizes its sequences to tuples.

  Args:
      definition: Candidate ClassDefinition.

  Returns:
      ClassDefinition: The validated definition.

  Raises:
      CompileError: If the definition is malformed.
  """
  if not isinstance(definition, ClassDefinition):
    raise CompileError(f"Expected a ClassDefinition, got {type(definition).__name__}")
  if not isinstance(definition.name, str) or not definition.name.isidentifier():
    raise CompileError(f"Class name must be an identifier, got {definition.name!r}")

  methods = []
  for method in definition.methods:
    if not isinstance(method, MethodDefinition):
      raise CompileError(f"Class '{definition.name}' has a method of type {type(method).__name__}")
    if not isinstance(method.name, str) or not method.name:
      raise CompileError(f"Class '{definition.name}' has a method with an invalid name: {method.name!r}")
    if not method.clauses:
      raise CompileError(f"Method '{method.name}' has no clauses")
    clauses = tuple(_validate_clause(method.name, clause) for clause in method.clauses)
    methods.append(MethodDefinition(method.name, clauses))

  return ClassDefinition(definition.name, tuple(methods))


class ClassCompiler:
  """
  Compiles class definitions into generated modules.
  """

  def __init__(
    self,
    config: Optional[CompilerConfig] = None,
    mangler: Optional[NameMangler] = None,
    tracer: Optional[TraceLogger] = None,
  ):
    """
    Args:
        config: Compiler settings. Defaults to CompilerConfig().
        mangler: Method name mangler. Defaults to one using ``config.method_prefix``.
        tracer: Event recorder. Defaults to the global tracer.
    """
    self.config = config or CompilerConfig()
    self.mangler = mangler or NameMangler(self.config.method_prefix)
    self.tracer = tracer

  def compile(self, definition: ClassDefinition) -> GeneratedModule:
    """
    Compiles one class.

    Args:
        definition: The class to compile.

    Returns:
        GeneratedModule: 2 spawn functions, 6 lifecycle functions, the
        dispatch function and one function per merged method.

    Raises:
        CompileError: If the definition is malformed or a method uses
            unsupported syntax. No partial module is produced.
    """
    tracer = self.tracer if self.tracer is not None else get_tracer()
    definition = validate_definition(definition)
    name = definition.name

    with tracer.phase("Compile Class", name):
      with tracer.phase("Merge Methods", f"{len(definition.methods)} user methods"):
        methods = MethodSetMerger(tracer).merge(name, definition.methods)

      with tracer.phase("Dispatch", f"{len(methods)} methods"):
        threading = StateThreadingTransform(self.config, tracer)
        builder = DispatchTableBuilder(self.mangler, threading, self.config)
        dispatch_fn, method_fns, table = builder.build(methods)

      with tracer.phase("Assembly", name):
        bridge = CallBridge(name)
        functions = [GeneratedFunction(fn.name.value, FunctionKind.SPAWN, fn) for fn in bridge.spawn_functions()]
        functions += [GeneratedFunction(fn.name.value, FunctionKind.LIFECYCLE, fn) for fn in bridge.lifecycle_functions()]
        functions.append(GeneratedFunction(dispatch_fn.name.value, FunctionKind.DISPATCH, dispatch_fn))
        functions += [GeneratedFunction(fn_name, FunctionKind.METHOD, fn) for fn_name, fn in method_fns]
        module = GeneratedModule(
          name=name,
          functions=tuple(functions),
          header=tuple(bridge.header()),
          dispatch_table=tuple(table),
        )

    log_info(f"Compiled class [bold]{name}[/bold] ({len(methods)} methods, {len(functions)} functions)")
    return module

  def compile_source(self, code: str, class_name: Optional[str] = None) -> GeneratedModule:
    """
    Parses Python class source and compiles the selected class.

    Args:
        code: Python source containing the class.
        class_name: Which class to compile; optional if the source has exactly one.

    Raises:
        CompileError: If parsing or compilation fails.
    """
    from actorgen.frontends.python import PythonFrontend

    return self.compile(PythonFrontend(code).parse_class(class_name))

  def run(self, code: str, class_name: Optional[str] = None) -> CompilationResult:
    """
    Executes the full pipeline from source text without raising.

    Args:
        code (str): Python source containing the class.
        class_name (str, optional): Which class to compile.

    Returns:
        CompilationResult: Generated code or the error messages.
    """
    reset_tracer()
    tracer = get_tracer()
    previous, self.tracer = self.tracer, tracer

    try:
      module = self.compile_source(code, class_name)
    except CompileError as e:
      return CompilationResult(
        errors=[str(e)],
        success=False,
        trace_events=tracer.export() if self.config.trace else [],
      )
    finally:
      self.tracer = previous

    return CompilationResult(
      code=module.code,
      class_name=module.name,
      trace_events=tracer.export() if self.config.trace else [],
    )
