"""
Tests for the ClassCompiler pipeline.

Verifies that:
1. The generated module has 2 spawn, 6 lifecycle, 1 dispatch and N method functions.
2. Compilation is deterministic.
3. Malformed definitions raise CompileError without producing a module.
4. `run` reports failures in a CompilationResult instead of raising.
"""

import libcst as cst
import pytest

from actorgen.config import CompilerConfig
from actorgen.core.engine import ClassCompiler, validate_definition
from actorgen.core.errors import CompileError
from actorgen.core.model import ClassDefinition, Clause, MethodDefinition
from actorgen.enums import FunctionKind

COUNTER = """
class Counter:
    def increment(self, n):
        self.total = (self.total or 0) + n
"""


def body(source: str = "None"):
  return (cst.parse_statement(source),)


def test_empty_class_has_thirteen_functions(compiler):
  module = compiler.compile(ClassDefinition("Empty"))
  assert module.function_names() == [
    "spawn",
    "spawn_link",
    "init",
    "handle_call",
    "handle_cast",
    "handle_info",
    "terminate",
    "code_change",
    "dispatch_method",
    "_method_class",
    "_method_initialize",
    "_method_to__s",
    "_method_inspect",
  ]


def test_function_kinds(compiler):
  module = compiler.compile_source(COUNTER)
  assert len(module.functions_of(FunctionKind.SPAWN)) == 2
  assert len(module.functions_of(FunctionKind.LIFECYCLE)) == 6
  assert len(module.functions_of(FunctionKind.DISPATCH)) == 1
  assert [fn.name for fn in module.functions_of(FunctionKind.METHOD)][-1] == "_method_increment"
  assert len(module.functions) == 2 + 6 + 1 + 5


def test_dispatch_table_follows_merge_order(compiler):
  module = compiler.compile_source(COUNTER)
  assert [entry.method_name for entry in module.dispatch_table] == [
    "class",
    "initialize",
    "to_s",
    "inspect",
    "increment",
  ]


def test_compilation_is_deterministic():
  first = ClassCompiler().compile_source(COUNTER).code
  second = ClassCompiler().compile_source(COUNTER).code
  assert first == second


@pytest.mark.parametrize(
  "definition, message",
  [
    ("Counter", "Expected a ClassDefinition"),
    (ClassDefinition("not a name"), "Class name must be an identifier"),
    (ClassDefinition("C", (MethodDefinition("go"),)), "has no clauses"),
    (ClassDefinition("C", (MethodDefinition("", (Clause(body=body()),)),)), "invalid name"),
    (
      ClassDefinition("C", (MethodDefinition("go", (Clause(params=(cst.MatchStar(), cst.MatchStar()), body=body()),)),)),
      "more than one rest parameter",
    ),
    (
      ClassDefinition("C", (MethodDefinition("go", (Clause(params=(cst.Name("x"),), body=body()),)),)),
      "not a match pattern",
    ),
    (
      ClassDefinition("C", (MethodDefinition("go", (Clause(body=(cst.Name("x"),)),)),)),
      "not a statement",
    ),
  ],
)
def test_malformed_definitions_raise(compiler, definition, message):
  with pytest.raises(CompileError, match=message):
    compiler.compile(definition)


def test_validate_definition_normalizes_to_tuples():
  clause = Clause(params=[cst.MatchAs(name=cst.Name("n"))], body=list(body("n")))
  definition = validate_definition(ClassDefinition("C", [MethodDefinition("go", [clause])]))
  assert isinstance(definition.methods, tuple)
  assert isinstance(definition.methods[0].clauses, tuple)
  assert isinstance(definition.methods[0].clauses[0].params, tuple)


def test_run_success():
  result = ClassCompiler().run(COUNTER)
  assert result.success
  assert not result.has_errors
  assert result.class_name == "Counter"
  assert "def _method_increment(arguments, caller, ivars):" in result.code
  assert result.trace_events == []


def test_run_failure_reports_errors():
  result = ClassCompiler().run("class Broken(Base):\n    pass\n")
  assert not result.success
  assert result.code == ""
  assert "inheritance is not supported" in result.errors[0]


def test_run_keeps_trace_events_when_enabled():
  result = ClassCompiler(CompilerConfig(trace=True)).run(COUNTER)
  descriptions = [event["description"] for event in result.trace_events]
  assert "Compile Class" in descriptions
  assert "Method 'increment': added" in descriptions
  assert "Thread State: increment" in descriptions
  assert any(event["type"] == "ast_mutation" for event in result.trace_events)


@pytest.mark.parametrize(
  "method",
  [
    "def echo(self, _caller):\n        _caller",
    "def echo(self, n):\n        __ivars_1 = n",
    "def echo(self, *__method_return_value):\n        None",
  ],
)
def test_reserved_names_are_compile_errors(compiler, method):
  with pytest.raises(CompileError, match="Reserved for generated code"):
    compiler.compile_source(f"class Echo:\n    {method}\n")


def test_reserved_names_follow_config():
  compiler = ClassCompiler(CompilerConfig(store_variable="state"))
  compiler.compile_source("class Echo:\n    def echo(self, __ivars_1):\n        __ivars_1\n")
  with pytest.raises(CompileError, match="state_0"):
    compiler.compile_source("class Echo:\n    def echo(self, state_0):\n        state_0\n")


def test_finally_write_after_return_is_a_compile_error(compiler):
  source = """
class Guarded:
    def go(self):
        try:
            return 1
        finally:
            self.done = True
"""
  with pytest.raises(CompileError, match="finally"):
    compiler.compile_source(source)
