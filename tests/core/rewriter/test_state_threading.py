"""
Tests for instance-variable state threading.

Verifies that:
1. Every write produces the next store version and reads use the live one.
2. The clause ends with a reply carrying the latest store.
3. Compound statements rebind a single store variable in place.
4. Early returns reply with the store live at that point.
5. Writes that cannot be threaded raise CompileError.
"""

import textwrap

import libcst as cst
import pytest

from actorgen.core.errors import CompileError
from actorgen.core.rewriter.state_threading import StateThreadingTransform
from actorgen.core.tracer import TraceLogger
from actorgen.frontends.python import method_from_function
from actorgen.utils.node_diff import capture_node_source

REPLY = 'return ("reply", ("ok", __method_return_value), {store})'


def clause_of(source: str):
  node = cst.parse_statement(textwrap.dedent(source))
  return method_from_function(node).clauses[0]


def threaded(source: str):
  transform = StateThreadingTransform(tracer=TraceLogger())
  statements, version = transform.thread_body(list(clause_of(source).body))
  return [capture_node_source(s).strip() for s in statements], version


def test_assignment_result_and_store():
  lines, version = threaded(
    """
    def increment(self, n):
        self.total = (self.total or 0) + n
    """
  )
  assert lines == [
    "__method_return_value = (__ivars_0.get('total') or 0) + n",
    "__ivars_1 = __ivars_0.set('total', __method_return_value)",
    REPLY.format(store="__ivars_1"),
  ]
  assert version == 1


def test_empty_body_returns_none():
  lines, version = threaded(
    '''
    def nothing(self):
        """Only a docstring."""
    '''
  )
  assert lines == ["__method_return_value = None", REPLY.format(store="__ivars_0")]
  assert version == 0


def test_versions_advance_per_write():
  lines, version = threaded(
    """
    def setup(self, a):
        self.x = a
        self.y = self.x + 1
        self.x
    """
  )
  assert lines == [
    "__ivars_1 = __ivars_0.set('x', a)",
    "__ivars_2 = __ivars_1.set('y', __ivars_1.get('x') + 1)",
    "__method_return_value = __ivars_2.get('x')",
    REPLY.format(store="__ivars_2"),
  ]
  assert version == 2


def test_final_return_statement_is_the_result():
  lines, _ = threaded(
    """
    def get(self):
        return self.value
    """
  )
  assert lines == ["__method_return_value = __ivars_0.get('value')", REPLY.format(store="__ivars_0")]


def test_augmented_assignment():
  lines, version = threaded(
    """
    def bump(self):
        self.count += 2
    """
  )
  assert lines == [
    "__ivars_1 = __ivars_0.set('count', __ivars_0.get('count') + 2)",
    "__method_return_value = __ivars_1.get('count')",
    REPLY.format(store="__ivars_1"),
  ]
  assert version == 1


def test_augmented_assignment_keeps_precedence():
  lines, _ = threaded(
    """
    def scale(self, a, b):
        self.x *= a + b
        None
    """
  )
  assert lines[0] == "__ivars_1 = __ivars_0.set('x', __ivars_0.get('x') * (a + b))"


def test_one_line_statements_are_split():
  lines, version = threaded(
    """
    def pair(self):
        self.a = 1; self.b = 2
    """
  )
  assert lines == [
    "__ivars_1 = __ivars_0.set('a', 1)",
    "__method_return_value = 2",
    "__ivars_2 = __ivars_1.set('b', __method_return_value)",
    REPLY.format(store="__ivars_2"),
  ]
  assert version == 2


def test_delete_produces_new_version():
  lines, version = threaded(
    """
    def clear(self):
        del self.a
        None
    """
  )
  assert lines[0] == "__ivars_1 = __ivars_0.delete('a')"
  assert lines[-1] == REPLY.format(store="__ivars_1")


def test_compound_statement_rebinds_in_place():
  lines, version = threaded(
    """
    def count_to(self, n):
        while self.i < n:
            self.i += 1
    """
  )
  assert lines[0] == "__ivars_1 = __ivars_0"
  assert lines[1].splitlines() == [
    "while __ivars_1.get('i') < n:",
    "    __ivars_1 = __ivars_1.set('i', __ivars_1.get('i') + 1)",
  ]
  assert lines[2:] == ["__method_return_value = None", REPLY.format(store="__ivars_1")]
  assert version == 1


def test_early_return_uses_live_store():
  lines, version = threaded(
    """
    def classify(self, n):
        if n > 0:
            self.x = n
            return "positive"
        self.x = 0
        "zero"
    """
  )
  assert lines[0] == "__ivars_1 = __ivars_0"
  assert "__ivars_1 = __ivars_1.set('x', n)" in lines[1]
  assert 'return ("reply", ("ok", "positive"), __ivars_1)' in lines[1]
  assert lines[2] == "__ivars_2 = __ivars_1.set('x', 0)"
  assert lines[3] == '__method_return_value = "zero"'
  assert lines[4] == REPLY.format(store="__ivars_2")
  assert version == 2


def test_read_only_branch_keeps_version():
  lines, version = threaded(
    """
    def floor(self, n):
        if n < 0:
            return self.floor
        n
    """
  )
  assert "return (\"reply\", (\"ok\", __ivars_0.get('floor')), __ivars_0)" in lines[0]
  assert version == 0


def test_early_return_of_bare_tuple_is_parenthesized():
  lines, _ = threaded(
    """
    def both(self, a, b):
        if a:
            return a, b
        None
    """
  )
  assert 'return ("reply", ("ok", (a, b)), __ivars_0)' in lines[0]


def test_nested_function_returns_untouched():
  lines, _ = threaded(
    """
    def compute(self):
        def helper():
            return self.x
        helper()
    """
  )
  assert "return __ivars_0.get('x')" in lines[0]
  assert "reply" not in lines[0]


@pytest.mark.parametrize(
  "body",
  [
    "self.a, b = 1, 2",
    "self.a = self.b = 1",
    "for self.i in range(3):\n        pass",
    "with open(path) as self.f:\n        pass",
    "yield 1",
    "self.x: int",
    "def g():\n        self.x = 1",
    "self = 1",
    "match n:\n        case self.limit:\n            pass",
    "self.helper()",
    "x = self.helper(n)",
    "try:\n        return n\n    finally:\n        self.done = True",
    "try:\n        pass\n    except ValueError:\n        return None\n    finally:\n        del self.cache",
  ],
)
def test_unsupported_writes_raise(body):
  source = f"def bad(self, n, path):\n    {body}\n"
  with pytest.raises(CompileError):
    threaded(source)


def test_thread_clause_builds_case_with_guard():
  transform = StateThreadingTransform(tracer=TraceLogger())
  clause = clause_of(
    """
    @when(n > self.limit)
    def step(self, n, *rest):
        n
    """
  )
  case = transform.thread_clause(clause)
  text = capture_node_source(case)
  assert text.startswith("case ([n, *rest], _caller, __ivars_0) if n > __ivars_0.get('limit'):")
  assert REPLY.format(store="__ivars_0") in text


def test_thread_clause_logs_mutation():
  tracer = TraceLogger()
  transform = StateThreadingTransform(tracer=tracer)
  transform.thread_clause(clause_of("def f(self):\n    self.a = 1\n"))
  events = tracer.export()
  assert events[-1]["metadata"]["before"].strip() == "self.a = 1"
  assert "__ivars_1" in events[-1]["metadata"]["after"]


def test_write_in_except_handler_rebinds_in_place():
  lines, version = threaded(
    """
    def safe_ratio(self, n):
        try:
            self.ratio = 1 / n
        except ZeroDivisionError:
            self.ratio = 0
        self.ratio
    """
  )
  assert lines[0] == "__ivars_1 = __ivars_0"
  assert lines[1].splitlines() == [
    "try:",
    "    __ivars_1 = __ivars_1.set('ratio', 1 / n)",
    "except ZeroDivisionError:",
    "    __ivars_1 = __ivars_1.set('ratio', 0)",
  ]
  assert lines[2:] == ["__method_return_value = __ivars_1.get('ratio')", REPLY.format(store="__ivars_1")]
  assert version == 1


def test_write_in_finally_without_return():
  lines, version = threaded(
    """
    def tracked(self, n):
        try:
            n + 1
        finally:
            self.calls += 1
        self.calls
    """
  )
  assert lines[0] == "__ivars_1 = __ivars_0"
  assert "__ivars_1 = __ivars_1.set('calls', __ivars_1.get('calls') + 1)" in lines[1]
  assert lines[2:] == ["__method_return_value = __ivars_1.get('calls')", REPLY.format(store="__ivars_1")]
  assert version == 1


def test_write_after_return_inside_try():
  lines, _ = threaded(
    """
    def settle(self, n):
        try:
            if n:
                return n
            self.last = n
        except ValueError:
            self.last = None
        self.last
    """
  )
  assert 'return ("reply", ("ok", n), __ivars_1)' in lines[1]
  assert "__ivars_1 = __ivars_1.set('last', n)" in lines[1]
  assert "__ivars_1 = __ivars_1.set('last', None)" in lines[1]
  assert lines[-1] == REPLY.format(store="__ivars_1")


def test_return_inside_finally_carries_its_write():
  lines, _ = threaded(
    """
    def close(self):
        try:
            pass
        finally:
            self.closed = True
            return "closed"
    """
  )
  assert "__ivars_1 = __ivars_1.set('closed', True)" in lines[1]
  assert 'return ("reply", ("ok", "closed"), __ivars_1)' in lines[1]


def test_nested_scopes_with_their_own_self_are_untouched():
  lines, version = threaded(
    """
    def make(self):
        class Point:
            def __init__(self, v):
                self.v = v

            def get(self):
                return self.v
        Point(self.seed).get()
    """
  )
  assert "self.v = v" in lines[0]
  assert "return self.v" in lines[0]
  assert "__ivars" not in lines[0]
  assert lines[1] == "__method_return_value = Point(__ivars_0.get('seed')).get()"
  assert version == 0


def test_lambda_with_its_own_self_is_untouched():
  lines, _ = threaded(
    """
    def ranker(self):
        key = lambda self: self.rank
        key
    """
  )
  assert lines[0] == "key = lambda self: self.rank"


@pytest.mark.parametrize(
  "source",
  [
    "def f(self, _caller):\n    _caller\n",
    "def f(self, n):\n    __ivars_2 = n\n",
    "def f(self, *__method_return_value):\n    None\n",
    "@when(__ivars_0)\ndef f(self, n):\n    n\n",
  ],
)
def test_thread_clause_rejects_reserved_names(source):
  transform = StateThreadingTransform(tracer=TraceLogger())
  with pytest.raises(CompileError, match="Reserved for generated code"):
    transform.thread_clause(clause_of(source))


def test_fields_may_share_reserved_names():
  transform = StateThreadingTransform(tracer=TraceLogger())
  case = transform.thread_clause(clause_of("def f(self):\n    self._caller = 1\n"))
  assert "__ivars_0.set('_caller', __method_return_value)" in capture_node_source(case)


def test_guard_cannot_call_through_self():
  transform = StateThreadingTransform(tracer=TraceLogger())
  with pytest.raises(CompileError):
    transform.thread_clause(clause_of("@when(self.ready())\ndef f(self):\n    None\n"))
