"""
Dispatch Table Construction.

Generates, for a merged method set:

1. ``dispatch_method(request, caller, ivars)``: one ``case`` arm per method
   name forwarding to the method's function, plus one fallback arm for
   unknown names.
2. One function per method, whose ``match`` tries the method's clauses in
   declaration order and raises ``NoMatchingClauseError`` if none applies.
"""

import keyword
from typing import List, Optional, Tuple

import libcst as cst

from actorgen.config import CompilerConfig
from actorgen.core.errors import CompileError
from actorgen.core.mangle import NameMangler
from actorgen.core.model import DispatchEntry, MethodDefinition
from actorgen.core.rewriter.state_threading import StateThreadingTransform
from actorgen.core.snippets import parse_function

DISPATCH_FUNCTION = "dispatch_method"
METHOD_MISSING = "method_missing"

# Names the generated module defines or imports itself.
RESERVED_NAMES = frozenset(
  {
    "spawn",
    "spawn_link",
    "init",
    "handle_call",
    "handle_cast",
    "handle_info",
    "terminate",
    "code_change",
    DISPATCH_FUNCTION,
    "sys",
    "gen_server",
    "NoMatchingClauseError",
    "ClassConstant",
    "ObjectHandle",
    "unhandled_method",
    "InstanceStore",
  }
)


class DispatchTableBuilder:
  """
  Builds the dispatch function and the per-method functions of a class.
  """

  def __init__(
    self,
    mangler: Optional[NameMangler] = None,
    threading: Optional[StateThreadingTransform] = None,
    config: Optional[CompilerConfig] = None,
  ) -> None:
    self.config = config or CompilerConfig()
    self.mangler = mangler or NameMangler(self.config.method_prefix)
    self.threading = threading or StateThreadingTransform(self.config)

  def function_name(self, method_name: str) -> str:
    """
    Mangles a method name and checks the result can be defined in the module.

    Raises:
        CompileError: If the mangled name clashes with a module-level name.
    """
    name = self.mangler.mangle(method_name)
    if name in RESERVED_NAMES or keyword.iskeyword(name) or not name.isidentifier():
      raise CompileError(f"Method '{method_name}' mangles to unusable function name '{name}'")
    return name

  def build(
    self, methods: List[MethodDefinition]
  ) -> Tuple[cst.FunctionDef, List[Tuple[str, cst.FunctionDef]], List[DispatchEntry]]:
    """
    Generates the dispatch function and one function per method.

    Args:
        methods: The merged method set (names unique).

    Returns:
        Tuple: The dispatch function, ``(function name, function)`` pairs in
        method order, and the dispatch table.
    """
    table = [DispatchEntry(method.name, self.function_name(method.name), len(method.clauses)) for method in methods]
    functions = [(entry.function_name, self.method_function(entry, method)) for entry, method in zip(table, methods)]
    return self.dispatch_function(table), functions, table

  def dispatch_function(self, table: List[DispatchEntry]) -> cst.FunctionDef:
    """
    Renders ``dispatch_method``.

    Unknown names go to the class's own ``method_missing`` when it has one,
    otherwise to the runtime's ``unhandled_method``. The default handler is
    imported rather than generated into every module; defining
    ``method_missing`` replaces it in the fallback arm, so the override
    behaves as if the default were an ordinary generated method.
    """
    lines = [f"def {DISPATCH_FUNCTION}(request, caller, ivars):", "    match request:"]
    for entry in table:
      lines.append(f"        case ({entry.method_name!r}, arguments):")
      lines.append(f"            return {entry.function_name}(arguments, caller, ivars)")

    missing = next((entry for entry in table if entry.method_name == METHOD_MISSING), None)
    lines.append("        case (method, arguments):")
    if missing is not None:
      lines.append(f"            return {missing.function_name}([method, arguments], caller, ivars)")
    else:
      lines.append("            return unhandled_method(method, arguments)")
    lines.append(f"    raise NoMatchingClauseError({DISPATCH_FUNCTION!r}, request)")
    return parse_function("\n".join(lines) + "\n")

  def method_function(self, entry: DispatchEntry, method: MethodDefinition) -> cst.FunctionDef:
    """
    Renders the function for one method, one ``case`` per clause.
    """
    template = parse_function(
      f"def {entry.function_name}(arguments, caller, ivars):\n"
      "    match (arguments, caller, ivars):\n"
      "        case _:\n"
      "            pass\n"
      f"    raise NoMatchingClauseError({entry.method_name!r}, arguments)\n"
    )
    with self.threading.tracer.phase(f"Thread State: {method.name}", f"{len(method.clauses)} clauses"):
      cases = [self.threading.thread_clause(clause) for clause in method.clauses]
    match_node, fallthrough = template.body.body
    body = template.body.with_changes(body=[match_node.with_changes(cases=cases), fallthrough])
    return template.with_changes(body=body)
