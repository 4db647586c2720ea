"""
Method Set Merging.

Combines the methods every class provides by default with the methods the
user declared. A user method replaces the default of the same name.
"""

from typing import Dict, Iterable, List, Optional

from actorgen.core.model import Clause, MethodDefinition
from actorgen.core.snippets import parse_statement
from actorgen.core.tracer import TraceLogger, get_tracer
from actorgen.utils.console import log_warning


def default_methods(class_name: str) -> List[MethodDefinition]:
  """
  Builds the default methods of a class.

  The class name is baked into the bodies as a literal.

  Args:
      class_name: Name of the class being compiled.

  Returns:
      List[MethodDefinition]: ``class``, ``initialize``, ``to_s`` and ``inspect``.
  """
  label = repr(f"#<{class_name}>")
  bodies = {
    "class": f"ClassConstant({class_name!r})\n",
    "initialize": "None\n",
    "to_s": f"{label}\n",
    "inspect": f"{label}\n",
  }
  return [MethodDefinition(name, (Clause(body=(parse_statement(source),)),)) for name, source in bodies.items()]


class MethodSetMerger:
  """
  Produces the method set of a class: defaults first, then user methods.
  """

  def __init__(self, tracer: Optional[TraceLogger] = None) -> None:
    self.tracer = tracer if tracer is not None else get_tracer()

  def merge(self, class_name: str, methods: Iterable[MethodDefinition]) -> List[MethodDefinition]:
    """
    Merges user methods over the defaults.

    Names stay in first-insertion order: defaults keep their slot when
    overridden, user-only methods follow in declaration order. If the user
    declares a name twice, the first declaration is kept.

    Args:
        class_name: Name of the class being compiled.
        methods: User methods in declaration order.

    Returns:
        List[MethodDefinition]: The merged methods, names unique.
    """
    merged: Dict[str, MethodDefinition] = {method.name: method for method in default_methods(class_name)}
    declared = set()

    for method in methods:
      if method.name in declared:
        message = f"Class '{class_name}' declares method '{method.name}' more than once; keeping the first"
        log_warning(message)
        self.tracer.log_warning(message)
        continue

      declared.add(method.name)
      outcome = "overrides default" if method.name in merged else "added"
      merged[method.name] = method
      self.tracer.log_merge(method.name, outcome)

    return list(merged.values())
