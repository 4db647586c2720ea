"""
Call Bridge Templates.

The fixed part of every generated class module: runtime imports, the two
spawn functions and the six callbacks driven by
:mod:`actorgen.runtime.gen_server`. Only the class name varies, and it is
captured as a literal.
"""

from typing import List

import libcst as cst

from actorgen.core.rewriter.dispatch import DISPATCH_FUNCTION
from actorgen.core.snippets import parse_function, parse_statements

_HEADER = """\
import sys

from actorgen.runtime import gen_server
from actorgen.runtime.errors import NoMatchingClauseError
from actorgen.runtime.objects import ClassConstant, ObjectHandle, unhandled_method
from actorgen.runtime.store import InstanceStore
"""

_SPAWN = """\
def {function}():
    pid = gen_server.{starter}(sys.modules[__name__])
    return ObjectHandle(pid, {class_name!r})
"""

_LIFECYCLE = (
  """\
def init(arguments):
    return ("ok", InstanceStore())
""",
  f"""\
def handle_call(request, caller, ivars):
    try:
        return {DISPATCH_FUNCTION}(request, caller, ivars.snapshot())
    except Exception as error:
        return ("reply", ("error", error), ivars)
""",
  """\
def handle_cast(message, ivars):
    return ("noreply", ivars)
""",
  """\
def handle_info(info, ivars):
    return ("noreply", ivars)
""",
  """\
def terminate(reason, ivars):
    return "ok"
""",
  """\
def code_change(old_version, ivars, extra):
    return ("ok", ivars)
""",
)


class CallBridge:
  """
  Generates the boilerplate connecting a class module to the actor runtime.
  """

  def __init__(self, class_name: str) -> None:
    self.class_name = class_name

  def header(self) -> List[cst.BaseStatement]:
    """Import statements the generated functions rely on."""
    return parse_statements(_HEADER)

  def spawn_functions(self) -> List[cst.FunctionDef]:
    """
    ``spawn`` and ``spawn_link``.

    Both start an actor on the module itself and wrap the reference in an
    ``ObjectHandle`` tagged with the class name.
    """
    return [
      parse_function(_SPAWN.format(function="spawn", starter="start", class_name=self.class_name)),
      parse_function(_SPAWN.format(function="spawn_link", starter="start_link", class_name=self.class_name)),
    ]

  def lifecycle_functions(self) -> List[cst.FunctionDef]:
    """``init``, ``handle_call``, ``handle_cast``, ``handle_info``, ``terminate`` and ``code_change``."""
    return [parse_function(source) for source in _LIFECYCLE]
