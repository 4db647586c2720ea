"""
Generated Module Loader.

Turns a :class:`GeneratedModule` into a live Python module whose functions
the actor runtime can drive. The module is registered in ``sys.modules``
(``spawn`` looks itself up there) and its source in ``linecache`` so
tracebacks from method bodies show the generated lines.
"""

import linecache
import sys
import types
from typing import Optional

from rich.markup import escape

from actorgen.config import CompilerConfig
from actorgen.core.errors import LoadError
from actorgen.core.model import GeneratedModule
from actorgen.utils.console import log_error


def module_name(module: GeneratedModule, config: Optional[CompilerConfig] = None) -> str:
  """Fully qualified name a class module is loaded under."""
  config = config or CompilerConfig()
  return f"{config.module_namespace}.{module.name}"


def load(module: GeneratedModule, config: Optional[CompilerConfig] = None) -> types.ModuleType:
  """
  Compiles and executes a generated module.

  Loading a class again replaces the previous module of the same name;
  running objects keep the callbacks they were started with until upgraded.

  Args:
      module: The compiled class.
      config: Provides the namespace the module is registered under.

  Returns:
      types.ModuleType: The loaded module.

  Raises:
      LoadError: If the generated source does not compile or fails while executing.
  """
  qualified = module_name(module, config)
  source = module.code
  filename = f"<actorgen:{module.name}>"

  try:
    code = compile(source, filename, "exec")
  except SyntaxError as e:
    log_error(escape(f"Generated module for '{module.name}' does not compile: {e}"))
    raise LoadError(f"Generated module for '{module.name}' does not compile: {e}") from e

  linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)

  loaded = types.ModuleType(qualified)
  loaded.__file__ = filename
  sys.modules[qualified] = loaded
  try:
    exec(code, loaded.__dict__)
  except Exception as e:
    sys.modules.pop(qualified, None)
    log_error(escape(f"Generated module for '{module.name}' failed to load: {e!r}"))
    raise LoadError(f"Generated module for '{module.name}' failed to load: {e!r}") from e

  return loaded
