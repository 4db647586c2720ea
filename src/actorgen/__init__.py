"""
actorgen Package.

Compiles classes into actor modules: every object runs on its own thread,
methods are invoked by synchronous message passing, and instance variables
live in an immutable store threaded through each method.

Usage
-----

.. code-block:: python

    import actorgen

    Counter = actorgen.load_class('''
    class Counter:
        def increment(self, n):
            self.total = (self.total or 0) + n
    ''')

    counter = actorgen.new(Counter)
    counter.call("increment", 5)  # 5
    counter.call("increment", 3)  # 8

Advanced Usage (Compiler)
^^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    from actorgen import ClassCompiler, CompilerConfig

    compiler = ClassCompiler(CompilerConfig(call_timeout=10.0))
    module = compiler.compile_source(source)
    print(module.code)
"""

import types
from typing import Any, Optional

from actorgen.config import CompilerConfig
from actorgen.core.engine import ClassCompiler, CompilationResult
from actorgen.core.errors import CompileError, LoadError
from actorgen.core.model import ClassDefinition, Clause, GeneratedModule, MethodDefinition
from actorgen.loader import load
from actorgen.runtime.objects import ObjectHandle, new_instance

__version__ = "0.0.1"


def compile_class(code: str, class_name: Optional[str] = None, config: Optional[CompilerConfig] = None) -> str:
  """
  Compiles Python class source into generated module source.

  Args:
      code (str): Python source containing the class.
      class_name (str, optional): Class to compile if the source has several.
      config (CompilerConfig, optional): Compiler settings.

  Returns:
      str: The generated module source.

  Raises:
      ValueError: If compilation fails.
  """
  result = ClassCompiler(config).run(code, class_name)
  if not result.success:
    error_msg = "\n".join(result.errors)
    raise ValueError(f"Compilation failed:\n{error_msg}")
  return result.code


def load_class(
  code: str, class_name: Optional[str] = None, config: Optional[CompilerConfig] = None
) -> types.ModuleType:
  """
  Compiles Python class source and loads the generated module.

  Raises:
      CompileError: If the class cannot be compiled.
      LoadError: If the generated module cannot be loaded.
  """
  config = config or CompilerConfig()
  return load(ClassCompiler(config).compile_source(code, class_name), config)


def new(module: types.ModuleType, *args: Any, config: Optional[CompilerConfig] = None) -> ObjectHandle:
  """
  Creates an object of a loaded class and initializes it with ``args``.

  Returns:
      ObjectHandle: Handle of the new object.
  """
  config = config or CompilerConfig()
  return new_instance(module, *args, timeout=config.call_timeout)


__all__ = [
  "ClassCompiler",
  "ClassDefinition",
  "Clause",
  "CompilationResult",
  "CompileError",
  "CompilerConfig",
  "GeneratedModule",
  "LoadError",
  "MethodDefinition",
  "ObjectHandle",
  "compile_class",
  "load_class",
  "new",
  "__version__",
]
