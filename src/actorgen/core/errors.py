"""
Compile-time Errors.

Raised synchronously to the caller of the compiler or loader. A failed
compilation never yields a partial module.
"""


class CompileError(Exception):
  """The class definition is malformed or uses unsupported syntax."""


class LoadError(Exception):
  """A generated module could not be compiled or executed by the loader."""
