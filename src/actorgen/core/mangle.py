"""
Method Name Mangling.

Maps public method names (which may contain characters such as ``?`` or
``!``) onto Python identifiers for the generated per-method functions.

The mapping is deterministic and injective: ``_`` is doubled, and every
other character outside ``[A-Za-z0-9]`` becomes an escape that starts with a
single ``_`` followed by a letter, so no two names share a mangled form.
"""

from actorgen.core.errors import CompileError

_ESCAPES = {
  "_": "__",
  "?": "_q",
  "!": "_b",
  "=": "_e",
}


class NameMangler:
  """
  Produces internal function names for public method names.
  """

  def __init__(self, prefix: str = "_method_") -> None:
    """
    Args:
        prefix: Identifier prefix keeping mangled names apart from the fixed
            module functions (``spawn``, ``init``, ``dispatch_method``, ...).
    """
    self.prefix = prefix

  def mangle(self, name: str) -> str:
    """
    Mangles a public method name.

    Args:
        name: Public method name.

    Returns:
        str: A valid Python identifier unique to ``name``.

    Raises:
        CompileError: If ``name`` is empty.
    """
    if not name:
      raise CompileError("Method names must not be empty")

    parts = []
    for char in name:
      if char.isascii() and char.isalnum():
        parts.append(char)
      elif char in _ESCAPES:
        parts.append(_ESCAPES[char])
      else:
        parts.append(f"_u{ord(char):06x}")
    return self.prefix + "".join(parts)
