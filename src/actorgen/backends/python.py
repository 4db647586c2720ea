"""
Python Source Code Backend.

Assembles a :class:`GeneratedModule` into a LibCST ``Module`` and renders it
as Python source: a generated-file comment, the runtime imports, then every
function in module order separated by two blank lines.
"""

import libcst as cst

from actorgen.core.model import GeneratedModule


class PythonBackend:
  """
  Emits generated class modules as Python source.
  """

  def __init__(self, indent: str = "    ") -> None:
    self.indent = indent

  def to_module(self, module: GeneratedModule) -> cst.Module:
    """
    Builds the module tree.

    Args:
        module: The compiled class.

    Returns:
        cst.Module: Header imports followed by the generated functions.
    """
    body = list(module.header)
    for function in module.functions:
      body.append(function.node.with_changes(leading_lines=[cst.EmptyLine(), cst.EmptyLine()]))

    return cst.Module(
      body=body,
      header=[cst.EmptyLine(comment=cst.Comment(f"# Generated by actorgen from class {module.name!r}"))],
      default_indent=self.indent,
    )

  def emit(self, module: GeneratedModule) -> str:
    """
    Renders the module source.

    Returns:
        str: Python source text.
    """
    return self.to_module(module).code
