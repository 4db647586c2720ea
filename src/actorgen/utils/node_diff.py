"""
AST Node Serialization.

Renders detached LibCST nodes as source text, for trace events and for
building snippet templates around user-supplied nodes.
"""

import libcst as cst

# A dummy module used as a context to render detached nodes.
_RENDER_CTX = cst.Module(body=[], default_indent="    ")


def capture_node_source(node: cst.CSTNode) -> str:
  """
  Renders a LibCST node into its Python source code string representation.

  Args:
      node: The CST node to serialise.

  Returns:
      str: The Python code string.
  """
  return _RENDER_CTX.code_for_node(node)

