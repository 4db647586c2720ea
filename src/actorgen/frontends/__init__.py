"""
Frontends Package.

Readers producing ``ClassDefinition`` values from source text.
"""

from actorgen.frontends.python import PythonFrontend

__all__ = ["PythonFrontend"]
