"""
Backends Package.

Renders generated class modules into their output form.
"""

from actorgen.backends.python import PythonBackend

__all__ = ["PythonBackend"]
