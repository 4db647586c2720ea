"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Helpers compiling and loading class source.
- Cleanup of objects spawned during a test.
"""

import sys
import textwrap
from pathlib import Path
from typing import Callable, List

import pytest

# Add src to path so we can import 'actorgen' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from actorgen.config import CompilerConfig  # noqa: E402
from actorgen.core.engine import ClassCompiler  # noqa: E402
from actorgen.core.tracer import TraceLogger  # noqa: E402
from actorgen.loader import load  # noqa: E402
from actorgen.runtime import gen_server  # noqa: E402
from actorgen.runtime.objects import ObjectHandle, new_instance  # noqa: E402


@pytest.fixture
def compiler() -> ClassCompiler:
  """A compiler with its own tracer, isolated from the global one."""
  return ClassCompiler(CompilerConfig(), tracer=TraceLogger())


@pytest.fixture
def load_class(compiler) -> Callable:
  """Compiles dedented class source and loads the module."""

  def _load(source: str, class_name: str = None):
    return load(compiler.compile_source(textwrap.dedent(source), class_name))

  return _load


@pytest.fixture
def spawn(load_class):
  """
  Creates initialized objects from class source and stops them after the test.
  """
  handles: List[ObjectHandle] = []

  def _spawn(source: str, *args, class_name: str = None) -> ObjectHandle:
    module = load_class(source, class_name)
    handle = new_instance(module, *args)
    handles.append(handle)
    return handle

  yield _spawn

  for handle in handles:
    if handle.pid.is_alive():
      gen_server.stop(handle.pid)
