"""
Rewriter Package.

The stages that turn a class definition into module functions:
- Merging: default methods combined with user methods.
- State threading: instance variables turned into an explicit store.
- Dispatch: per-method clause functions and the name dispatcher.
- Lifecycle: spawn functions and runtime callbacks.
"""

from actorgen.core.rewriter.dispatch import DispatchTableBuilder
from actorgen.core.rewriter.lifecycle import CallBridge
from actorgen.core.rewriter.merging import MethodSetMerger, default_methods
from actorgen.core.rewriter.state_threading import StateThreadingTransform

__all__ = [
  "CallBridge",
  "DispatchTableBuilder",
  "MethodSetMerger",
  "StateThreadingTransform",
  "default_methods",
]
