"""
Actor runtime for compiled classes.

Exposes the generic server loop, object handles and the run-time errors.
"""

from actorgen.runtime import gen_server
from actorgen.runtime.errors import (
  ActorError,
  ActorExitedError,
  CallTimeoutError,
  MethodDispatchError,
  NoMatchingClauseError,
  UnhandledMethodError,
)
from actorgen.runtime.objects import ClassConstant, ObjectHandle, call, cast, new_instance, send, stop, upgrade
from actorgen.runtime.store import InstanceStore

__all__ = [
  "gen_server",
  "ActorError",
  "ActorExitedError",
  "CallTimeoutError",
  "MethodDispatchError",
  "NoMatchingClauseError",
  "UnhandledMethodError",
  "ClassConstant",
  "ObjectHandle",
  "call",
  "cast",
  "new_instance",
  "send",
  "stop",
  "upgrade",
  "InstanceStore",
]
