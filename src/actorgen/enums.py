"""
Enumerations for actorgen.

Tags shared between generated class modules and the actor runtime.
"""

from enum import Enum


class ReplyTag(str, Enum):
  """
  Markers used in the actor wire protocol.

  Generated code emits the plain string values; being a ``str`` enum, each
  member compares equal to its value.
  """

  REPLY = "reply"  # handler result carrying a reply: (reply, payload, store)
  NOREPLY = "noreply"  # handler result without reply: (noreply, store)
  OK = "ok"
  ERROR = "error"
  STOP = "stop"


class FunctionKind(str, Enum):
  """
  Role of a function inside a generated class module.
  """

  SPAWN = "spawn"
  LIFECYCLE = "lifecycle"
  DISPATCH = "dispatch"
  METHOD = "method"
