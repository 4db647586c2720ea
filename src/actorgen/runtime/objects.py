"""
Object Handles and Synchronous Calls.

The caller-facing half of the call bridge: an object is reached through an
opaque :class:`ObjectHandle` (actor reference plus class tag) and invoked with
:func:`call`, which turns ``("ok", value)`` replies into return values and
``("error", reason)`` replies into exceptions raised at the call site.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from actorgen.config import DEFAULT_CALL_TIMEOUT
from actorgen.enums import ReplyTag
from actorgen.runtime import gen_server
from actorgen.runtime.errors import ActorError, MethodDispatchError, UnhandledMethodError
from actorgen.runtime.gen_server import ActorRef


@dataclass(frozen=True)
class ObjectHandle:
  """
  Opaque reference to a live object.

  The instance-variable store is owned by the actor thread and is never
  reachable through the handle.

  Attributes:
      pid (ActorRef): The actor running the object.
      class_name (str): Name of the object's class.
  """

  pid: ActorRef
  class_name: str

  def __repr__(self) -> str:
    return f"#<{self.class_name} {self.pid.id}>"

  def __deepcopy__(self, memo: Dict[int, Any]) -> "ObjectHandle":
    return self

  def call(self, method: str, *args: Any, timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> Any:
    """Shorthand for :func:`call` on this handle."""
    return call(self, method, *args, timeout=timeout)


@dataclass(frozen=True)
class ClassConstant:
  """
  Value returned by the default ``class`` method.

  Attributes:
      name (str): The class name.
  """

  name: str

  def __repr__(self) -> str:
    return self.name


def _pid(target: Any) -> ActorRef:
  return target.pid if isinstance(target, ObjectHandle) else target


def call(target: Any, method: str, *args: Any, timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> Any:
  """
  Invokes ``method`` on an object and waits for the result.

  Args:
      target: An ObjectHandle (or bare ActorRef).
      method: Public method name.
      *args: Method arguments, sent as an argument list.
      timeout: Seconds to wait for the reply; None waits forever.

  Returns:
      Any: The method's result value.

  Raises:
      ActorError: Runtime errors reported by the object (e.g. UnhandledMethodError).
      MethodDispatchError: If the method body raised any other exception.
  """
  tag, value = gen_server.call(_pid(target), (method, list(args)), timeout=timeout)
  if tag == ReplyTag.OK:
    return value
  if isinstance(value, ActorError):
    raise value
  raise MethodDispatchError(method, value) from value


def cast(target: Any, message: Any) -> None:
  """Sends an asynchronous message. Generated classes acknowledge it without effect."""
  gen_server.cast(_pid(target), message)


def send(target: Any, message: Any) -> None:
  """Sends an out-of-band message, handled by the object's ``handle_info``."""
  gen_server.send(_pid(target), message)


def stop(target: Any, reason: Any = gen_server.NORMAL, timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> None:
  """
  Stops an object. Objects linked to it exit too unless ``reason`` is ``"normal"``.

  Raises:
      ActorExitedError: If the object is not running.
  """
  gen_server.stop(_pid(target), reason, timeout=timeout)


def upgrade(
  target: Any,
  module: Any,
  old_version: Any = None,
  extra: Any = None,
  timeout: Optional[float] = DEFAULT_CALL_TIMEOUT,
) -> None:
  """
  Hot-swaps the class module of a running object.

  The object keeps its instance variables; the new module's ``code_change``
  may migrate them.

  Args:
      target: ObjectHandle or ActorRef of the object.
      module: Newly loaded class module.
      old_version: Passed to ``code_change``.
      extra: Passed to ``code_change``.
      timeout: Seconds to wait for the swap to complete.
  """
  gen_server.upgrade(_pid(target), module, old_version, extra, timeout=timeout)


def new_instance(module: Any, *args: Any, timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> ObjectHandle:
  """
  Spawns a linked object from a loaded class module and runs its ``initialize`` method.

  Args:
      module: Loaded class module.
      *args: Arguments for ``initialize``.
      timeout: Call timeout for ``initialize``.

  Returns:
      ObjectHandle: Handle of the initialized object.

  Raises:
      ActorError: If ``initialize`` fails. The object is stopped first.
  """
  handle = module.spawn_link()
  try:
    call(handle, "initialize", *args, timeout=timeout)
  except Exception:
    if handle.pid.is_alive():
      stop(handle, timeout=timeout)
    raise
  return handle


def unhandled_method(method: str, arguments: List[Any]) -> Any:
  """
  Default fallback for requests naming no known method.

  Raises:
      UnhandledMethodError: Always, with payload ``(method, "undefined")``.
  """
  raise UnhandledMethodError(method)
