"""
Run-time Error Taxonomy.

Errors surfaced to the caller of a synchronous object call. A failure inside
a method body never terminates the callee actor; it travels back as an
``("error", reason)`` reply and is raised at the call site.
"""

from typing import Any, Tuple


class ActorError(Exception):
  """Base class for all errors raised by the actor runtime."""


class MethodDispatchError(ActorError):
  """
  A method body raised while handling a call.

  Attributes:
      method (str): Name of the method that failed.
      reason (BaseException): The exception raised inside the method.
  """

  def __init__(self, method: str, reason: BaseException) -> None:
    super().__init__(f"Method '{method}' failed: {reason!r}")
    self.method = method
    self.reason = reason


class UnhandledMethodError(ActorError):
  """
  The object has no method with the requested name.

  Attributes:
      method (str): The requested method name.
      payload (Tuple[str, str]): ``(method, "undefined")``.
  """

  def __init__(self, method: str) -> None:
    super().__init__(f"undefined method '{method}'")
    self.method = method
    self.payload: Tuple[str, str] = (method, "undefined")


class NoMatchingClauseError(ActorError):
  """
  No clause of a method accepts the given arguments.

  Attributes:
      method (str): The method whose clauses were tried.
      arguments (Any): The argument list that failed to match.
  """

  def __init__(self, method: str, arguments: Any) -> None:
    super().__init__(f"no clause of '{method}' matches arguments {arguments!r}")
    self.method = method
    self.arguments = arguments


class CallTimeoutError(ActorError):
  """A synchronous call did not receive a reply in time."""

  def __init__(self, target: Any, request: Any, timeout: float) -> None:
    super().__init__(f"call to {target!r} timed out after {timeout}s: {request!r}")
    self.target = target
    self.request = request
    self.timeout = timeout


class ActorExitedError(ActorError):
  """The target actor is not running, or exited before replying."""

  def __init__(self, target: Any, reason: Any) -> None:
    super().__init__(f"{target!r} exited: {reason!r}")
    self.target = target
    self.reason = reason
