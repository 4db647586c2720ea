"""
Generic Server Loop.

A thread-backed actor runtime driving the callbacks of a loaded class module.
Each actor owns one daemon thread and one mailbox (``queue.Queue``) and
handles exactly one message at a time, so the state handed to the callbacks
never needs locking.

Callback contract (the generated lifecycle functions):

- ``init(arguments) -> ("ok", state) | ("stop", reason)``
- ``handle_call(request, caller, state) -> ("reply", reply, state) | ("noreply", state)``
- ``handle_cast(message, state) -> ("noreply", state)``
- ``handle_info(message, state) -> ("noreply", state)``
- ``terminate(reason, state)``
- ``code_change(old_version, state, extra) -> ("ok", state)``

Actors may be linked. When an actor exits with a reason other than
``"normal"``, every linked actor is stopped with the same reason.
"""

import itertools
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from actorgen.config import DEFAULT_CALL_TIMEOUT
from actorgen.enums import ReplyTag
from actorgen.runtime.errors import ActorError, ActorExitedError, CallTimeoutError

logger = logging.getLogger(__name__)

NORMAL = "normal"

_actor_ids = itertools.count(1)
_current = threading.local()


@dataclass(frozen=True)
class ActorRef:
  """
  Opaque reference to a running actor.

  Attributes:
      id (int): Process-unique actor number.
      name (str): Name of the callbacks module driving the actor.
  """

  id: int
  name: str
  _actor: "_Actor" = field(repr=False, compare=False)

  def is_alive(self) -> bool:
    """Returns True while the actor is processing messages."""
    return self._actor.alive

  def __deepcopy__(self, memo: Dict[int, Any]) -> "ActorRef":
    return self


@dataclass
class _Call:
  request: Any
  caller: Optional[ActorRef]
  reply_to: queue.Queue


@dataclass
class _Cast:
  message: Any


@dataclass
class _Info:
  message: Any


@dataclass
class _Stop:
  reason: Any
  reply_to: queue.Queue


@dataclass
class _Upgrade:
  callbacks: Any
  old_version: Any
  extra: Any
  reply_to: queue.Queue


@dataclass
class _Exit:
  reason: Any
  source: ActorRef


@dataclass
class _Down:
  reason: Any


class _Actor:
  """
  Mailbox, state and thread of a single actor.
  """

  def __init__(self, callbacks: Any) -> None:
    self.callbacks = callbacks
    self.mailbox: queue.Queue = queue.Queue()
    self.links: Set["_Actor"] = set()
    self.alive = False
    self.state: Any = None
    self._lock = threading.Lock()
    self._pending: Optional[Any] = None
    self._stop_request: Optional[_Stop] = None

    name = getattr(callbacks, "__name__", type(callbacks).__name__)
    self.ref = ActorRef(next(_actor_ids), name, self)
    self._thread = threading.Thread(target=self._run, name=f"actor-{name}-{self.ref.id}", daemon=True)
    self._started: queue.Queue = queue.Queue(maxsize=1)
    self._arguments: Any = None

  def start(self, arguments: Any) -> ActorRef:
    """
    Starts the actor thread and waits for ``init`` to complete.

    Raises:
        ActorExitedError: If ``init`` fails or requests a stop.
    """
    self._arguments = arguments
    self._thread.start()
    outcome = self._started.get()
    if isinstance(outcome, _Down):
      raise ActorExitedError(self.ref, outcome.reason)
    return self.ref

  def deliver(self, message: Any) -> bool:
    """Enqueues a message. Returns False if the actor is no longer running."""
    with self._lock:
      if not self.alive:
        return False
      self.mailbox.put(message)
      return True

  def _run(self) -> None:
    _current.actor = self
    try:
      tag, payload = self.callbacks.init(self._arguments)
    except Exception as error:
      logger.error(f"Actor {self.ref.name}#{self.ref.id} failed to initialize: {error!r}")
      self._started.put(_Down(error))
      return

    if tag != ReplyTag.OK:
      self._started.put(_Down(payload))
      return

    self.state = payload
    self.alive = True
    self._started.put(self.ref)
    self._shutdown(self._loop())

  def _loop(self) -> Any:
    """Processes messages until a stop request or exit signal. Returns the exit reason."""
    while True:
      message = self.mailbox.get()
      if isinstance(message, _Stop):
        self._stop_request = message
        return message.reason
      if isinstance(message, _Exit):
        if message.reason == NORMAL:
          continue
        logger.warning(f"Actor {self.ref.name}#{self.ref.id} exiting, linked to {message.source!r}")
        return message.reason

      self._pending = message
      try:
        self._handle(message)
      except Exception as error:
        logger.error(f"Actor {self.ref.name}#{self.ref.id} crashed: {error!r}")
        return error
      self._pending = None

  def _handle(self, message: Any) -> None:
    if isinstance(message, _Call):
      result = self.callbacks.handle_call(message.request, message.caller, self.state)
      if result[0] == ReplyTag.REPLY:
        _, reply, self.state = result
        message.reply_to.put(reply)
      elif result[0] == ReplyTag.NOREPLY:
        _, self.state = result
      else:
        raise ActorError(f"bad return value from handle_call: {result!r}")

    elif isinstance(message, _Cast):
      _, self.state = self.callbacks.handle_cast(message.message, self.state)

    elif isinstance(message, _Info):
      _, self.state = self.callbacks.handle_info(message.message, self.state)

    elif isinstance(message, _Upgrade):
      tag, new_state = message.callbacks.code_change(message.old_version, self.state, message.extra)
      if tag != ReplyTag.OK:
        raise ActorError(f"bad return value from code_change: {tag!r}")
      self.callbacks = message.callbacks
      self.state = new_state
      message.reply_to.put(ReplyTag.OK.value)

  def _shutdown(self, reason: Any) -> None:
    with self._lock:
      self.alive = False
      links = set(self.links)
      self.links.clear()

    try:
      self.callbacks.terminate(reason, self.state)
    except Exception as error:
      logger.error(f"Actor {self.ref.name}#{self.ref.id} failed in terminate: {error!r}")

    down = _Down(reason)
    if hasattr(self._pending, "reply_to"):
      self._pending.reply_to.put(down)
    while True:
      try:
        message = self.mailbox.get_nowait()
      except queue.Empty:
        break
      if hasattr(message, "reply_to"):
        message.reply_to.put(down)

    for linked in links:
      with linked._lock:
        linked.links.discard(self)
      if reason != NORMAL:
        linked.deliver(_Exit(reason, self.ref))

    if self._stop_request is not None:
      self._stop_request.reply_to.put(ReplyTag.OK.value)


def _current_actor() -> Optional[_Actor]:
  return getattr(_current, "actor", None)


def self_ref() -> Optional[ActorRef]:
  """Returns the reference of the actor running the current thread, if any."""
  actor = _current_actor()
  return actor.ref if actor else None


def start(callbacks: Any, arguments: Any = None) -> ActorRef:
  """
  Spawns an unlinked actor driven by ``callbacks``.

  Args:
      callbacks: Object (usually a loaded class module) exposing the lifecycle functions.
      arguments: Value passed to ``init``.

  Returns:
      ActorRef: Reference to the running actor.
  """
  return _Actor(callbacks).start(arguments)


def start_link(callbacks: Any, arguments: Any = None) -> ActorRef:
  """
  Spawns an actor linked to the calling actor.

  Outside of an actor thread there is nothing to link to and this behaves
  like :func:`start`.
  """
  actor = _Actor(callbacks)
  ref = actor.start(arguments)
  parent = _current_actor()
  if parent is not None:
    link(parent.ref, ref)
  return ref


def link(first: ActorRef, second: ActorRef) -> None:
  """Links two actors bidirectionally."""
  a, b = first._actor, second._actor
  with a._lock:
    a.links.add(b)
  with b._lock:
    b.links.add(a)


def call(ref: ActorRef, request: Any, timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> Any:
  """
  Sends a request and blocks until the actor replies.

  Args:
      ref: Target actor.
      request: Request value handed to ``handle_call``.
      timeout: Seconds to wait for the reply; None waits forever.

  Returns:
      Any: The reply value.

  Raises:
      ActorError: If an actor calls itself.
      ActorExitedError: If the target is not running or exits before replying.
      CallTimeoutError: If no reply arrives within ``timeout``.
  """
  actor = ref._actor
  if actor is _current_actor():
    raise ActorError(f"{ref!r} cannot call itself")

  reply_to: queue.Queue = queue.Queue(maxsize=1)
  if not actor.deliver(_Call(request, self_ref(), reply_to)):
    raise ActorExitedError(ref, "noproc")

  try:
    reply = reply_to.get(timeout=timeout)
  except queue.Empty:
    raise CallTimeoutError(ref, request, timeout) from None

  if isinstance(reply, _Down):
    raise ActorExitedError(ref, reply.reason)
  return reply


def cast(ref: ActorRef, message: Any) -> None:
  """Delivers an asynchronous request. Dead targets drop it silently."""
  ref._actor.deliver(_Cast(message))


def send(ref: ActorRef, message: Any) -> None:
  """Delivers an out-of-band message to ``handle_info``."""
  ref._actor.deliver(_Info(message))


def stop(ref: ActorRef, reason: Any = NORMAL, timeout: Optional[float] = DEFAULT_CALL_TIMEOUT) -> None:
  """
  Asks an actor to exit with ``reason`` and waits for it to acknowledge.

  Raises:
      ActorExitedError: If the actor is not running.
      CallTimeoutError: If the stop is not acknowledged in time.
  """
  reply_to: queue.Queue = queue.Queue(maxsize=1)
  if not ref._actor.deliver(_Stop(reason, reply_to)):
    raise ActorExitedError(ref, "noproc")
  try:
    reply_to.get(timeout=timeout)
  except queue.Empty:
    raise CallTimeoutError(ref, ("stop", reason), timeout) from None


def upgrade(
  ref: ActorRef,
  callbacks: Any,
  old_version: Any = None,
  extra: Any = None,
  timeout: Optional[float] = DEFAULT_CALL_TIMEOUT,
) -> None:
  """
  Swaps the callbacks of a running actor, migrating its state via ``code_change``.

  Raises:
      ActorExitedError: If the actor is not running or crashes during the upgrade.
      CallTimeoutError: If the upgrade is not acknowledged in time.
  """
  reply_to: queue.Queue = queue.Queue(maxsize=1)
  if not ref._actor.deliver(_Upgrade(callbacks, old_version, extra, reply_to)):
    raise ActorExitedError(ref, "noproc")
  try:
    reply = reply_to.get(timeout=timeout)
  except queue.Empty:
    raise CallTimeoutError(ref, ("upgrade", old_version), timeout) from None
  if isinstance(reply, _Down):
    raise ActorExitedError(ref, reply.reason)


def wait(ref: ActorRef, timeout: Optional[float] = None) -> bool:
  """Blocks until the actor thread has finished. Returns True if it did within ``timeout``."""
  ref._actor._thread.join(timeout)
  return not ref._actor._thread.is_alive()
