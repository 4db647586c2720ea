"""
Tests for the thread-backed generic server loop.
"""

import threading

import pytest

from actorgen.runtime import gen_server
from actorgen.runtime.errors import ActorError, ActorExitedError, CallTimeoutError


class Echo:
  """Callbacks keeping a list of everything received."""

  __name__ = "Echo"

  def __init__(self):
    self.terminated = []
    self.release = threading.Event()

  def init(self, arguments):
    if arguments == "refuse":
      return ("stop", "refused")
    if arguments == "crash":
      raise RuntimeError("bad init")
    return ("ok", [])

  def handle_call(self, request, caller, state):
    if request == "state":
      return ("reply", list(state), state)
    if request == "block":
      self.release.wait(5)
      return ("reply", "released", state)
    if request == "crash":
      raise RuntimeError("crashed")
    if request == "silent":
      return ("noreply", state + ["silent"])
    return ("reply", request, state + [request])

  def handle_cast(self, message, state):
    return ("noreply", state + [("cast", message)])

  def handle_info(self, message, state):
    return ("noreply", state + [("info", message)])

  def terminate(self, reason, state):
    self.terminated.append(reason)
    return "ok"

  def code_change(self, old_version, state, extra):
    return ("ok", state + [("upgraded", old_version, extra)])


@pytest.fixture
def echo():
  callbacks = Echo()
  ref = gen_server.start(callbacks)
  yield callbacks, ref
  callbacks.release.set()
  if ref.is_alive():
    gen_server.stop(ref)


def test_call_replies_and_keeps_state(echo):
  _, ref = echo
  assert gen_server.call(ref, "a") == "a"
  assert gen_server.call(ref, "b") == "b"
  assert gen_server.call(ref, "state") == ["a", "b"]


def test_ref_names_callbacks(echo):
  _, ref = echo
  assert ref.name == "Echo"
  assert ref.is_alive()


def test_cast_and_send_are_processed_in_order(echo):
  _, ref = echo
  gen_server.cast(ref, 1)
  gen_server.send(ref, 2)
  assert gen_server.call(ref, "state") == [("cast", 1), ("info", 2)]


def test_call_timeout(echo):
  callbacks, ref = echo
  with pytest.raises(CallTimeoutError):
    gen_server.call(ref, "block", timeout=0.05)
  callbacks.release.set()
  assert gen_server.call(ref, "state") == []


def test_stop_runs_terminate(echo):
  callbacks, ref = echo
  gen_server.stop(ref, "shutdown")
  assert not ref.is_alive()
  assert gen_server.wait(ref, timeout=1)
  assert callbacks.terminated == ["shutdown"]
  with pytest.raises(ActorExitedError):
    gen_server.call(ref, "a")


def test_crash_fails_pending_call(echo):
  callbacks, ref = echo
  with pytest.raises(ActorExitedError):
    gen_server.call(ref, "crash")
  assert gen_server.wait(ref, timeout=1)
  assert isinstance(callbacks.terminated[0], RuntimeError)


def test_init_failures():
  with pytest.raises(ActorExitedError, match="refused"):
    gen_server.start(Echo(), "refuse")
  with pytest.raises(ActorExitedError, match="bad init"):
    gen_server.start(Echo(), "crash")


def test_abnormal_exit_propagates_to_links():
  first_callbacks, second_callbacks = Echo(), Echo()
  first = gen_server.start(first_callbacks)
  second = gen_server.start(second_callbacks)
  gen_server.link(first, second)

  gen_server.stop(first, "kill")
  assert gen_server.wait(second, timeout=1)
  assert second_callbacks.terminated == ["kill"]


def test_normal_exit_does_not_propagate():
  first = gen_server.start(Echo())
  second = gen_server.start(Echo())
  gen_server.link(first, second)

  gen_server.stop(first)
  assert gen_server.call(second, "still here") == "still here"
  gen_server.stop(second)


def test_upgrade_migrates_state(echo):
  _, ref = echo
  gen_server.call(ref, "a")
  gen_server.upgrade(ref, Echo(), old_version=1, extra="x")
  assert gen_server.call(ref, "state") == ["a", ("upgraded", 1, "x")]


def test_self_ref_inside_actor():
  seen = []

  class SelfAware(Echo):
    def handle_call(self, request, caller, state):
      seen.append(gen_server.self_ref())
      return ("reply", caller, state)

  ref = gen_server.start(SelfAware())
  assert gen_server.call(ref, "who") is None
  assert seen == [ref]
  assert gen_server.self_ref() is None
  gen_server.stop(ref)


def test_actor_cannot_call_itself():
  class Selfish(Echo):
    def handle_call(self, request, caller, state):
      try:
        gen_server.call(gen_server.self_ref(), "again")
      except ActorError as error:
        return ("reply", str(error), state)
      return ("reply", "called", state)

  ref = gen_server.start(Selfish())
  assert "cannot call itself" in gen_server.call(ref, "go")
  gen_server.stop(ref)
