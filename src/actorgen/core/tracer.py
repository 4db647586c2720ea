"""
Compilation Trace Logger.

Records the step-by-step execution of the class compiler:
1. Phases (Merge Methods, Dispatch, per-method state threading, Assembly),
   nested through ``parent_id``.
2. Merge Decisions (a user method overriding a default, or added).
3. AST Mutations (a clause before and after state threading).
4. Warnings (e.g. a method declared twice).

The output is a structured list of event dictionaries suitable for JSON serialization.
"""

import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class TraceEventType(str, Enum):
  PHASE_START = "phase_start"
  PHASE_END = "phase_end"
  MERGE_DECISION = "merge_decision"
  AST_MUTATION = "ast_mutation"
  WARNING = "warning"


@dataclass
class TraceEvent:
  id: str
  type: TraceEventType
  timestamp: float
  description: str
  parent_id: Optional[str] = None
  metadata: Dict[str, Any] = field(default_factory=dict)


class TraceLogger:
  """
  Collects events of one or more compilations.

  The ClassCompiler hands one instance to every rewriting stage, so events
  of a stage nest under the phase that was open when it ran.
  """

  def __init__(self) -> None:
    self._events: List[TraceEvent] = []
    self._open: List[str] = []

  def _record(
    self,
    evt_type: TraceEventType,
    description: str,
    metadata: Optional[Dict[str, Any]] = None,
    parent_id: Optional[str] = None,
  ) -> TraceEvent:
    if parent_id is None and self._open:
      parent_id = self._open[-1]
    event = TraceEvent(
      id=str(uuid.uuid4()),
      type=evt_type,
      timestamp=time.time(),
      description=description,
      parent_id=parent_id,
      metadata=metadata or {},
    )
    self._events.append(event)
    return event

  def start_phase(self, name: str, description: str = "") -> str:
    """Opens a phase nested in the current one. Returns its id."""
    event = self._record(TraceEventType.PHASE_START, name, metadata={"detail": description})
    self._open.append(event.id)
    return event.id

  def end_phase(self) -> None:
    """Closes the innermost open phase. Does nothing if none is open."""
    if not self._open:
      return
    phase_id = self._open.pop()
    self._record(TraceEventType.PHASE_END, "End Phase", parent_id=phase_id)

  @contextmanager
  def phase(self, name: str, description: str = "") -> Iterator[str]:
    """
    Wraps a block in a phase, closing it even if the block raises.

    Example:
        with tracer.phase("Dispatch", "5 methods"):
            ...
    """
    phase_id = self.start_phase(name, description)
    try:
      yield phase_id
    finally:
      if phase_id in self._open:
        while self._open and self._open[-1] != phase_id:
          self.end_phase()
        self.end_phase()

  def log_merge(self, method: str, outcome: str) -> None:
    """Logs how a method name was resolved while merging defaults."""
    self._record(TraceEventType.MERGE_DECISION, f"Method '{method}': {outcome}", metadata={"method": method})

  def log_mutation(self, node_type: str, before: str, after: str) -> None:
    self._record(TraceEventType.AST_MUTATION, f"Transformed {node_type}", metadata={"before": before, "after": after})

  def log_warning(self, message: str) -> None:
    self._record(TraceEventType.WARNING, message, metadata={"level": "warning"})

  def events_of(self, evt_type: TraceEventType) -> List[TraceEvent]:
    """Recorded events of one type, in order."""
    return [event for event in self._events if event.type == evt_type]

  def export(self) -> List[Dict[str, Any]]:
    """Returns list of dicts for JSON serialization."""
    return [asdict(e) for e in self._events]


_GLOBAL_TRACER = TraceLogger()


def get_tracer() -> TraceLogger:
  return _GLOBAL_TRACER


def reset_tracer() -> None:
  global _GLOBAL_TRACER
  _GLOBAL_TRACER = TraceLogger()
