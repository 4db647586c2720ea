"""
Immutable instance-variable store.

Each write produces a new store; the previous value is left untouched. Every
call runs on a deep snapshot, so a method that fails midway, even after
mutating a field value in place, leaves the actor holding the store of its
last successful call.
"""

import copy
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional


class InstanceStore(Mapping):
  """
  Read-only mapping from field name to value.

  Unset fields read as ``None`` through :meth:`get`.
  """

  __slots__ = ("_fields",)

  def __init__(self, fields: Optional[Mapping[str, Any]] = None) -> None:
    self._fields: Dict[str, Any] = dict(fields or {})

  def __getitem__(self, key: str) -> Any:
    return self._fields[key]

  def __iter__(self) -> Iterator[str]:
    return iter(self._fields)

  def __len__(self) -> int:
    return len(self._fields)

  def __repr__(self) -> str:
    return f"InstanceStore({self._fields!r})"

  def set(self, key: str, value: Any) -> "InstanceStore":
    """
    Returns a new store with ``key`` bound to ``value``.

    Args:
        key: Field name.
        value: New field value.

    Returns:
        InstanceStore: The updated copy.
    """
    fields = dict(self._fields)
    fields[key] = value
    return InstanceStore(fields)

  def delete(self, key: str) -> "InstanceStore":
    """Returns a new store without ``key``. Missing keys are ignored."""
    fields = dict(self._fields)
    fields.pop(key, None)
    return InstanceStore(fields)

  def snapshot(self) -> "InstanceStore":
    """
    Returns a deep copy, so in-place changes to field values (``self.items.append(x)``)
    never reach this store.

    Object handles and actor references are identities and are shared, not copied.
    """
    return InstanceStore(copy.deepcopy(self._fields))
