"""
Tests for the immutable instance-variable store.
"""

from actorgen.runtime.store import InstanceStore


def test_unset_fields_read_as_none():
  assert InstanceStore().get("missing") is None


def test_set_returns_new_store():
  empty = InstanceStore()
  one = empty.set("x", 1)
  two = one.set("x", 2)

  assert dict(empty) == {}
  assert dict(one) == {"x": 1}
  assert dict(two) == {"x": 2}


def test_delete_returns_new_store():
  store = InstanceStore({"a": 1, "b": 2})
  assert dict(store.delete("a")) == {"b": 2}
  assert dict(store.delete("missing")) == {"a": 1, "b": 2}
  assert dict(store) == {"a": 1, "b": 2}


def test_mapping_protocol():
  store = InstanceStore({"a": 1})
  assert "a" in store
  assert len(store) == 1
  assert store == {"a": 1}
  assert repr(store) == "InstanceStore({'a': 1})"


def test_snapshot_isolates_mutable_values():
  store = InstanceStore({"items": [1], "meta": {"k": "v"}})
  copy = store.snapshot()
  copy["items"].append(2)
  copy["meta"]["k"] = "changed"

  assert store == {"items": [1], "meta": {"k": "v"}}
  assert copy == {"items": [1, 2], "meta": {"k": "changed"}}


def test_snapshot_shares_actor_references():
  from actorgen.runtime.objects import ObjectHandle

  handle = ObjectHandle(pid=object(), class_name="Box")
  copy = InstanceStore({"boxes": [handle]}).snapshot()
  assert copy["boxes"][0] is handle
