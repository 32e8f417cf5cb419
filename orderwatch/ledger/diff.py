"""Structural diff producing a flat map of changed field paths.

Two records are walked in lock-step over the union of their keys. Leaves
(primitives, lists, and records whose counterpart is a non-record value)
are compared with type-strict equality and reported under their dotted
path, e.g. ``order.vin`` or ``details.tasks.scheduling.apptDateTimeAddressStr``.

Lists are never diffed element by element: a changed list is reported once,
at its own path, with the whole old and new lists as values.

Both the walk and the leaf comparison keep an explicit stack instead of
recursing, so nesting depth is bounded only by memory.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Final

from orderwatch.models.snapshots import Diff, FieldChange, JSONValue


class _Missing:
    """Marker for a key absent from one side of the comparison."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<missing>"


MISSING: Final = _Missing()

# Stack marker: the containers entered most recently are left.
_LEAVE: Final = object()


class CyclicStructureError(ValueError):
    """Raised when a container is re-entered while walking its own descendants."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Cyclic structure detected at '{path or '<root>'}'")
        self.path = path


def _is_record(value: Any) -> bool:
    return isinstance(value, Mapping)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_container(value: Any) -> bool:
    return _is_record(value) or _is_sequence(value)


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _render(value: Any) -> Any:
    return None if value is MISSING else value


def _by_key(record: Mapping[Any, Any]) -> dict[str, Any]:
    return {str(k): v for k, v in record.items()}


class _ActivePath:
    """Ids of the containers on the current walk path, one set per side.

    Entries are released in LIFO order: ``leave`` undoes the latest
    ``enter`` and ``unwind`` restores an earlier ``depth``.
    """

    def __init__(self) -> None:
        self._sides: tuple[set[int], set[int]] = (set(), set())
        self._entered: list[list[tuple[int, int]]] = []

    def enter(self, path: str, old: Any, new: Any) -> None:
        pushed: list[tuple[int, int]] = []
        for side, node in enumerate((old, new)):
            if not _is_container(node):
                continue
            if id(node) in self._sides[side]:
                raise CyclicStructureError(path)
            pushed.append((side, id(node)))
        for side, node_id in pushed:
            self._sides[side].add(node_id)
        self._entered.append(pushed)

    def leave(self) -> None:
        for side, node_id in self._entered.pop():
            self._sides[side].discard(node_id)

    def depth(self) -> int:
        return len(self._entered)

    def unwind(self, depth: int) -> None:
        while len(self._entered) > depth:
            self.leave()


def _scalars_equal(a: Any, b: Any) -> bool:
    if a is MISSING or b is MISSING or a is None or b is None:
        return a is b
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
            return True
        return a == b
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if _is_container(a) or _is_container(b):
        return False
    return bool(a == b)


def _values_equal(a: Any, b: Any, active: _ActivePath, path: str) -> bool:
    """Type-strict deep equality.

    ``True`` never equals ``1``; ints and floats compare by value; ``None``
    and MISSING are distinct; two NaNs are equal.
    """
    base = active.depth()
    stack: list[Any] = [(a, b, path)]
    try:
        while stack:
            frame = stack.pop()
            if frame is _LEAVE:
                active.leave()
                continue
            x, y, at = frame
            if _is_record(x) and _is_record(y):
                active.enter(at, x, y)
                stack.append(_LEAVE)
                x_by_key, y_by_key = _by_key(x), _by_key(y)
                if x_by_key.keys() != y_by_key.keys():
                    return False
                stack.extend((v, y_by_key[k], _join(at, k)) for k, v in x_by_key.items())
            elif _is_sequence(x) and _is_sequence(y):
                active.enter(at, x, y)
                stack.append(_LEAVE)
                if len(x) != len(y):
                    return False
                stack.extend((p, q, _join(at, i)) for i, (p, q) in enumerate(zip(x, y)))
            elif not _scalars_equal(x, y):
                return False
        return True
    finally:
        active.unwind(base)


class StructuralDiffer:
    """Computes the set of leaf-level changes between two nested records."""

    def diff(self, old: JSONValue, new: JSONValue) -> Diff:
        """Return every dotted path whose value differs between *old* and *new*.

        Output keys are emitted in sorted path order, so the result does not
        depend on the key insertion order of either input.

        Raises:
            CyclicStructureError: a container is reachable from itself.
        """
        changes: Diff = {}
        active = _ActivePath()
        stack: list[Any] = [(old, new, "")]
        while stack:
            frame = stack.pop()
            if frame is _LEAVE:
                active.leave()
                continue
            old_node, new_node, path = frame
            if not self._descends(old_node, new_node):
                if old_node is MISSING and new_node is MISSING:
                    continue
                if not _values_equal(old_node, new_node, active, path):
                    changes[path] = FieldChange(old=_render(old_node), new=_render(new_node))
                continue

            active.enter(path, old_node, new_node)
            stack.append(_LEAVE)
            old_by_key = _by_key(old_node) if _is_record(old_node) else {}
            new_by_key = _by_key(new_node) if _is_record(new_node) else {}
            # reversed so that keys pop off the stack in sorted order
            for key in sorted(old_by_key.keys() | new_by_key.keys(), reverse=True):
                stack.append((old_by_key.get(key, MISSING), new_by_key.get(key, MISSING), _join(path, key)))
        return changes

    @staticmethod
    def _descends(old: Any, new: Any) -> bool:
        # A record is recursed into when its counterpart is a record or absent.
        if _is_record(old):
            return _is_record(new) or new is MISSING
        if _is_record(new):
            return old is MISSING
        return False


_default_differ = StructuralDiffer()


def compute_diff(old: JSONValue, new: JSONValue) -> Diff:
    """Diff two snapshots with the default StructuralDiffer."""
    return _default_differ.diff(old, new)
