"""
Snapshot copies of the state tree.

clone() makes a fully independent deep copy, assoc() makes a new root that differs
from the old one at a single path and copies only the ancestors of that path.
Either way the tree handed in is never touched.
"""
import copy
import datetime
import enum
from typing import Any, Union

from . import Paths
from ..rsErrors import PathError

_IMMUTABLE = (str, bytes, int, float, complex, bool, type(None),
              datetime.date, datetime.time, datetime.timedelta, enum.Enum)


def clone(value: Any) -> Any:
    """
    Deep copy of a nested value. Dicts are copied key by key, lists and tuples
    element by element; scalars and dates are returned as is (they are immutable).
    Any other object falls back to copy.deepcopy, which honours its __deepcopy__.

    Cyclic input is not supported.
    """
    if isinstance(value, _IMMUTABLE):
        return value
    if isinstance(value, dict):
        return {key: clone(val) for key, val in value.items()}
    if isinstance(value, list):
        return [clone(item) for item in value]
    if isinstance(value, tuple):
        return tuple(clone(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return type(value)(clone(item) for item in value)
    return copy.deepcopy(value)


def _shallow(node: Any, part: Paths.Segment, path: str) -> Union[dict, list]:
    if node is Paths.ABSENT or node is None:
        return Paths.empty_for(part)
    Paths.slot(node, part, path)
    if isinstance(node, dict):
        return dict(node)
    if isinstance(node, list):
        return list(node)
    raise PathError(path, f"cannot descend into a {type(node).__name__}")


def assoc(root: Any, path: Union[str, Paths.Segments], value: Any) -> Any:
    """
    Returns a new root with value stored at path. Only the containers on the way
    from the root to path are copied; every other subtree is shared with root.

    :raises PathError: If the path is malformed or runs through a scalar.
    """
    parts = path if isinstance(path, tuple) else Paths.parse(path)
    path_str = path if isinstance(path, str) else Paths.build(parts)

    def _assoc(node, i):
        part = parts[i]
        node_copy = _shallow(node, part, path_str)
        if i == len(parts) - 1:
            Paths.assign(node_copy, part, value, path_str)
        else:
            Paths.assign(node_copy, part, _assoc(Paths.child(node_copy, part, path_str), i + 1), path_str)
        return node_copy

    return _assoc(root, 0)
