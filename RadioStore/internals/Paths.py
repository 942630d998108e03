"""
Path resolution for the state tree.

A path is a dotted string with optional bracketed indices, e.g. 'system.x[2]' or
'display.visibility.header'. It resolves to a tuple of segments: strings key into
dicts, integers index into lists. A dotted segment made only of digits ('x.0',
'codes.404') is a DigitSegment: an index into a list, its text as key into a dict.
"""
import functools
import re
from typing import Any, Iterable, Optional, Tuple, Union

from ..rsErrors import PathError

Segment = Union[str, int]
Segments = Tuple[Segment, ...]


class _Absent:
    """Marker for 'nothing stored here'. Distinct from a stored None."""
    __slots__ = ()

    def __repr__(self):
        return '<absent>'

    def __bool__(self):
        return False


ABSENT = _Absent()


class DigitSegment(int):
    """An all-digit dotted segment. Equal to its index, remembers its text."""

    def __new__(cls, text: str):
        segment = super().__new__(cls, text)
        segment.text = text
        return segment

    def __repr__(self):
        return f"DigitSegment({self.text!r})"


_PATH_SYNTAX = re.compile(r'^[^.\[\]]+(?:\[[0-9]+\])*(?:\.[^.\[\]]+(?:\[[0-9]+\])*)*$')
_TOKENS = re.compile(r'[^.\[\]]+|\[[0-9]+\]')
_DIGITS = re.compile(r'[0-9]+')


def parse(path: str) -> Segments:
    """
    Parses a path string into its segments.

    Example: 'a.b[2].c' -> ('a', 'b', 2, 'c'). A dotted segment made only of
    digits is an index as well: 'a.b.2' == 'a.b[2]'.

    :raises PathError: If the path is empty or malformed.
    """
    if not isinstance(path, str):
        raise PathError(path, f"expected a string, got {type(path).__name__}")
    return _parse(path)


@functools.lru_cache(maxsize=1024)
def _parse(path: str) -> Segments:
    if not path:
        raise PathError(path, 'path has no segments')
    if not _PATH_SYNTAX.match(path):
        raise PathError(path)

    parsed = []
    for part in _TOKENS.findall(path):
        if part.startswith('['):
            parsed.append(int(part[1:-1]))
        elif _DIGITS.fullmatch(part):
            parsed.append(DigitSegment(part))
        else:
            parsed.append(part)
    return tuple(parsed)


def build(segments: Iterable[Segment]) -> str:
    """Reconstructs a path string from segments, the inverse of parse()."""
    path = ''
    for part in segments:
        if isinstance(part, DigitSegment):
            path += f".{part.text}" if path else part.text
        elif isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else part
    return path


def _segments(path: Union[str, Segments]) -> Segments:
    return path if isinstance(path, tuple) else parse(path)


def slot(container: Any, part: Segment, path: str = '') -> Segment:
    """
    The dict key or list index under which part lives in container.

    :raises PathError: If container is a list and part a key, container is a
                       dict and part a bracketed index, or container is not a
                       container at all.
    """
    if isinstance(container, dict):
        if isinstance(part, DigitSegment):
            return part.text
        if isinstance(part, int):
            raise PathError(path, f"cannot index a mapping with [{part}]")
        return part
    if isinstance(container, (list, tuple)):
        if not isinstance(part, int):
            raise PathError(path, f"cannot key a sequence with '{part}'")
        return int(part)
    raise PathError(path, f"cannot descend into a {type(container).__name__}")


def child(container: Any, part: Segment, path: str = '') -> Any:
    """Returns the child of container at part, or ABSENT when it does not exist."""
    key = slot(container, part, path)
    if isinstance(container, dict):
        return container.get(key, ABSENT)
    return container[key] if key < len(container) else ABSENT


def assign(container: Any, part: Segment, value: Any, path: str = '') -> None:
    """
    Assigns value at part inside container (in place). Lists are padded with
    None when part lies beyond their end.
    """
    key = slot(container, part, path)
    if isinstance(container, dict):
        container[key] = value
    elif isinstance(container, list):
        if key >= len(container):
            container.extend([None] * (key + 1 - len(container)))
        container[key] = value
    else:
        raise PathError(path, f"cannot assign {build([part])!r} in a {type(container).__name__}")


def empty_for(part: Segment):
    """The container to create for a missing intermediate whose next segment is part."""
    return [] if isinstance(part, int) else {}


def read(root: Any, path: Union[str, Segments]) -> Any:
    """
    Reads the value at path. Returns ABSENT if any segment along the way is
    missing or not indexable; only a malformed path raises.
    """
    current = root
    for part in _segments(path):
        if isinstance(current, dict):
            if isinstance(part, int) and not isinstance(part, DigitSegment):
                return ABSENT
            key = part.text if isinstance(part, DigitSegment) else part
            if key not in current:
                return ABSENT
            current = current[key]
        elif isinstance(current, (list, tuple)) and isinstance(part, int):
            if part >= len(current):
                return ABSENT
            current = current[part]
        else:
            return ABSENT
    return current


def _descend(current: Any, part: Segment, path_str: str) -> Any:
    nxt = child(current, part, path_str)
    if nxt is not ABSENT and nxt is not None and not isinstance(nxt, (dict, list)):
        raise PathError(path_str, f"'{build([part])}' holds a {type(nxt).__name__}, not a container")
    return nxt


def write(root: Any, path: Union[str, Segments], value: Any) -> None:
    """
    Writes value at path, mutating root in place. The caller must own root
    exclusively. Missing (or None) intermediates are created as a list when the
    following segment is an index, otherwise as a dict.

    :raises PathError: If the path is malformed or runs through a scalar.
    """
    parts = _segments(path)
    path_str = path if isinstance(path, str) else build(parts)
    current = root
    for part, following in zip(parts[:-1], parts[1:]):
        nxt = _descend(current, part, path_str)
        if nxt is ABSENT or nxt is None:
            nxt = empty_for(following)
            assign(current, part, nxt, path_str)
        current = nxt
    assign(current, parts[-1], value, path_str)


def check_writable(root: Any, path: Union[str, Segments]) -> None:
    """
    Raises the PathError write(root, path, ...) would raise, without touching root.
    """
    parts = _segments(path)
    path_str = path if isinstance(path, str) else build(parts)
    current = root
    for part in parts[:-1]:
        current = _descend(current, part, path_str)
        if current is ABSENT or current is None:
            return
    slot(current, parts[-1], path_str)
    if not isinstance(current, (dict, list)):
        raise PathError(path_str, f"cannot assign {build(parts[-1:])!r} in a {type(current).__name__}")


def common_ancestor(paths: Iterable[str]) -> Optional[str]:
    """
    Returns the deepest path that is equal to, or an ancestor of, every given path.
    None if the paths share no leading segment (or no paths are given).
    """
    common = None
    for path in paths:
        parts = parse(path)
        if common is None:
            common = parts
            continue
        n = 0
        while n < min(len(common), len(parts)) and common[n] == parts[n]:
            n += 1
        common = common[:n]
    return build(common) if common else None


def is_within(path: str, prefix: str) -> bool:
    """True if path equals prefix or lies below it ('prefix.x' or 'prefix[0]')."""
    return path == prefix or path.startswith(prefix + '.') or path.startswith(prefix + '[')
