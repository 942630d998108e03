"""
Best-effort persistence of store subtrees to an external key -> string medium.

The medium is anything with get(key) -> str | None and set(key, str). Both calls
may raise; the bridge logs and absorbs every medium and (de)serialization
failure so a live UI is never destabilized by storage trouble.
"""
import datetime
import json
import os
import pathlib
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union

from .internals import Paths


class Medium(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


def _datetime_serializer(obj: Any) -> Any:
    if isinstance(obj, datetime.datetime):
        return {'__datetime__': True, 'as_iso': obj.isoformat()}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _datetime_deserializer(obj: Dict) -> Any:
    if '__datetime__' in obj:
        return datetime.datetime.fromisoformat(obj['as_iso'])
    return obj


def dumps(value: Any) -> str:
    """Serializes a subtree to the string stored on the medium."""
    return json.dumps(value, default=_datetime_serializer, separators=(',', ':'))


def loads(text: str) -> Any:
    """Inverse of dumps()."""
    return json.loads(text, object_hook=_datetime_deserializer)


class MemoryMedium:
    """Dictionary backed medium, for tests and headless runs."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data) if data else {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileMedium:
    """
    Keeps every key in one JSON object file. Writes go to a temporary sibling
    file first and then replace the original, so a crash never leaves half a file.
    """

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = pathlib.Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open(encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + '.tmp')
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding='utf-8')
        os.replace(tmp, self.path)


class KeyTable:
    """
    Ordered (path prefix, medium key) table. A prefix covers the path itself and
    everything below it; the first matching prefix wins.
    """

    def __init__(self, entries: Union[Dict[str, str], Iterable[Tuple[str, str]]] = ()):
        items = entries.items() if isinstance(entries, dict) else entries
        self._entries: List[Tuple[str, str]] = [(prefix, key) for prefix, key in items]

    def key_for(self, path: str) -> Optional[str]:
        for prefix, key in self._entries:
            if Paths.is_within(path, prefix):
                return key
        return None

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)


class PersistenceBridge:
    """
    Connects a Store to a medium. Only the value of the requested path is ever
    written, never the whole tree.

    :param store: The owning store; used for get/set and for logging.
    :param medium: The external key/value medium. Defaults to a MemoryMedium.
    :param key_table: KeyTable, dict or (prefix, key) pairs for key inference.
    """

    def __init__(self, store, medium: Optional[Medium] = None, key_table=None):
        self._store = store
        self.medium = medium if medium is not None else MemoryMedium()
        self.key_table = key_table if isinstance(key_table, KeyTable) else KeyTable(key_table or ())

    def key_for(self, path: str) -> Optional[str]:
        return self.key_table.key_for(path)

    def persist(self, key: str, path: str) -> None:
        """Writes the current value at path under key. Failures are logged, never raised."""
        Paths.parse(path)
        try:
            self.medium.set(key, dumps(self._store.get(path)))
        except Exception as e:
            self._store.log_error("Could not persist %s to '%s': %s", path, key, e, exc_info=e)
            return
        self._store.log_debug("persisted %s -> '%s'", path, key)

    def persist_paths(self, paths: Iterable[str], key: Optional[str] = None) -> None:
        """
        Persists a set of changed paths. Paths are grouped by key (the explicit key
        for all of them, or each path's inferred key; paths without a key are
        skipped) and each group is written once, storing the deepest common
        ancestor of its paths.
        """
        groups: Dict[str, List[str]] = {}
        for path in paths:
            target_key = key or self.key_for(path)
            if target_key:
                groups.setdefault(target_key, []).append(path)

        for target_key, group in groups.items():
            target = Paths.common_ancestor(group)
            if target is None:
                self._store.log_warning("Not persisting %s to '%s': the paths share no common ancestor",
                                        group, target_key)
                continue
            self.persist(target_key, target)

    def restore(self, key: str, path: str, default: Any = None) -> Any:
        """
        Reads key from the medium and sets it at path (notifying subscribers).

        A missing key, an empty string or any medium or decoding failure falls back
        to default, which is then set and returned. Without a default, returns None
        and leaves the store untouched.

        :raises PathError: If path is malformed or runs through a scalar, checked
                           before the medium is read, with or without a default.
        """
        Paths.check_writable(self._store.get_state(), path)
        try:
            saved = self.medium.get(key)
            if saved:
                value = loads(saved)
                self._store.set(path, value)
                self._store.log_info("restored %s from '%s'", path, key)
                return value
        except Exception as e:
            self._store.log_warning("Could not restore %s from '%s': %s", path, key, e, exc_info=e)

        if default is not None:
            self._store.set(path, default)
            return default
        return None
