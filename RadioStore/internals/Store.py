import contextlib
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from . import Paths, Snapshot
from .Subscriptions import Callback, SubscriptionRegistry
from .Validators import ValidatorRegistry
from ..rsErrors import PathError, ReentrancyError
from ..rsLog import rsLog, rsLogged
from ..rsPersistence import KeyTable, Medium, PersistenceBridge

# ------------------------------------------------------------------------------
# Type definitions
# ------------------------------------------------------------------------------
PathStr = str
Disposer = Callable[[], None]
Updates = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]
# Change: (path, new_value, old_value)
Change = Tuple[str, Any, Any]


# ------------------------------------------------------------------------------
# Class: Item (The Cursor/View)
# ------------------------------------------------------------------------------
class Item:
    """
    Represents a specific cursor/view on a path in the Store.
    Acts like a pointer to a specific location in the state tree.
    """
    __slots__ = ('_store', '_path')

    def __init__(self, store: 'Store', path: PathStr):
        self._store = store
        self._path = path

    @property
    def path(self) -> str:
        """Returns the absolute path of this item."""
        return self._path

    @property
    def v(self) -> Any:
        """
        Property for direct value access.
        Writing to .v ALWAYS notifies subscribers.
        """
        return self._store.get(self._path)

    @v.setter
    def v(self, value: Any):
        self._store.set(self._path, value)

    @property
    def parent(self) -> Optional['Item']:
        """
        Returns an Item cursor pointing to the direct parent container, or None for
        a top-level item.
        Example: "system.x[0]" -> "system.x"
        """
        parts = Paths.parse(self._path)
        if len(parts) == 1:
            return None
        return self._store.at(Paths.build(parts[:-1]))

    # --- VALUE ACCESS ---

    def val(self, default: Any = None) -> Any:
        """Value of THIS item, or 'default' if it is None or doesn't exist."""
        value = self.v
        return value if value is not None else default

    def get(self, key: Union[str, int], default: Any = None) -> Any:
        """Dictionary-style lookup of a CHILD value, relative to this item."""
        value = self._store.get(self._join(key))
        return value if value is not None else default

    def set(self, data: Union[str, int, Mapping[str, Any]], value: Any = None, **options) -> 'Item':
        """
        Versatile setter method.

        Args:
            data:
                - str / int: Relative key to set 'value' to.
                - dict: Batch update {relative_key: val}, committed as one snapshot.
            value: The value to set (only used if data is a key).
            options: Passed on to Store.set / Store.batch.
        """
        if isinstance(data, Mapping):
            self._store.batch({self._join(k): v for k, v in data.items()}, **options)
            return self
        if isinstance(data, (str, int)):
            self._store.set(self._join(data), value, **options)
            return self
        raise ValueError(f"Invalid arguments for set(). Got type: {type(data)}")

    def subscribe(self, callback: Callback) -> Disposer:
        """Subscribes to this item and everything below it."""
        return self._store.subscribe(f"{self._path}.*", callback)

    # --- MAGIC ---

    def _join(self, key: Union[str, int]) -> str:
        if isinstance(key, int):
            return f"{self._path}[{key}]"
        if key.startswith('['):
            return f"{self._path}{key}"
        return f"{self._path}.{key}"

    def at(self, subpath: Union[str, int]) -> 'Item':
        return self._store.at(self._join(subpath))

    def __getitem__(self, key: Union[str, int]) -> 'Item':
        return self.at(key)

    def __setitem__(self, key: Union[str, int], value: Any):
        self.set(key, value)

    def __iter__(self) -> Iterator[Union[str, int]]:
        value = self.v
        if isinstance(value, dict):
            return iter(list(value))
        if isinstance(value, (list, tuple)):
            return iter(range(len(value)))
        return iter(())

    def __repr__(self):
        val = self.v
        return f"<Item '{self._path}': {val}>" if val is not None else f"<Item '{self._path}'>"


# ------------------------------------------------------------------------------
# Class: Store (Base Functionality)
# ------------------------------------------------------------------------------
class Store(rsLogged):
    """
    Reactive, path-addressed state store.

    Supports:
    - Snapshots: every set/batch/reset publishes a new tree; a published tree is
      never mutated, so anything handed out by get()/get_state() stays valid.
    - Opt-in validation per exact path (all or nothing, raises ValidationError).
    - Pub/Sub on exact, 'prefix.*' and '*' patterns, delivered synchronously.
    - Batches: many paths, one snapshot transition, one delivery per path.
    - Silent updates (silent=True) and best-effort persistence (persist=True).

    Execution is single threaded and cooperative. A subscriber may call set()
    again; that nested update commits and delivers all its notifications before
    the outer delivery loop moves on to its next subscriber. Nesting deeper than
    max_depth raises ReentrancyError before anything is committed.

    :param initial_state: Starting tree (cloned). Defaults to an empty dict.
    :param validators: ValidatorRegistry consulted when validate=True.
    :param medium: Persistence medium (see rsPersistence.Medium).
    :param key_table: Path prefix -> medium key table for persist=True.
    :param structural_sharing: If True, a write copies only the ancestors of the
                               written path and shares untouched subtrees with the
                               previous snapshot. If False (default) every commit
                               is a full deep copy.
    :param max_depth: Maximum nesting of set/batch calls made from callbacks.
    :param log_mode: rsLog level (or its name / int).
    """

    def __init__(self,
                 initial_state: Optional[Dict[str, Any]] = None,
                 *,
                 validators: Optional[ValidatorRegistry] = None,
                 medium: Optional[Medium] = None,
                 key_table: Union[KeyTable, Dict[str, str], Iterable[Tuple[str, str]], None] = None,
                 structural_sharing: bool = False,
                 max_depth: int = 32,
                 log_mode: Union[rsLog, str, int] = rsLog.OFF):
        self.set_log_mode(log_mode)
        self._state: Dict[str, Any] = Snapshot.clone(initial_state) if initial_state is not None else {}
        self._validators = validators if validators is not None else ValidatorRegistry()
        self._subscriptions = SubscriptionRegistry(on_error=self._delivery_failed)
        self.persistence = PersistenceBridge(self, medium, key_table)
        self.structural_sharing = structural_sharing
        self.max_depth = max_depth
        self.version = 0
        self._depth = 0
        self.log_info("store created (%d top-level keys, %d validators)", len(self._state), len(self._validators))

    # --- Context Managers ---

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False

    @contextlib.contextmanager
    def _nested(self, path: str):
        if self._depth >= self.max_depth:
            raise ReentrancyError(path, self.max_depth)
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    # --- Core Access ---

    def at(self, path: str) -> Item:
        return Item(self, path)

    def __getitem__(self, path: str) -> Item:
        return self.at(path)

    def __setitem__(self, path: str, value: Any):
        self.set(path, value)

    def get(self, path: str, default: Any = None) -> Any:
        """
        Reads path from the current snapshot. Never raises: a missing or malformed
        path yields 'default'.
        """
        try:
            value = Paths.read(self._state, path)
        except PathError as e:
            self.log_debug("get(%r): %s", path, e.reason)
            return default
        return default if value is Paths.ABSENT else value

    def get_state(self) -> Dict[str, Any]:
        """The current snapshot by reference. Callers must not mutate it."""
        return self._state

    def set(self, path: str, value: Any, *,
            validate: bool = False,
            persist: bool = False,
            persist_key: Optional[str] = None,
            silent: bool = False) -> None:
        """
        Stores a clone of value at path and publishes the result as the new snapshot.

        Args:
            path: Target path, e.g. 'system.x[0]'.
            value: The new value. It is cloned, later changes to the caller's
                   object do not reach the store.
            validate: Run the validator registered for path first. On rejection
                      ValidationError propagates and nothing changes.
            persist: Persist path afterwards under persist_key, or under the key
                     inferred from the key table.
            persist_key: Explicit medium key.
            silent: Commit without notifying subscribers.

        Raises:
            PathError: Malformed path, or a path running through a scalar.
            ValidationError: validate=True and the validator rejected value.
            ReentrancyError: Nested deeper than max_depth from callbacks.
        """
        with self._nested(path):
            old_value = self._read(self._state, path)
            value = Snapshot.clone(value)
            if validate:
                self._validators.check(path, value, self._state)
            self._commit(self._write(self._state, path, value), [path])
            if not silent:
                self._deliver(path, value, old_value)
            if persist:
                self.persistence.persist_paths([path], persist_key)

    def batch(self, updates: Updates, *,
              validate: bool = False,
              persist: bool = False,
              persist_key: Optional[str] = None,
              silent: bool = False) -> None:
        """
        Applies every path/value pair to one candidate tree and publishes it once.

        Updates are applied in order; each old value (and each validation) sees
        the effect of the updates before it. Afterwards subscribers are notified
        once per updated path, in order. Any ValidationError or PathError aborts
        the whole batch: no commit, no notifications.

        Args:
            updates: dict {path: value} or iterable of (path, value) pairs.
            persist: Persist once per distinct key, see PersistenceBridge.persist_paths.
        """
        items = list(updates.items()) if isinstance(updates, Mapping) else list(updates)
        if not items:
            return

        with self._nested('<batch>'):
            candidate = self._state if self.structural_sharing else Snapshot.clone(self._state)
            changes: List[Change] = []
            for path, value in items:
                value = Snapshot.clone(value)
                if validate:
                    self._validators.check(path, value, candidate)
                old_value = self._read(candidate, path)
                if self.structural_sharing:
                    candidate = Snapshot.assoc(candidate, path, value)
                else:
                    Paths.write(candidate, path, value)
                changes.append((path, value, old_value))

            self._commit(candidate, [path for path, _, _ in changes])
            if not silent:
                for path, new_value, old_value in changes:
                    self._deliver(path, new_value, old_value)
            if persist:
                self.persistence.persist_paths([path for path, _, _ in changes], persist_key)

    def reset(self, path: str, default: Any) -> None:
        """Sets path back to (a clone of) default. Never validated, never silent."""
        self.set(path, Snapshot.clone(default))

    def subscribe(self, pattern: str, callback: Callback) -> Disposer:
        """
        Register callback(new_value, old_value, path) for every change whose path
        matches pattern: '*', an exact path, or 'prefix.*'.

        Returns a disposer; calling it (any number of times) unsubscribes.
        """
        sub_id = self._subscriptions.add(pattern, callback)
        self.log_debug("subscribed #%d to %r", sub_id, pattern)

        def dispose():
            self._subscriptions.remove(sub_id)

        return dispose

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    # --- Persistence ---

    def persist(self, key: str, path: str) -> None:
        self.persistence.persist(key, path)

    def restore(self, key: str, path: str, default: Any = None) -> Any:
        return self.persistence.restore(key, path, default)

    def dispose(self) -> None:
        """Ends the store's lifecycle: drops every subscription."""
        count = len(self._subscriptions)
        self._subscriptions.clear()
        self.log_info("store disposed (%d subscriptions dropped)", count)

    # --- Implementation Details ---

    @staticmethod
    def _read(root: Any, path: str) -> Any:
        value = Paths.read(root, path)
        return None if value is Paths.ABSENT else value

    def _write(self, root: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
        if self.structural_sharing:
            return Snapshot.assoc(root, path, value)
        candidate = Snapshot.clone(root)
        Paths.write(candidate, path, value)
        return candidate

    def _commit(self, snapshot: Dict[str, Any], paths: List[str]) -> None:
        self._state = snapshot
        self.version = (self.version + 1) & 0b0111_1111_1111_1111_1111_1111_1111_1111
        self.log_debug("commit v%d: %s", self.version, ', '.join(paths))

    def _deliver(self, path: str, new_value: Any, old_value: Any) -> None:
        delivered = self._subscriptions.notify(path, new_value, old_value)
        self.log_debug("%s: %r -> %r delivered to %d subscriber(s)", path, old_value, new_value, delivered)

    def _delivery_failed(self, error: Exception, path: str, pattern: str) -> None:
        self.log_error("Callback error %r on %s: %s", pattern, path, error, exc_info=error)

    def __repr__(self):
        return f"<Store v{self.version}: {len(self._subscriptions)} subscriptions>"
