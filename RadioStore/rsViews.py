"""
Typed accessors on top of the path engine.

    class AudioView(StateView):
        prefix = 'audio'
        volume = Field((int, float))
        isMuted = Field(bool)

    audio = AudioView(store)
    audio.volume = 80        # type checked, then store.set('audio.volume', 80, validate=True)
    audio.volume             # store.get('audio.volume')

Dynamic consumers (wildcard subscribers, persistence) keep using plain paths.
"""
from typing import Any, Dict, Optional, Tuple, Type, Union

from .internals.Store import Disposer, Item, Store

TypeSpec = Union[Type, Tuple[Type, ...], None]


class Field:
    """
    Descriptor binding an attribute of a StateView to '<prefix>.<name>'.

    :param type_: Accepted type(s) on write; None accepts anything. bool is not
                  accepted where only int (or float) is asked for.
    :param validate: Pass validate=True to Store.set on write.
    :param name: Path segment, when it differs from the attribute name.
    """

    def __init__(self, type_: TypeSpec = None, validate: bool = True, name: Optional[str] = None):
        self.type_ = type_
        self.validate = validate
        self.name = name
        self.attr = None

    def __set_name__(self, owner, attr):
        self.attr = attr
        if self.name is None:
            self.name = attr

    def __get__(self, view, owner=None):
        if view is None:
            return self
        return view.store.get(view.path_of(self.name))

    def __set__(self, view, value):
        self.check_type(value)
        view.store.set(view.path_of(self.name), value, validate=self.validate)

    def check_type(self, value: Any) -> None:
        if self.type_ is None or value is None:
            return
        accepted = self.type_ if isinstance(self.type_, tuple) else (self.type_,)
        if isinstance(value, bool) and bool not in accepted:
            raise TypeError(f"{self.name}: expected {self._names(accepted)}, got bool")
        if not isinstance(value, accepted):
            raise TypeError(f"{self.name}: expected {self._names(accepted)}, got {type(value).__name__}")

    @staticmethod
    def _names(types):
        return ' or '.join(t.__name__ for t in types)


class StateView:
    """Base class for typed views; subclasses set 'prefix' and declare Fields."""
    prefix = ''

    def __init__(self, store: Store):
        self.store = store

    def path_of(self, name: str) -> str:
        return f"{self.prefix}.{name}" if self.prefix else name

    def item(self, name: str) -> Item:
        return self.store.at(self.path_of(name))

    @classmethod
    def fields(cls) -> Dict[str, Field]:
        found = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if isinstance(value, Field):
                    found[attr] = value
        return found

    def as_dict(self) -> Dict[str, Any]:
        return {attr: getattr(self, attr) for attr in self.fields()}

    def subscribe(self, callback) -> Disposer:
        """Subscribes to every change below the view's prefix."""
        return self.store.subscribe(f"{self.prefix}.*" if self.prefix else '*', callback)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.as_dict()}>"
