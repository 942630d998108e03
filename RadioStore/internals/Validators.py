import inspect
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from . import Paths
from ..rsErrors import ValidationError

# Validator: (value, state) -> None, raising on rejection.
Validator = Callable[[Any, Mapping[str, Any]], None]


def _takes_state(fn: Callable) -> bool:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return True
    positional = [p for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)]
    return len(positional) >= 2 or any(p.kind == p.VAR_POSITIONAL for p in params)


class ValidatorRegistry:
    """
    Maps exact paths to validator functions.

    Validators are wired once at startup, usually from a formula's
    creating_validators(), and only run when a caller opts in with validate=True.
    A validator receives the candidate value and, if it accepts a second argument,
    the state as it stands before the update (read only by convention).
    """

    def __init__(self):
        self._validators: Dict[str, Validator] = {}

    def register(self, path: str, fn: Optional[Callable] = None):
        """
        Registers fn for path. Without fn, returns a decorator:

            @registry.register('audio.volume')
            def volume(value): ...
        """
        Paths.parse(path)
        if fn is None:
            def decorator(func):
                self.register(path, func)
                return func
            return decorator

        if _takes_state(fn):
            self._validators[path] = fn
        else:
            self._validators[path] = lambda value, state: fn(value)
        return fn

    def check(self, path: str, value: Any, state: Mapping[str, Any]) -> None:
        """
        Runs the validator for path, if there is one.

        :raises ValidationError: When the validator rejects value. ValueError and
                                 TypeError raised by the validator are wrapped.
        """
        validator = self._validators.get(path)
        if validator is None:
            return
        try:
            validator(value, state)
        except ValidationError:
            raise
        except (ValueError, TypeError) as e:
            raise ValidationError(path, value, str(e)) from e

    def __contains__(self, path: str) -> bool:
        return path in self._validators

    def __iter__(self) -> Iterator[str]:
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)
