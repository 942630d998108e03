import itertools
from typing import Any, Callable, Dict, Optional

from ..rsLog import logger

# Callback: (new_value, old_value, path)
Callback = Callable[[Any, Any, str], None]
ErrorHandler = Callable[[Exception, str, str], None]


def path_matches(path: str, pattern: str) -> bool:
    """
    Pattern rules:
      '*'          every path
      'a.b'        exactly 'a.b'
      'a.*'        'a' itself and every path starting with 'a.'
    """
    if pattern == '*' or pattern == path:
        return True
    if pattern.endswith('.*'):
        prefix = pattern[:-2]
        return path == prefix or path.startswith(prefix + '.')
    return False


class SubscriptionRegistry:
    """
    Subscription id -> {pattern, cb}. Ids increase monotonically and are never
    reused, so iteration order is registration order.
    """

    def __init__(self, on_error: Optional[ErrorHandler] = None):
        self._entries: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count()
        self._on_error = on_error or self._log_failure

    matches = staticmethod(path_matches)

    def add(self, pattern: str, callback: Callback) -> int:
        if not isinstance(pattern, str):
            raise TypeError(f"Subscription pattern must be a str, got {type(pattern).__name__}")
        if not callable(callback):
            raise TypeError(f"Subscription callback must be callable, got {type(callback).__name__}")
        sub_id = next(self._ids)
        self._entries[sub_id] = {'pattern': pattern, 'cb': callback}
        return sub_id

    def remove(self, sub_id: int) -> None:
        self._entries.pop(sub_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, sub_id):
        return sub_id in self._entries

    @staticmethod
    def _log_failure(error, path, pattern):
        logger.error("Subscriber callback for %r failed on %r: %s", pattern, path, error, exc_info=error)

    def notify(self, path: str, new_value: Any, old_value: Any) -> int:
        """
        Calls every callback whose pattern matches path, in registration order.
        A failing callback is reported to on_error and does not stop delivery.
        Entries added while delivering are not called for this change; entries
        removed while delivering are skipped if not reached yet.

        :return: The number of callbacks that were called.
        """
        delivered = 0
        for sub_id, entry in list(self._entries.items()):
            if sub_id not in self._entries:
                continue
            if not path_matches(path, entry['pattern']):
                continue
            delivered += 1
            try:
                entry['cb'](new_value, old_value, path)
            except Exception as e:
                self._on_error(e, path, entry['pattern'])
        return delivered
