# rsQt.py
from PySide6.QtCore import QObject, QSettings, Signal


class QSettingsMedium:
    """
    Persistence medium on top of QSettings, the native Qt settings store.

    :param settings: A QSettings to use. If omitted, QSettings(organization, application)
                     is opened (registry / plist / ini, depending on the platform).
    """

    def __init__(self, settings=None, organization='RadioStore', application='JacobiRadio'):
        self.settings = settings if settings is not None else QSettings(organization, application)

    def get(self, key):
        value = self.settings.value(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def set(self, key, value):
        self.settings.setValue(key, value)
        self.settings.sync()
        status = self.settings.status()
        if status != QSettings.Status.NoError:
            raise OSError(f"QSettings could not store '{key}': {status.name}")


class StoreSignals(QObject):
    """
    Re-emits store notifications as a Qt signal, so widgets connect to the store
    like to any other signal:

        signals = StoreSignals(store, 'audio.*')
        signals.changed.connect(lambda path, new, old: slider.setValue(new))
    """
    changed = Signal(str, object, object)  # path, new_value, old_value

    def __init__(self, store, pattern='*', parent=None):
        super().__init__(parent)
        self.pattern = pattern
        self._dispose = store.subscribe(pattern, self._on_change)

    def _on_change(self, new_value, old_value, path):
        self.changed.emit(path, new_value, old_value)

    def close(self):
        self._dispose()
