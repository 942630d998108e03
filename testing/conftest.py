# conftest.py
import pytest

from RadioStore import Store, ValidatorRegistry, MemoryMedium
from RadioStore.jacobiRadio import KEY_TABLE, default_state, register_validators


class FailingMedium:
    """Medium whose every call throws, like a full or unavailable browser storage."""

    def __init__(self):
        self.calls = []

    def get(self, key):
        self.calls.append(('get', key))
        raise OSError('medium unavailable')

    def set(self, key, value):
        self.calls.append(('set', key))
        raise OSError('quota exceeded')


@pytest.fixture
def medium():
    return MemoryMedium()


@pytest.fixture
def failing_medium():
    return FailingMedium()


@pytest.fixture
def store(medium):
    """
    A fresh radio store for every test: default state, the radio validators and
    key table, persisting to an in-memory medium.
    """
    return Store(default_state(),
                 validators=register_validators(ValidatorRegistry()),
                 medium=medium,
                 key_table=KEY_TABLE)


@pytest.fixture
def recorder():
    """A callback that records every (new, old, path) delivery."""
    calls = []

    def callback(new_value, old_value, path):
        calls.append((new_value, old_value, path))

    callback.calls = calls
    return callback


@pytest.fixture
def qt_app():
    QtCore = pytest.importorskip('PySide6.QtCore')
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
