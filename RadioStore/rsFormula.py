import time

from .internals.Store import Store
from .internals.Validators import ValidatorRegistry
from .rsLog import rsLog
from .rsPersistence import KeyTable


class rsFormula:
    """
    The composition root of an application built on a Store.

    A formula builds exactly one Store, wires its validators, persistence medium
    and key table, then rehydrates the persisted paths. Subclasses override the
    creating_* hooks; the store is handed to collaborators as formula.store.
    There is no global store: whoever needs it gets it from its formula.
    """

    DEFAULTS = (
        ('radiostore/log/mode', rsLog.OFF),
        ('radiostore/max_depth', 32),
        ('radiostore/structural_sharing', False),
    )

    def __init__(self):
        self.formula = dict(self.DEFAULTS)
        self.update_formula(self.creating_formula())
        self.starting_at = time.time()

        validators = ValidatorRegistry()
        self.creating_validators(validators)

        self.store = Store(self.creating_state(),
                           validators=validators,
                           medium=self.creating_medium(),
                           key_table=KeyTable(self.creating_key_table() or ()),
                           structural_sharing=bool(self.get('radiostore/structural_sharing')),
                           max_depth=int(self.get('radiostore/max_depth')),
                           log_mode=self.get('radiostore/log/mode'))

        for key, path, default in self.creating_restores() or ():
            self.store.restore(key, path, default)

        self.creating_subscriptions(self.store)

    def update_formula(self, formula, val=None):
        """
        :param formula: A key string (with val), a dict, or (key, value) pairs.
        """
        if formula is None:
            return
        if isinstance(formula, str):
            self.formula[formula] = val
        elif isinstance(formula, dict):
            self.formula.update(formula)
        else:
            self.formula.update(dict(formula))

    def get(self, key, default=None):
        return self.formula.get(key, default)

    def close(self):
        self.store.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # hooks

    def creating_formula(self):
        return None

    def creating_state(self):
        return {}

    def creating_validators(self, registry):
        pass

    def creating_key_table(self):
        return None

    def creating_medium(self):
        return None

    def creating_restores(self):
        return None

    def creating_subscriptions(self, store):
        pass
