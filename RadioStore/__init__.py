from .rsErrors import StoreError, PathError, ValidationError, ReentrancyError
from .rsLog import rsLog, logger
from .internals import Paths, Snapshot
from .internals.Paths import ABSENT
from .internals.Store import Store, Item
from .internals.Subscriptions import SubscriptionRegistry, path_matches
from .internals.Validators import ValidatorRegistry
from .rsPersistence import PersistenceBridge, KeyTable, MemoryMedium, JsonFileMedium
from .rsViews import Field, StateView
from .rsFormula import rsFormula
