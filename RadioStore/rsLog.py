import enum
import logging

logger = logging.getLogger('RadioStore')


class rsLog(enum.IntEnum):
    """
    Defines the available logging verbosity levels for a store.
    """

    def _generate_next_value_(name, start, count, last_values):
        return count  # first enum gets int val 0

    STEALTH = enum.auto()  # No logging at all
    OFF = enum.auto()  # Logs failures: callbacks, persistence, reentrancy
    QUIET = enum.auto()  # + Logs lifecycle: created, disposed, restored
    FULL = enum.auto()  # + Logs every commit and delivery

    @classmethod
    def from_any(cls, value):
        """
        Accepts an rsLog, a mode name in any case ('quiet') or a mode number (2),
        the forms a formula setting may take.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            member = cls.__members__.get(value.upper())
            if member is None:
                raise ValueError(f"Unknown log mode '{value}', use one of {', '.join(cls.__members__)}")
            return member
        if isinstance(value, int) and not isinstance(value, bool):
            if not 0 <= value < len(cls):
                raise ValueError(f"Log mode {value} is out of range 0..{len(cls) - 1}")
            return cls(value)
        raise TypeError(f"A log mode is a name or a number, not {type(value).__name__}")


class rsLogged:
    """
    Mixin that binds log_error / log_warning / log_info / log_debug to either the
    'RadioStore' logger or a no-op, depending on the active rsLog mode.
    """

    def set_log_mode(self, log_mode):
        log_mode = rsLog.from_any(log_mode)
        self._log_mode = log_mode
        self.log_error = self._log_error if log_mode >= rsLog.OFF else self._log_stealth
        self.log_warning = self._log_warning if log_mode >= rsLog.OFF else self._log_stealth
        self.log_info = self._log_info if log_mode >= rsLog.QUIET else self._log_stealth
        self.log_debug = self._log_debug if log_mode >= rsLog.FULL else self._log_stealth

    @property
    def log_mode(self):
        return self._log_mode

    @staticmethod
    def _log_error(msg, *args, exc_info=None):
        logger.error(msg, *args, exc_info=exc_info)

    @staticmethod
    def _log_warning(msg, *args, exc_info=None):
        logger.warning(msg, *args, exc_info=exc_info)

    @staticmethod
    def _log_info(msg, *args, exc_info=None):
        logger.info(msg, *args, exc_info=exc_info)

    @staticmethod
    def _log_debug(msg, *args, exc_info=None):
        logger.debug(msg, *args, exc_info=exc_info)

    @staticmethod
    def _log_stealth(msg, *args, exc_info=None):
        pass
