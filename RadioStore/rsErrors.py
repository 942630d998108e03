class StoreError(Exception):
    """Base class for every error raised by a RadioStore Store."""


class PathError(StoreError, ValueError):
    """
    Raised when a path string cannot be parsed, or cannot be written because the
    tree holds a scalar (or the wrong kind of container) where the path needs to
    descend.
    """

    def __init__(self, path, reason='malformed path'):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path {path!r}: {reason}")


class ValidationError(StoreError, ValueError):
    """
    Raised when a registered validator rejects a candidate value.

    :param path: The exact path the validator is registered on.
    :param value: The offending value.
    :param reason: Human readable reason, as given by the validator.
    """

    def __init__(self, path, value, reason):
        self.path = path
        self.value = value
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ReentrancyError(StoreError, RuntimeError):
    """Raised when subscriber callbacks nest set/batch calls deeper than the store allows."""

    def __init__(self, path, depth):
        self.path = path
        self.depth = depth
        super().__init__(f"Nested update of {path!r} exceeds the maximum depth of {depth}")
