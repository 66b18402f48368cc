__all__ = [
    "BaseChunkmapError",
    "BoundsCheckError",
    "InvalidConfigError",
    "InvalidShapeError",
    "NormalizationLookupError",
    "UnknownOrderingError",
]


class BaseChunkmapError(ValueError):
    """
    Base error which all chunkmap caller errors are sub-classed from.
    """

    _msg: str = "{}"

    def __init__(self, *args: object) -> None:
        """
        If a single argument is passed, treat it as a pre-formatted message.

        If multiple arguments are passed, they are used as arguments for a template string class
        variable.
        """
        if len(args) == 1:
            super().__init__(args[0])
        else:
            super().__init__(self._msg.format(*args))


class InvalidShapeError(BaseChunkmapError):
    """Raised when an array or chunk shape is malformed or not strictly positive."""

    _msg = "Invalid {} {!r}. Expected {}."


class UnknownOrderingError(BaseChunkmapError):
    """Raised when an ordering name does not match any known ordering."""

    _msg = "Unknown ordering {!r}. Expected one of {}."


class InvalidConfigError(BaseChunkmapError):
    """Raised when an array configuration or query record is malformed."""

    _msg = "Invalid value for '{}'. Expected {}. Got {!r}."


class BoundsCheckError(IndexError):
    _msg = "coordinate {!r} out of bounds for shape {!r}"

    def __init__(self, coords: tuple[int, ...], shape: tuple[int, ...]) -> None:
        super().__init__(self._msg.format(coords, shape))


class NormalizationLookupError(RuntimeError):
    """
    Raised when a raw rank or dense position is missing from a normalization map.

    This signals a defect in how the map was built, not a recoverable condition.
    """

    _msg = "{} {} not found in normalization map for shape {!r} with ordering {!r}"

    def __init__(self, what: str, value: object, shape: tuple[int, ...], ordering: str) -> None:
        super().__init__(self._msg.format(what, value, shape, ordering))
