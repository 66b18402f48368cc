"""
The config module is responsible for managing the configuration of chunkmap and is based on the
Donfig python library.

Example:
    The size of the linearization memo shared by every coordinate system of a simulation is read
    from ``cache.linearization_size``. It can be changed programmatically

    ```python
    from chunkmap.core.config import config

    config.set({"cache.linearization_size": 1000})
    ```

    or with the environment variable ``CHUNKMAP_CACHE__LINEARIZATION_SIZE``. The double
    underscore ``__`` is used to indicate nested access.

    ```bash
    export CHUNKMAP_CACHE__LINEARIZATION_SIZE=1000
    ```

For more information, see the Donfig documentation at https://github.com/pytroll/donfig.
"""

from __future__ import annotations

from typing import Any

from donfig import Config as DConfig

from chunkmap.errors import InvalidConfigError


class Config(DConfig):  # type: ignore[misc]
    """The Config will collect configuration from config files and environment variables

    Example environment variables:
    Grabs environment variables of the form "CHUNKMAP_FOO__BAR_BAZ=123" and
    turns these into config variables of the form ``{"foo": {"bar-baz": 123}}``
    It transforms the key and value in the following way:

    -  Lower-cases the key text
    -  Treats ``__`` (double-underscore) as nested access
    -  Calls ``ast.literal_eval`` on the value

    """

    def reset(self) -> None:
        self.clear()
        self.refresh()


# The default configuration for chunkmap
config = Config(
    "chunkmap",
    defaults=[
        {
            "cache": {
                "linearization_size": 20000,
                "normalization_size": 50,
                "coordinate_systems": 50,
            },
            "ordering": {"cell": "row-major", "chunk": "row-major"},
            "metrics": {
                "alignment_weights": {"amplification": 0.9, "ranges": 0.1},
            },
        }
    ],
)


def parse_cache_size(data: Any, name: str) -> int:
    if isinstance(data, int) and not isinstance(data, bool) and data >= 0:
        return data
    raise InvalidConfigError(name, "a non-negative integer", data)


def parse_alignment_weights(data: Any) -> tuple[float, float]:
    try:
        weights = (float(data["amplification"]), float(data["ranges"]))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidConfigError(
            "metrics.alignment_weights", "a mapping with 'amplification' and 'ranges'", data
        ) from e
    if any(w < 0 for w in weights):
        raise InvalidConfigError("metrics.alignment_weights", "non-negative weights", data)
    return weights
