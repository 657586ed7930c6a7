"""
The config module holds the settings read by the region engine and the
reader. It is based on the Donfig python library, so values can be set
programmatically, by environment variables, or from YAML files in standard
locations.

Example:
    The bulk transfer cap can be lowered for a block of code::

        from hyperslab.config import config

        with config.set({"transfer.max_length": 2**20}):
            region.target_length()

    or for a whole process with the environment variable
    ``HYPERSLAB_TRANSFER__MAX_LENGTH=1048576``. The double underscore ``__``
    is used to indicate nested access.

For more information, see the Donfig documentation at https://github.com/pytroll/donfig.
"""

from __future__ import annotations

from donfig import Config as DConfig


class BadConfigError(ValueError):
    _msg = "bad Config: %r"


class Config(DConfig):  # type: ignore[misc]
    """The Config will collect configuration from config files and environment variables

    Example environment variables:
    Grabs environment variables of the form "HYPERSLAB_FOO__BAR_BAZ=123" and
    turns these into config variables of the form ``{"foo": {"bar-baz": 123}}``
    It transforms the key and value in the following way:

    -  Lower-cases the key text
    -  Treats ``__`` (double-underscore) as nested access
    -  Calls ``ast.literal_eval`` on the value

    """

    def reset(self) -> None:
        self.clear()
        self.refresh()


# The default configuration for hyperslab
config = Config(
    "hyperslab",
    defaults=[
        {
            "transfer": {"max_length": 2**31 - 1},
            "reader": {"merge_contiguous": True},
        }
    ],
)


def get_max_transfer_length() -> int:
    value = config.get("transfer.max_length")
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise BadConfigError(
            f"transfer.max_length must be a positive integer, got {value!r}")
    return value
