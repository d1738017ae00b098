"""Key Gate - short-lived access keys issued after task completion."""

from ._version import __version__


__all__ = ["__version__"]
