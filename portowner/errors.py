from __future__ import annotations


class EnumerationError(RuntimeError):
    """The kernel socket table could not be read at all."""


class ConfigError(ValueError):
    pass
