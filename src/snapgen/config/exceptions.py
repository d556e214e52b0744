"""Exceptions raised by the configuration layer."""


class ConfigError(Exception):
    """Raised when a configuration source cannot be parsed or validated."""
