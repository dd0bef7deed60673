"""Exception types raised by the ranking engine."""


class RankerError(Exception):
    """Base class for ranking engine errors."""


class ConfigurationError(RankerError):
    """Invalid engine parameters. Fatal at startup."""
