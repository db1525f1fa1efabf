"""Exception types raised by the NovaSearch engine."""
from __future__ import annotations


class NovaError(Exception):
    """Base class for engine errors."""


class CorpusConfigurationError(NovaError, ValueError):
    """The corpus is empty or one of its entries is malformed."""


class StoreUnavailableError(NovaError, RuntimeError):
    """The session persistence store could not be read or written."""


class DomainRouterError(NovaError, RuntimeError):
    """The external query-handling service failed or returned garbage."""


__all__ = [
    "NovaError",
    "CorpusConfigurationError",
    "StoreUnavailableError",
    "DomainRouterError",
]
