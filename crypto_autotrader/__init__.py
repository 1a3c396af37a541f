"""Multi-exchange order execution and signal-driven auto-trading."""

from importlib import metadata

try:
    __version__ = metadata.version('crypto_autotrader')
except metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = '0.1.0-dev'

__all__ = ['__version__']
