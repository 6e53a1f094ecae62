# src/__init__.py — v1
"""screenlens: cached, rate-limit aware screenshot analysis via AI vision services."""

from screenlens.version import __version__

__all__ = ["__version__"]
