"""
Monte Carlo Power Analysis Utilities Package.
Internal utilities - not part of public API.
"""

from . import expressions, formatters, parsers, validators, visualization

__all__ = [
    "expressions",
    "formatters",
    "parsers",
    "validators",
    "visualization",
]
