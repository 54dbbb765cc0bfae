"""
Storage backends for session payloads.

All backends implement :class:`.base.Storage`. Backend client libraries are
imported by the modules that use them, so that only the driver for the
configured backend needs to be importable.
"""

from .base import Storage, DEFAULT_TIMEOUT

__all__ = ('Storage', 'DEFAULT_TIMEOUT')
