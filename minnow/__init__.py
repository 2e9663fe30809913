"""Byte streams, descriptor and socket wrappers, and a poll-based event loop."""

__version__ = "0.1.0"