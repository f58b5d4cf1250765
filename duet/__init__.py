"""Duet — shared coding sessions with a multi-language sandboxed runner."""

__version__ = "0.1.0"
