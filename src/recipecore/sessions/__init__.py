"""Session memory: sequence construction and exchange persistence."""

from .memory import SessionMemory

__all__ = ["SessionMemory"]
