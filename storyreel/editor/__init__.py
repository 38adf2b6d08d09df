"""
Timeline editing: pure operations, undo history and the editing session.
"""

from . import operations
from .history import History
from .session import EditingSession

__all__ = ["operations", "History", "EditingSession"]
