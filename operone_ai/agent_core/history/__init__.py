"""Command history used for auditing and undo."""

from .recorder import CommandHistoryEntry, CommandHistoryRecorder

__all__ = ["CommandHistoryEntry", "CommandHistoryRecorder"]
