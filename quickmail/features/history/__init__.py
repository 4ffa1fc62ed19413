"""Message history feature module."""

from .history import HistoryEntry, HistoryPage, MessageHistory, format_time

__all__ = ["HistoryEntry", "HistoryPage", "MessageHistory", "format_time"]
