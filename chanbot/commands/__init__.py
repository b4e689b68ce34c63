"""Chat command collaborators plugged into the command dispatcher."""

from .builtin import BuiltinCommands, SearchResult, memory_report  # noqa: F401

__all__ = ["BuiltinCommands", "SearchResult", "memory_report"]
