"""Conductor board: keeps a task board in sync with a planning agent."""

__version__ = "0.1.0"
