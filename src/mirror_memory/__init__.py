"""MIRROR memory core: task-aware retrieval and lifecycle management for a personal memory store."""

__version__ = "0.1.0"
