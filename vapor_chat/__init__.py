"""Vapor Chat transport core: a WebSocket chat client with explicit reconnects."""

__version__ = "1.0.0"
