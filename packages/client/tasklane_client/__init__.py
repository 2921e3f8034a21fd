"""
Tasklane client

Keeps a single client-side state store in sync with a Tasklane server from
REST responses and realtime (Socket.IO) events.
"""

__version__ = "0.1.0"
