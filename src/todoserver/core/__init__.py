"""
=============================================================================
CORE: SOCKETS, CONNECTIONS AND SYNCHRONISATION
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ socket_server.py  bind / listen / accept loop, signal forwarding    │
    │ connection.py     buffered request reads, keep-alive, interruption  │
    │ rwlock.py         shared-read / exclusive-write lock                │
    │ tracker.py        in-flight request counter for graceful drain      │
    └─────────────────────────────────────────────────────────────────────┘

Concurrency model: one daemon thread per accepted connection. Shared state
(the store, the metrics counter) carries its own lock; nothing else is
shared between connection threads.
=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .rwlock import ReadWriteLock
from .tracker import RequestTracker

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ReadWriteLock",
    "RequestTracker",
]
