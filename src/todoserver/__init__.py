"""
=============================================================================
TODOSERVER: IN-MEMORY TODO LIST HTTP SERVICE
=============================================================================

A small JSON API for short task records, served by an HTTP/1.1 server
written directly on top of sockets.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ARCHITECTURE                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer ──► Connection (thread per connection)                │
    │                        │                                             │
    │                        ▼                                             │
    │   LoggingMiddleware → MetricsMiddleware → Router                     │
    │                                             │                        │
    │                     ┌───────────────────────┼──────────────┐         │
    │                     ▼                       ▼              ▼         │
    │               HealthHandler          MetricsHandler   TodoHandler    │
    │                                             │              │         │
    │                                      MetricsCollector  TodoStore     │
    │                                                     (read/write lock)│
    └─────────────────────────────────────────────────────────────────────┘

ENDPOINTS:
    GET    /healthz        "ok"
    GET    /version        version string
    GET    /metrics        {"requests": N, "total_todos": M}
    GET    /todos          [todo, ...]
    POST   /todos          {"title": "..."}                 → 201
    GET    /todos/{id}     todo
    PUT    /todos/{id}     {"title": "...", "completed": b}
    DELETE /todos/{id}                                      → 204

QUICK START:
    python -m todoserver --port 8080

    from todoserver import create_app, ServerConfig
    create_app(ServerConfig(port=8080)).run()
=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import TodoServer, ServerState, create_app
from .store import Todo, TodoStore
from .metrics import MetricsCollector, MetricsSnapshot

__all__ = [
    "TodoServer",
    "ServerState",
    "ServerConfig",
    "create_app",
    "Todo",
    "TodoStore",
    "MetricsCollector",
    "MetricsSnapshot",
    "__version__",
]
