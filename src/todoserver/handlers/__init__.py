"""
=============================================================================
REQUEST HANDLERS
=============================================================================

Each handler class groups related endpoints and registers them itself:

    ┌─────────────────────┬────────────────────────────────────────────┐
    │  HealthHandler      │  GET /healthz, GET /version                │
    │  MetricsHandler     │  GET /metrics                              │
    │  TodoHandler        │  /todos and /todos/{id} CRUD               │
    └─────────────────────┴────────────────────────────────────────────┘

    TodoHandler(store).register(router)

Handlers report failures by raising errors from todoserver.errors; the
router renders them.
=============================================================================
"""

from .health import HealthHandler
from .metrics import MetricsHandler
from .todos import TodoHandler, parse_todo_id

__all__ = [
    "HealthHandler",
    "MetricsHandler",
    "TodoHandler",
    "parse_todo_id",
]
