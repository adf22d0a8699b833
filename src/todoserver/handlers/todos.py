"""
=============================================================================
TODO CRUD HANDLER
=============================================================================

    ┌──────────┬──────────────┬───────────────────┬──────────────────────────┐
    │  Method  │  Path        │  Success          │  Failures                │
    ├──────────┼──────────────┼───────────────────┼──────────────────────────┤
    │  GET     │  /todos      │  200 [todo, ...]  │  -                       │
    │  POST    │  /todos      │  201 todo         │  400 invalid payload     │
    │  GET     │  /todos/{id} │  200 todo         │  400 invalid id, 404     │
    │  PUT     │  /todos/{id} │  200 todo         │  400 id / payload, 404   │
    │  DELETE  │  /todos/{id} │  204              │  400 invalid id, 404     │
    └──────────┴──────────────┴───────────────────┴──────────────────────────┘

Payload rules:
    POST  {"title": str}                       whitespace-only title → 400
    PUT   {"title": str, "completed": bool}    both optional; "" / false

Key lookup is exact first, then case-insensitive, so {"Title": "x"} is
accepted. A JSON null field counts as absent. The stored title is kept
exactly as sent.
=============================================================================
"""

import logging
import re
from typing import Any, Optional

from ..errors import NotFoundError, ValidationError
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, ok, created, no_content
from ..http.router import Router
from ..store import TodoStore


logger = logging.getLogger(__name__)


ID_PATTERN = re.compile(r"[+-]?[0-9]+")
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def parse_todo_id(raw: Optional[str]) -> int:
    """
    Parse a decimal id segment.

    Accepts an optional sign and ASCII digits within the signed 64-bit
    range. Anything else, including the empty string, is rejected.

    Raises:
        ValidationError: "invalid id".
    """
    if raw is None or not ID_PATTERN.fullmatch(raw):
        raise ValidationError("invalid id")
    value = int(raw)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValidationError("invalid id")
    return value


def lookup_field(payload: dict, name: str) -> Any:
    """
    Fetch a field by exact key, falling back to a case-insensitive match.

    Returns None when the field is absent.
    """
    if name in payload:
        return payload[name]
    lowered = name.lower()
    for key, value in payload.items():
        if key.lower() == lowered:
            return value
    return None


def decode_object(request: HTTPRequest, allow_null: bool = False) -> dict:
    """
    Decode the request body as a JSON object.

    Args:
        allow_null: Treat a literal `null` body as an empty object.

    Raises:
        ValidationError: Empty body, invalid JSON or a non-object value.
    """
    if not request.has_body:
        raise ValidationError("invalid payload")
    try:
        payload = request.json
    except HTTPParseError as e:
        logger.debug("Rejected body: %s", e)
        raise ValidationError("invalid payload") from e
    if payload is None and allow_null:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("invalid payload")
    return payload


class TodoHandler:
    """
    CRUD endpoints over a TodoStore.

    Usage:
        todos = TodoHandler(store)
        todos.register(router)
    """

    def __init__(self, store: TodoStore):
        self.store = store

    def register(self, router: Router) -> None:
        router.add_route("/todos", self.list, method="GET")
        router.add_route("/todos", self.create, method="POST")
        router.add_route("/todos/*id", self.get, method="GET")
        router.add_route("/todos/*id", self.update, method="PUT")
        router.add_route("/todos/*id", self.delete, method="DELETE")

    # =========================================================================
    # COLLECTION
    # =========================================================================

    def list(self, request: HTTPRequest) -> HTTPResponse:
        """All todos as a JSON array (order not guaranteed)."""
        return ok([todo.to_dict() for todo in self.store.list()])

    def create(self, request: HTTPRequest) -> HTTPResponse:
        payload = decode_object(request)

        title = lookup_field(payload, "title")
        if title is None:
            title = ""
        if not isinstance(title, str):
            raise ValidationError("invalid payload")
        if not title.strip():
            raise ValidationError("invalid payload")

        todo = self.store.create(title)
        return created(todo.to_dict())

    # =========================================================================
    # ITEM
    # =========================================================================

    def get(self, request: HTTPRequest) -> HTTPResponse:
        todo_id = parse_todo_id(request.path_params.get("id"))
        todo = self.store.get(todo_id)
        if todo is None:
            raise NotFoundError()
        return ok(todo.to_dict())

    def update(self, request: HTTPRequest) -> HTTPResponse:
        """
        Replace title and completed.

        Fields missing from the body fall back to "" and false; an empty
        title is accepted here, unlike on create.
        """
        todo_id = parse_todo_id(request.path_params.get("id"))
        payload = decode_object(request, allow_null=True)

        title = lookup_field(payload, "title")
        completed = lookup_field(payload, "completed")
        if title is None:
            title = ""
        if completed is None:
            completed = False
        if not isinstance(title, str) or not isinstance(completed, bool):
            raise ValidationError("invalid payload")

        todo = self.store.update(todo_id, title, completed)
        if todo is None:
            raise NotFoundError()
        return ok(todo.to_dict())

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        todo_id = parse_todo_id(request.path_params.get("id"))
        if not self.store.delete(todo_id):
            raise NotFoundError()
        return no_content()
