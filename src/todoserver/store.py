"""
=============================================================================
IN-MEMORY TODO STORE
=============================================================================

Owns every Todo record and the id counter. Nothing outside this module
ever holds a reference to a stored record: every operation hands back a
copy, so callers can serialize at leisure without holding the lock.

=============================================================================
LOCKING DISCIPLINE
=============================================================================

    ┌──────────────┬──────────────┬────────────────────────────────────────┐
    │  Operation   │  Lock side   │  Notes                                 │
    ├──────────────┼──────────────┼────────────────────────────────────────┤
    │  list()      │  read        │  snapshot copy, order not guaranteed   │
    │  get()       │  read        │  pure lookup                           │
    │  len()       │  read        │  used by metrics snapshots             │
    │  create()    │  write       │  issues next id, never reused          │
    │  update()    │  write       │  replaces title AND completed          │
    │  delete()    │  write       │  immediate, irreversible               │
    └──────────────┴──────────────┴────────────────────────────────────────┘

Lock hold time is a single dict operation plus a dataclass copy. JSON
encoding and socket I/O always happen after the lock is released.

INVARIANTS:
    - every key in _todos equals its value's id
    - _next_id is greater than every id ever issued
=============================================================================
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .core.rwlock import ReadWriteLock


logger = logging.getLogger(__name__)


@dataclass
class Todo:
    """
    A short task record.

    Attributes:
        id: Positive integer assigned by the store, immutable after creation.
        title: Task text.
        completed: Completion flag, False at creation.
    """

    id: int
    title: str
    completed: bool = False

    def to_dict(self) -> dict:
        """Convert to the JSON object shape used on the wire."""
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
        }


class TodoStore:
    """
    Thread-safe, memory-resident collection of todos.

    Usage:
        store = TodoStore()
        todo = store.create("buy milk")       # Todo(id=1, ...)
        store.get(todo.id)                    # copy of the record
        store.update(todo.id, "buy oat milk", True)
        store.delete(todo.id)                 # True
        store.delete(todo.id)                 # False
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._todos: Dict[int, Todo] = {}
        self._next_id = 1

    # =========================================================================
    # READ OPERATIONS (shared access)
    # =========================================================================

    def list(self) -> List[Todo]:
        """Return a snapshot copy of all current todos."""
        with self._lock.read():
            return [dataclasses.replace(todo) for todo in self._todos.values()]

    def get(self, todo_id: int) -> Optional[Todo]:
        """Return a copy of the todo, or None if absent."""
        with self._lock.read():
            todo = self._todos.get(todo_id)
            return dataclasses.replace(todo) if todo is not None else None

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._todos)

    # =========================================================================
    # WRITE OPERATIONS (exclusive access)
    # =========================================================================

    def create(self, title: str) -> Todo:
        """
        Store a new todo with the next unused id.

        Title validation is the caller's job; the store accepts any string.

        Args:
            title: Task text.

        Returns:
            Copy of the created record (completed=False).
        """
        with self._lock.write():
            todo = Todo(id=self._next_id, title=title)
            self._todos[todo.id] = todo
            self._next_id += 1
            created = dataclasses.replace(todo)
        logger.debug("Created todo %d", created.id)
        return created

    def update(self, todo_id: int, title: str, completed: bool) -> Optional[Todo]:
        """
        Replace title and completed on an existing todo.

        Returns:
            Copy of the updated record, or None if the id is absent
            (in which case nothing is modified).
        """
        with self._lock.write():
            todo = self._todos.get(todo_id)
            if todo is None:
                return None
            todo.title = title
            todo.completed = completed
            return dataclasses.replace(todo)

    def delete(self, todo_id: int) -> bool:
        """Remove the todo; return whether a record was actually removed."""
        with self._lock.write():
            if todo_id not in self._todos:
                return False
            del self._todos[todo_id]
        logger.debug("Deleted todo %d", todo_id)
        return True

    @property
    def next_id(self) -> int:
        """The id the next create() will issue."""
        with self._lock.read():
            return self._next_id
