"""
TodoRepository - todo operations over a SharedDriver.
"""

import logging

from todostore.models.exceptions import StoreError
from todostore.models.todo import Todo
from todostore.shared import SharedDriver

logger = logging.getLogger(__name__)

TODO_NAMESPACE = "todo"


class TodoNotFoundError(StoreError):
    """Raised when a todo ID has no stored record."""

    def __init__(self, id: int):
        self.id = id
        super().__init__(f"Todo {id} not found")


def todo_key(id: int) -> str:
    """Key a todo is stored under, e.g. ``todo:42``."""
    return f"{TODO_NAMESPACE}:{id}"


class TodoRepository:
    """
    Create, toggle, remove and list todos.

    Writes run under the shared driver's write lock so that allocating an
    ID and storing the record, or reading and re-inserting a toggled
    record, are not interleaved with other writers.
    """

    def __init__(self, shared: SharedDriver) -> None:
        self._shared = shared

    async def create(self, title: str) -> Todo:
        title = title.strip()
        if not title:
            raise ValueError("title cannot be empty")

        async with self._shared.write() as db:
            todo = Todo.new(db.next_id(), title)
            db.insert(todo_key(todo.id), todo)

        logger.debug("Created todo %d", todo.id)
        return todo

    async def get(self, id: int) -> Todo | None:
        async with self._shared.read() as db:
            return db.get(todo_key(id), Todo)

    async def toggle(self, id: int) -> Todo:
        """Flip a todo's completion flag and store the whole record again."""
        async with self._shared.write() as db:
            key = todo_key(id)
            todo = db.get(key, Todo)
            if todo is None:
                raise TodoNotFoundError(id)
            todo.completed = not todo.completed
            db.insert(key, todo)
        return todo

    async def remove(self, id: int) -> None:
        async with self._shared.write() as db:
            db.remove(todo_key(id))

    async def list_todos(self) -> list[Todo]:
        """
        Return every todo ordered by ID.

        Keys sort as text (``todo:10`` before ``todo:2``), so the records are
        re-sorted numerically. A single unreadable record fails the whole
        listing.
        """
        todos = []
        async with self._shared.read() as db:
            for item in db.iter_prefix(f"{TODO_NAMESPACE}:", Todo):
                _, todo = item.unwrap()
                todos.append(todo)
        todos.sort(key=lambda todo: todo.id)
        return todos
