"""
Todo record stored by the application.
"""

from dataclasses import dataclass


@dataclass
class Todo:
    """
    A single todo item.

    Attributes:
        id: Identifier allocated from the store's ID generator.
        title: Text entered by the user.
        completed: Whether the item has been ticked off.
    """

    id: int
    title: str
    completed: bool = False

    @classmethod
    def new(cls, id: int, title: str) -> "Todo":
        return cls(id=id, title=title, completed=False)
