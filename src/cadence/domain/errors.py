"""Exceptions raised across the Cadence engine."""


class CadenceError(Exception):
    """Base class for engine errors."""


class PersistenceError(CadenceError):
    """A repository call failed at the transport or protocol level."""


class UnknownItemError(CadenceError, KeyError):
    """An operation referenced an item id that is not in the collection."""

    def __init__(self, item_id: str):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"Unknown item: {self.item_id}"
