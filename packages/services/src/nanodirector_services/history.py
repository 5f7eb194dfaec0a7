"""Append-only ledger of remaster batches."""

from typing import Iterator

from nanodirector_core_schemas import HistoryItem

from .exceptions import NotFoundError


class HistoryLedger:
    """Newest-first list of immutable history entries.

    Wraps the list held by the project state; entries are only ever
    prepended.
    """

    def __init__(self, items: list[HistoryItem]):
        self._items = items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[HistoryItem]:
        return iter(tuple(self._items))

    @property
    def entries(self) -> tuple[HistoryItem, ...]:
        return tuple(self._items)

    def append(self, item: HistoryItem) -> None:
        """Record a new entry ahead of all existing ones."""
        self._items.insert(0, item)

    def find(self, entry_id: str) -> HistoryItem:
        """Get an entry by id.

        Raises:
            NotFoundError: If no entry has that id
        """
        for item in self._items:
            if item.id == entry_id:
                return item
        raise NotFoundError("History entry", entry_id)
