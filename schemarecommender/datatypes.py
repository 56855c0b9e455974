"""Property items, the property map and helpers on lists of items."""

from __future__ import annotations

import gc
import logging
import sys
import threading
import tracemalloc
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

try:
    import resource
except ImportError:  # not available on every platform
    resource = None

if TYPE_CHECKING:
    from .node import SchemaNode

log = logging.getLogger(__name__)

TYPE_PREFIX = "t#"

_COUNT_LOCK = threading.Lock()


@dataclass(eq=False)
class IItem:
    """A property or type IRI with its support and its sort order.

    Items compare and hash by identity.
    """

    iri: str
    total_count: int = 0
    sort_order: int = 0
    traversal_pointer: SchemaNode | None = field(default=None, repr=False)

    def increment(self) -> None:
        with _COUNT_LOCK:
            self.total_count += 1

    def is_type(self) -> bool:
        return self.iri.startswith(TYPE_PREFIX)

    def is_prop(self) -> bool:
        return not self.iri.startswith(TYPE_PREFIX)

    def __str__(self) -> str:
        return f"{self.total_count}x\t{self.iri} ({self.sort_order})"


class PropMap:
    """Thread-safe mapping from IRI to its item."""

    def __init__(self) -> None:
        self._items: dict[str, IItem] = {}
        self._lock = threading.Lock()

    def get_or_create(self, iri: str) -> IItem:
        """Return the item for ``iri``, creating it if it does not exist yet."""
        item = self._items.get(iri)
        if item is not None:
            return item
        with self._lock:
            item = self._items.get(iri)
            if item is None:
                item = IItem(iri, 0, len(self._items))
                self._items[iri] = item
            return item

    def get_if_existing(self, iri: str) -> IItem | None:
        return self._items.get(iri)

    def count(self) -> tuple[int, int]:
        """Number of properties and of types; the root item is not counted."""
        items = self.list_properties()
        types = sum(1 for item in items if item.is_type())
        return len(items) - types - 1, types

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, iri: object) -> bool:
        return iri in self._items

    def list_properties(self) -> list[IItem]:
        with self._lock:
            return list(self._items.values())


def sort_items(items: list[IItem]) -> None:
    """Sort items in place by sort order, i.e. descending support."""
    items.sort(key=lambda item: item.sort_order)


def sort_and_deduplicate(items: Iterable[IItem]) -> list[IItem]:
    """Return the items sorted by sort order with duplicates removed."""
    unique = list({id(item): item for item in items}.values())
    sort_items(unique)
    return unique


def to_set(items: Iterable[IItem]) -> set[IItem]:
    return set(items)


def format_items(items: Iterable[IItem]) -> str:
    return "[ " + "".join(f"{item.iri} " for item in items) + "]"


def _to_mib(size: float) -> float:
    return size / 1024 / 1024


def _max_rss_bytes() -> int:
    if resource is None:
        return 0
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return usage if sys.platform == "darwin" else usage * 1024


def print_mem_usage() -> dict[str, float]:
    """Log the current and peak traced memory, the process size and GC runs."""
    current, peak = tracemalloc.get_traced_memory()
    stats = {
        "alloc": _to_mib(current),
        "total_alloc": _to_mib(peak),
        "sys": _to_mib(_max_rss_bytes()),
        "num_gc": float(sum(generation["collections"] for generation in gc.get_stats())),
    }
    log.info("Alloc = %.2f MiB", stats["alloc"])
    log.info("\tTotalAlloc = %.2f MiB", stats["total_alloc"])
    log.info("\tSys = %.2f MiB", stats["sys"])
    log.info("\tNumGC = %d", int(stats["num_gc"]))
    return stats