"""Nodes of the schema tree."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator, Sequence

from .datatypes import IItem

ROOT_SORT_ORDER = 0xFFFFFFFF

_CHILD_LOCK = threading.Lock()
_SUPPORT_LOCK = threading.Lock()


class SchemaNode:
    """A node of the schema FP-tree."""

    __slots__ = ("item", "parent", "children", "next_same_id", "support", "_child_index")

    def __init__(self, item: IItem, parent: SchemaNode | None = None, support: int = 0) -> None:
        self.item = item
        self.parent = parent
        self.children: list[SchemaNode] = []
        self.next_same_id: SchemaNode | None = None
        self.support = support
        self._child_index: dict[IItem, SchemaNode] = {}

    def __repr__(self) -> str:
        return (
            f"SchemaNode({self.item.iri!r}, support={self.support},"
            f" children={len(self.children)})"
        )

    def increment_support(self) -> None:
        with _SUPPORT_LOCK:
            self.support += 1

    def get_or_create_child(self, item: IItem) -> SchemaNode:
        """Return the child for ``item``, creating it if it does not exist.

        A new child is prepended to the item's chain of same-item nodes.
        """
        child = self._child_index.get(item)
        if child is not None:
            return child
        with _CHILD_LOCK:
            child = self._child_index.get(item)
            if child is None:
                child = SchemaNode(item, parent=self)
                child.next_same_id = item.traversal_pointer
                item.traversal_pointer = child
                self.children.append(child)
                self._child_index[item] = child
            return child

    def _path_to_root(self) -> Iterator[SchemaNode]:
        node: SchemaNode | None = self
        while node is not None and node.parent is not None:
            yield node
            node = node.parent

    def prefix_contains(self, property_path: Sequence[IItem]) -> bool:
        """Whether every item of ``property_path`` lies on this node's path to the root.

        ``property_path`` must be sorted by sort order.
        """
        remaining = reversed(property_path)
        wanted = next(remaining, None)
        if wanted is None:
            return True
        for node in self._path_to_root():
            if node.item.sort_order < wanted.sort_order:
                return False
            if node.item is wanted:
                wanted = next(remaining, None)
                if wanted is None:
                    return True
        return False

    def same_id_chain(self) -> Iterator[SchemaNode]:
        """This node and every node after it in the chain of nodes with the same item."""
        node: SchemaNode | None = self
        while node is not None:
            yield node
            node = node.next_same_id

    def walk(self) -> Iterator[SchemaNode]:
        """This node and all its descendants, depth first, children in order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


def new_root_node() -> SchemaNode:
    """A fresh root node with its own uniquely named item."""
    item = IItem(f"root{uuid.uuid4()}", 0, ROOT_SORT_ORDER)
    return SchemaNode(item)