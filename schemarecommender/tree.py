"""The schema tree: building, support queries and binary storage."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Sequence
from typing import BinaryIO

from .datatypes import IItem, PropMap, print_mem_usage, sort_items
from .node import SchemaNode, new_root_node
from .transactions import Transaction, TransactionSource

log = logging.getLogger(__name__)

MAX_SUPPORT = 0xFFFFFFFF
_LOG_EVERY = 10000

_MAGIC = b"SCHT"
_VERSION = 1
_OPTION_TYPED = 0x01
_KNOWN_OPTIONS = _OPTION_TYPED


def _write_varint(out: bytearray, value: int) -> None:
    if value < 0:
        raise ValueError(f"cannot encode negative value {value}")
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)


def _write_string(out: bytearray, text: str) -> None:
    encoded = text.encode("utf-8")
    _write_varint(out, len(encoded))
    out.extend(encoded)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise ValueError("truncated schema tree data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def varint(self) -> int:
        result = 0
        shift = 0
        while True:
            if self._pos >= len(self._data):
                raise ValueError("truncated schema tree data")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if byte < 0x80:
                return result
            shift += 7

    def string(self) -> str:
        return self.take(self.varint()).decode("utf-8")

    @property
    def exhausted(self) -> bool:
        return self._pos == len(self._data)


class SchemaTree:
    """An FP-tree of property sets, possibly holding types as ``t#`` properties."""

    def __init__(self, typed: bool = False, min_sup: int = 0) -> None:
        self.prop_map = PropMap()
        self.root: SchemaNode = new_root_node()
        self.root.item.traversal_pointer = self.root
        self.min_sup = max(min_sup, 1)
        self.typed = typed

    def insert(self, property_set: Iterable[IItem]) -> None:
        """Insert the properties of one subject into the tree."""
        properties = list(property_set)
        sort_items(properties)
        node = self.root
        node.increment_support()
        for prop in properties:
            node = node.get_or_create_child(prop)
            node.increment_support()

    def support(self, properties: Sequence[IItem]) -> int:
        """Number of subjects that have all the given properties."""
        if not properties:
            return self.root.support
        ordered = list(properties)
        sort_items(ordered)
        start = ordered[-1].traversal_pointer
        if start is None:
            return 0
        return sum(node.support for node in start.same_id_chain() if node.prefix_contains(ordered))

    def all_properties(self) -> list[str]:
        return [item.iri for item in self.prop_map.list_properties()]

    def two_pass(self, source: TransactionSource) -> None:
        """Build the tree by reading the source twice: counting, then inserting."""
        self._first_pass(source())
        self._update_sort_order()
        self._second_pass(source())

    def _first_pass(self, transactions: Iterator[Transaction]) -> None:
        item_count = 0
        for transaction in transactions:
            item_count += 1
            if item_count % _LOG_EVERY == 0:
                log.info("Processed %d entities", item_count)
            for name in transaction:
                self.prop_map.get_or_create(name).increment()
        prop_count, type_count = self.prop_map.count()
        log.info("%d subjects, %d properties, %d types", item_count, prop_count, type_count)
        log.info("First Pass done")
        print_mem_usage()
        if item_count > MAX_SUPPORT:
            raise OverflowError(
                f"Processed {item_count} subjects but the tree can only track support"
                f" up to {MAX_SUPPORT}"
            )

    def _second_pass(self, transactions: Iterator[Transaction]) -> None:
        log.info("Start of the second pass")
        item_count = 0
        for transaction in transactions:
            item_count += 1
            if item_count % _LOG_EVERY == 0:
                log.info("Processed %d entities", item_count)
            properties = []
            for name in transaction:
                item = self.prop_map.get_if_existing(name)
                if item is None:
                    raise ValueError(
                        f"During the second pass, found the predicate {name!r} which was"
                        " not seen during the first pass"
                    )
                properties.append(item)
            self.insert(properties)
        log.info("Second Pass ended")
        print_mem_usage()

    def _update_sort_order(self) -> None:
        """Order items by descending support, ties lexicographically.

        Must only be called on an empty tree.
        """
        items = self.prop_map.list_properties()
        items.sort(key=lambda item: (-item.total_count, item.iri))
        for position, item in enumerate(items):
            item.sort_order = position

    def save(self, stream: BinaryIO) -> None:
        """Write the tree in its binary format to ``stream``."""
        started = time.perf_counter()
        items = self.prop_map.list_properties()
        ordered: list[IItem | None] = [None] * (len(items) + 1)
        for item in items:
            if not 0 <= item.sort_order < len(items) or ordered[item.sort_order] is not None:
                raise ValueError(f"inconsistent sort order for {item.iri!r}")
            ordered[item.sort_order] = item
        root_index = len(items)
        ordered[root_index] = self.root.item

        out = bytearray(_MAGIC)
        out.append(_VERSION)
        out.append(_OPTION_TYPED if self.typed else 0)
        _write_varint(out, self.min_sup)
        _write_varint(out, len(ordered))
        for item in ordered:
            assert item is not None
            _write_string(out, item.iri)
            _write_varint(out, item.total_count)
            _write_varint(out, item.sort_order)

        for node in self.root.walk():
            index = root_index if node is self.root else node.item.sort_order
            _write_varint(out, index)
            _write_varint(out, node.support)
            _write_varint(out, len(node.children))

        stream.write(bytes(out))
        log.info("done (%.3fs)", time.perf_counter() - started)

    @classmethod
    def load(cls, stream: BinaryIO) -> SchemaTree:
        """Read a tree written by :meth:`save`."""
        log.info("Start loading schema")
        started = time.perf_counter()
        reader = _Reader(stream.read())
        if reader.take(len(_MAGIC)) != _MAGIC:
            raise ValueError("not a schema tree file")
        version = reader.take(1)[0]
        if version != _VERSION:
            raise ValueError(f"unsupported schema tree format version {version}")
        options = reader.take(1)[0]
        if options & ~_KNOWN_OPTIONS:
            raise ValueError("Unknown option in schema tree file")

        tree = cls(False, 1)
        tree.typed = bool(options & _OPTION_TYPED)
        tree.min_sup = reader.varint()

        item_total = reader.varint()
        if item_total < 1:
            raise ValueError("schema tree file holds no root item")
        props: list[IItem] = []
        for _ in range(item_total - 1):
            iri = reader.string()
            total_count = reader.varint()
            sort_order = reader.varint()
            item = tree.prop_map.get_or_create(iri)
            item.total_count = total_count
            if item.sort_order != sort_order:
                raise ValueError("The sort order does not seem to be consistent.")
            props.append(item)
        log.info("%d properties...", len(props))
        root_iri = reader.string()
        root_item = IItem(root_iri, reader.varint(), reader.varint())
        props.append(root_item)

        log.info("decoding tree...")
        reader.varint()  # index of the root item, always the last one
        root = SchemaNode(root_item, support=reader.varint())
        root_item.traversal_pointer = root
        stack = [(root, reader.varint())]
        while stack:
            node, remaining = stack[-1]
            if remaining == 0:
                stack.pop()
                continue
            stack[-1] = (node, remaining - 1)
            index = reader.varint()
            if index >= len(props):
                raise ValueError(f"node refers to unknown item {index}")
            support = reader.varint()
            child_count = reader.varint()
            known_children = len(node.children)
            child = node.get_or_create_child(props[index])
            if len(node.children) == known_children:
                raise ValueError("node holds the same item twice among its children")
            child.support = support
            stack.append((child, child_count))
        if not reader.exhausted:
            raise ValueError("trailing data after the schema tree")
        tree.root = root

        log.info("Time for decoding %.3fs", time.perf_counter() - started)
        return tree


def create(source: TransactionSource) -> SchemaTree:
    """Build a typed schema tree from the transactions of ``source``."""
    tree = SchemaTree(True, 0)
    tree.two_pass(source)
    print_mem_usage()
    return tree