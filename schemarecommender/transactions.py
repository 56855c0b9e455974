"""Sources of transactions: one list of property names per entity."""

from __future__ import annotations

import bz2
import gzip
import json
import logging
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import IO, Any

log = logging.getLogger(__name__)

TYPE_PREFIX = "t#"
TYPE_PROPERTY = "P31"

Transaction = list[str]
TransactionSource = Callable[[], Iterator[Transaction]]

_ENTITY_PREFIXES = {"item": "Q", "property": "P", "lexeme": "L"}


def _entity_id(value: dict[str, Any]) -> str:
    if "id" in value:
        return value["id"]
    prefix = _ENTITY_PREFIXES.get(value.get("entity-type", "item"), "Q")
    return f"{prefix}{value['numeric-id']}"


def entity_transaction(entity: dict[str, Any]) -> Transaction:
    """Turn a Wikidata entity (decoded JSON) into a transaction.

    The transaction holds every claimed property, followed by a ``t#<id>``
    entry for each value of the instance-of property.
    """
    claims = entity.get("claims") or {}
    transaction = list(claims)
    for statement in claims.get(TYPE_PROPERTY, ()):
        snak = statement.get("mainsnak", {})
        if snak.get("snaktype") != "value":
            log.info("Found a type statement without a value: %s", statement)
            continue
        datavalue = snak.get("datavalue")
        if datavalue is None:
            raise ValueError(
                "Found a main snak with type value, while it does not have a value."
                " This is an error in the dump."
            )
        if datavalue.get("type") != "wikibase-entityid":
            log.warning("unexpected type %s", datavalue.get("type"))
            continue
        transaction.append(TYPE_PREFIX + _entity_id(datavalue["value"]))
    return transaction


def _open_dump(path: Path) -> IO[str]:
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    if path.suffix == ".bz2":
        return bz2.open(path, "rt", encoding="utf-8")
    return open(path, encoding="utf-8")


def _iter_dump_entities(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    for line in lines:
        line = line.strip()
        if line in ("", "[", "]"):
            continue
        yield json.loads(line.removesuffix(","))


def wikidata_dump_transaction_source(path: str | Path) -> TransactionSource:
    """Source reading a Wikidata JSON dump (plain, gzip or bzip2 compressed)."""
    dump_path = Path(path)

    def source() -> Iterator[Transaction]:
        with _open_dump(dump_path) as stream:
            for entity in _iter_dump_entities(stream):
                yield entity_transaction(entity)

    return source


def simple_reader_transaction_source(opener: Callable[[], IO[str]]) -> TransactionSource:
    """Source reading one whitespace separated transaction per line.

    ``opener`` is called anew on every pass, since building a tree reads the
    transactions twice.
    """

    def source() -> Iterator[Transaction]:
        with opener() as stream:
            for line in stream:
                names = line.split()
                if names:
                    yield names

    return source


def simple_file_transaction_source(path: str | Path) -> TransactionSource:
    """Source reading one whitespace separated transaction per line of a file."""
    file_path = Path(path)
    return simple_reader_transaction_source(lambda: open(file_path, encoding="utf-8"))