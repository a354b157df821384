"""
Backend-neutral list modifiers for document queries.

Stores that cannot push modifiers down to a remote service evaluate them in
process with ``apply_queries``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Union

DEFAULT_LIST_LIMIT = 25


@dataclass(frozen=True)
class Equal:
    attribute: str
    value: Any


@dataclass(frozen=True)
class Search:
    attribute: str
    value: str


@dataclass(frozen=True)
class OrderDesc:
    attribute: str


@dataclass(frozen=True)
class Limit:
    value: int


@dataclass(frozen=True)
class CursorAfter:
    document_id: str


QueryModifier = Union[Equal, Search, OrderDesc, Limit, CursorAfter]


class CursorNotFoundError(LookupError):
    """Raised when a cursor references a document outside the result set."""

    code = 400

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document '{document_id}' for the 'cursor' value not found.")


def _matches_equal(doc: dict, query: Equal) -> bool:
    stored = doc.get(query.attribute)
    wanted = query.value if isinstance(query.value, (list, tuple)) else [query.value]
    if isinstance(stored, list):
        return any(item in stored for item in wanted)
    return stored in wanted


def _matches_search(doc: dict, query: Search) -> bool:
    terms = (query.value or "").lower().split()
    if not terms:
        return False
    words = str(doc.get(query.attribute) or "").lower().split()
    return all(any(word.startswith(term) for word in words) for term in terms)


def apply_queries(
    documents: Iterable[dict], queries: Sequence[QueryModifier] = ()
) -> tuple[int, list[dict]]:
    """
    Filter, order and page ``documents`` (given in insertion order).

    Returns the filtered total and the requested page.
    """
    indexed = list(enumerate(documents))
    limit = DEFAULT_LIST_LIMIT
    cursor = None
    orders: list[OrderDesc] = []

    for query in queries:
        if isinstance(query, Equal):
            indexed = [(i, d) for i, d in indexed if _matches_equal(d, query)]
        elif isinstance(query, Search):
            indexed = [(i, d) for i, d in indexed if _matches_search(d, query)]
        elif isinstance(query, OrderDesc):
            orders.append(query)
        elif isinstance(query, Limit):
            limit = query.value
        elif isinstance(query, CursorAfter):
            cursor = query.document_id
        else:
            raise TypeError(f"Unsupported query modifier: {query!r}")

    if orders:
        # Newest insertion wins ties.
        indexed.sort(
            key=lambda item: tuple(
                _sort_value(item[1].get(order.attribute)) for order in orders
            )
            + (item[0],),
            reverse=True,
        )

    ordered = [doc for _, doc in indexed]
    total = len(ordered)

    if cursor is not None:
        ids = [doc.get("$id") for doc in ordered]
        if cursor not in ids:
            raise CursorNotFoundError(cursor)
        ordered = ordered[ids.index(cursor) + 1 :]

    return total, ordered[: max(limit, 0)]


def _sort_value(value: Any) -> tuple:
    # None sorts lowest; mixed types compare by their string form.
    if value is None:
        return (0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, value)
    return (2, str(value))
