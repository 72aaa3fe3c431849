"""Query specs, pagination helpers and the in-process query interpreter.

A QuerySpec is a query template plus named parameters, e.g.

    SELECT * FROM c WHERE c.userId = @userId AND c.type = @type
    ORDER BY c.date DESC OFFSET @offset LIMIT @limit

Services build specs; storage backends execute them. ``evaluate`` is the one
interpreter used by every in-memory container and by the local search index.
"""

import base64
import binascii
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from .models import format_timestamp


DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0

# Large page used where a caller needs "everything" in a range.
UNBOUNDED_LIMIT = 1000

OPERATORS = ("==", ">=", "<=", "array_contains_any")


def to_query_value(value: Any) -> Any:
    """Convert a Python value to the representation stored in documents."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set)):
        return [to_query_value(v) for v in value]
    return value


@dataclass(frozen=True)
class Condition:
    """A single ``c.<field> <op> @<param>`` predicate."""

    field: str
    op: str
    param: str

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def matches(self, document: dict[str, Any], parameters: dict[str, Any]) -> bool:
        actual = document.get(self.field)
        expected = parameters[self.param]

        if self.op == "==":
            return actual == expected
        if self.op == "array_contains_any":
            return isinstance(actual, list) and any(v in actual for v in expected)

        if actual is None:
            return False
        try:
            if self.op == ">=":
                return actual >= expected
            return actual <= expected
        except TypeError:
            return False

    def render(self) -> str:
        if self.op == "array_contains_any":
            return f"ARRAY_CONTAINS_ANY(c.{self.field}, {self.param})"
        op = "=" if self.op == "==" else self.op
        return f"c.{self.field} {op} {self.param}"


@dataclass
class QuerySpec:
    """Conditions joined with AND, optional descending sort, optional paging.

    Attributes:
        conditions: Predicates that must all hold
        parameters: Named parameter values, including @offset/@limit when paged
        order_by: Field to sort by, descending; ties broken by id descending
        count: Return ``[number_of_matches]`` instead of documents
    """

    conditions: list[Condition] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    order_by: str | None = None
    count: bool = False

    def where(self, field_name: str, op: str, param: str, value: Any) -> "QuerySpec":
        """Add a predicate and bind its parameter. Returns self for chaining."""
        self.conditions.append(Condition(field_name, op, param))
        self.parameters[param] = to_query_value(value)
        return self

    def counting(self) -> "QuerySpec":
        """The COUNT(1) variant of this predicate, without sorting or paging."""
        parameters = {k: v for k, v in self.parameters.items() if k not in ("@offset", "@limit")}
        return replace(self, conditions=list(self.conditions), parameters=parameters, order_by=None, count=True)

    def page(self, order_by: str, limit: int, offset: int) -> "QuerySpec":
        """The sorted, OFFSET/LIMIT variant of this predicate."""
        parameters = dict(self.parameters)
        parameters["@offset"] = offset
        parameters["@limit"] = limit
        return replace(self, conditions=list(self.conditions), parameters=parameters, order_by=order_by, count=False)

    @property
    def offset(self) -> int | None:
        return self.parameters.get("@offset")

    @property
    def limit(self) -> int | None:
        return self.parameters.get("@limit")

    @property
    def text(self) -> str:
        """SQL-like rendering of the template, for logs."""
        select = "SELECT VALUE COUNT(1) FROM c" if self.count else "SELECT * FROM c"
        parts = [select]
        if self.conditions:
            parts.append("WHERE " + " AND ".join(c.render() for c in self.conditions))
        if self.order_by:
            parts.append(f"ORDER BY c.{self.order_by} DESC")
        if self.offset is not None:
            parts.append("OFFSET @offset")
        if self.limit is not None:
            parts.append("LIMIT @limit")
        return " ".join(parts)


def owner_query(owner_field: str, owner_id: str) -> QuerySpec:
    """Start a spec with the mandatory ownership predicate."""
    return QuerySpec().where(owner_field, "==", f"@{owner_field}", owner_id)


def _sort_key(value: Any) -> tuple[bool, Any]:
    # Missing values sort after everything else in descending order
    return (value is not None, value)


def evaluate(spec: QuerySpec, documents: Iterable[dict[str, Any]]) -> list[Any]:
    """Run a query spec against in-memory documents.

    Args:
        spec: The query to run
        documents: Candidate documents (not mutated)

    Returns:
        ``[count]`` for counting specs, otherwise the matching documents,
        sorted and sliced as requested
    """
    matched = [
        doc for doc in documents
        if all(condition.matches(doc, spec.parameters) for condition in spec.conditions)
    ]

    if spec.count:
        return [len(matched)]

    if spec.order_by:
        order_field = spec.order_by
        matched.sort(
            key=lambda doc: (_sort_key(doc.get(order_field)), _sort_key(doc.get("id"))),
            reverse=True,
        )

    offset = spec.offset or 0
    if offset:
        matched = matched[offset:]
    if spec.limit is not None:
        matched = matched[: spec.limit]
    return matched


# ==================== Cursors ====================


def encode_cursor(offset: int) -> str:
    """Opaque cursor for the given offset."""
    return base64.b64encode(str(offset).encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> int:
    """Offset encoded in a cursor, or 0 when the cursor is malformed."""
    try:
        offset = int(base64.b64decode(cursor, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return 0
    return max(offset, 0)


def resolve_offset(offset_or_cursor: int | str | None) -> int:
    """Accept either a numeric offset or a cursor string."""
    if offset_or_cursor is None:
        return DEFAULT_OFFSET
    if isinstance(offset_or_cursor, str):
        return decode_cursor(offset_or_cursor)
    return offset_or_cursor


def next_cursor(offset: int, limit: int, returned: int, total: int) -> str | None:
    """Cursor for the following page, or None when this page is the last."""
    if offset + returned < total:
        return encode_cursor(offset + limit)
    return None
