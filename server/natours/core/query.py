"""Translate list-endpoint query strings into SQL filter, sort, projection and pagination."""

import operator
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional
from uuid import UUID

from sqlalchemy import JSON, Select, inspect

from .exceptions import ValidationError

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
DEFAULT_SORT = "-created_at"

OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

# price[gte] or price__gte
_BRACKET_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)\[(?P<op>[a-z]+)\]$")
_SUFFIX_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*?)__(?P<op>[a-z]+)$")

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


@dataclass(frozen=True)
class FilterClause:
    """A single ``field <op> value`` condition, value still as received."""

    field: str
    op: str
    value: str


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


def _parse_key(key: str) -> tuple[str, str]:
    for pattern in (_BRACKET_KEY, _SUFFIX_KEY):
        match = pattern.match(key)
        if match:
            op = match.group("op")
            if op not in OPERATORS:
                raise ValidationError(
                    detail=f"Unsupported filter operator '{op}'",
                    violations=[{"path": key, "message": f"Operator must be one of: {sorted(OPERATORS)}"}],
                )
            return match.group("field"), op
    return key, "eq"


def _split_list(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _parse_positive_int(name: str, raw: Optional[str], default: int, maximum: Optional[int] = None) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(
            detail=f"'{name}' must be a positive integer",
            violations=[{"path": name, "message": "must be a positive integer"}],
        ) from None
    if value < 1:
        raise ValidationError(
            detail=f"'{name}' must be a positive integer",
            violations=[{"path": name, "message": "must be a positive integer"}],
        )
    if maximum is not None:
        value = min(value, maximum)
    return value


@dataclass
class QueryFeatures:
    """
    Parsed list-query directives.

    Recognized conventions:
        ``field=value``                      equality
        ``field[gte]=v`` / ``field__gte=v``  comparison (gte, gt, lte, lt)
        ``sort=price,-ratings_average``      ascending unless prefixed by ``-``
        ``fields=name,price``                projection (``id`` always kept)
        ``page=2&limit=10``                  pagination
    """

    filters: list[FilterClause] = field(default_factory=list)
    sort: list[SortKey] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_params(cls, params: Iterable[tuple[str, str]] | Mapping[str, str]) -> "QueryFeatures":
        """Build from query items; accepts a mapping or ``(key, value)`` pairs (repeated keys allowed)."""
        items = params.items() if isinstance(params, Mapping) else params

        filters: list[FilterClause] = []
        reserved: dict[str, str] = {}
        for key, value in items:
            if key in RESERVED_PARAMS:
                reserved[key] = value
                continue
            field_name, op = _parse_key(key)
            filters.append(FilterClause(field=field_name, op=op, value=value))

        sort = []
        for part in _split_list(reserved.get("sort") or DEFAULT_SORT):
            descending = part.startswith("-")
            sort.append(SortKey(field=part.lstrip("-+"), descending=descending))

        return cls(
            filters=filters,
            sort=sort,
            fields=_split_list(reserved.get("fields")),
            page=_parse_positive_int("page", reserved.get("page"), 1),
            limit=_parse_positive_int("limit", reserved.get("limit"), DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE),
        )

    def merged(self, **overrides: Any) -> "QueryFeatures":
        """Copy with some directives replaced, used by alias routes such as top-5-tours."""
        values = {
            "filters": list(self.filters),
            "sort": list(self.sort),
            "fields": list(self.fields),
            "page": self.page,
            "limit": self.limit,
        }
        values.update(overrides)
        return QueryFeatures(**values)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, stmt: Select, model: type) -> Select:
        """Add WHERE, ORDER BY, OFFSET and LIMIT for ``model`` to ``stmt``."""
        for clause in self.filters:
            column = _column(model, clause.field, purpose="filter")
            value = _coerce(column, clause)
            if clause.op == "eq":
                stmt = stmt.where(column == value)
            else:
                stmt = stmt.where(OPERATORS[clause.op](column, value))

        order_by = []
        for key in self.sort:
            column = _column(model, key.field, purpose="sort")
            order_by.append(column.desc() if key.descending else column.asc())
        order_by.extend(pk.asc() for pk in inspect(model).primary_key)
        stmt = stmt.order_by(*order_by)

        return stmt.offset(self.offset).limit(self.limit)

    def projection(self, allowed: Iterable[str], private: Iterable[str] = ()) -> Optional[set[str]]:
        """
        Names to include when serializing, or None for everything.

        Raises:
            ValidationError: If a requested field does not exist or is private
        """
        if not self.fields:
            return None
        allowed = set(allowed) - set(private)
        unknown = [name for name in self.fields if name not in allowed]
        if unknown:
            raise ValidationError(
                detail=f"Unknown fields requested: {', '.join(unknown)}",
                violations=[{"path": "fields", "message": f"'{name}' is not a selectable field"} for name in unknown],
            )
        return set(self.fields) | {"id"}


def _column(model: type, name: str, purpose: str):
    mapper = inspect(model)
    private = getattr(model, "private_fields", frozenset())
    column_attr = mapper.column_attrs.get(name) if name not in private else None
    # Documents and lists have no ordering or comparison the database agrees on
    if column_attr is None or isinstance(column_attr.columns[0].type, JSON):
        raise ValidationError(
            detail=f"Cannot {purpose} on '{name}'",
            violations=[{"path": name, "message": f"'{name}' is not a {purpose}able field"}],
        )
    return column_attr.class_attribute


def _python_type(column) -> Optional[type]:
    try:
        return column.property.columns[0].type.python_type
    except NotImplementedError:
        return None


def _coerce(column, clause: FilterClause) -> Any:
    """Convert the raw query value to the column's Python type."""
    python_type = _python_type(column)
    raw = clause.value
    try:
        if python_type is bool:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if python_type is int:
            return int(raw)
        if python_type is float:
            return float(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if python_type is date:
            return date.fromisoformat(raw)
        if python_type is UUID:
            return UUID(raw)
        if python_type is str:
            return raw
    except ValueError:
        raise ValidationError(
            detail=f"Invalid value for '{clause.field}': {raw}",
            violations=[{"path": clause.field, "message": f"'{raw}' is not a valid {python_type.__name__}"}],
        ) from None

    raise ValidationError(
        detail=f"Cannot filter on '{clause.field}'",
        violations=[{"path": clause.field, "message": "field does not support filtering"}],
    )
