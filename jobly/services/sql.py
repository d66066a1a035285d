"""Parameterized SQL fragments for partial updates and filtered searches.

Column names only ever come from the mappers and rule sets declared in this
module; caller-supplied values are always bound as ``$n`` placeholders.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class QueryBuildError(Exception):
    """Base error for fragments that cannot be built from the given input."""


class EmptyInputError(QueryBuildError):
    """Raised when a partial update carries no fields."""


class UnsupportedFieldError(QueryBuildError):
    """Raised when a partial update names a field outside the accepted set."""


class UnsupportedFilterKeyError(QueryBuildError):
    """Raised when a filter names a key the rule set does not know."""


class InvalidFilterValueError(QueryBuildError):
    """Raised when a filter value cannot be coerced to the rule's type."""


class InvalidRangeError(QueryBuildError):
    """Raised when a lower bound is greater than its upper bound."""


class _Binder:
    """Hands out ``$n`` placeholders in the order values are bound."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def __call__(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


@dataclass(slots=True, frozen=True)
class ColumnMapper:
    columns: Mapping[str, str] = field(default_factory=dict)
    fields: frozenset[str] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    def resolve(self, name: str) -> str:
        if self.fields is not None and name not in self.fields:
            raise UnsupportedFieldError(f"unsupported field: {name}")
        return self.columns.get(name, name)


@dataclass(slots=True)
class PartialUpdate:
    assignments: list[str]
    values: list[Any]

    @property
    def set_clause(self) -> str:
        return ", ".join(self.assignments)

    @property
    def next_placeholder(self) -> str:
        return f"${len(self.values) + 1}"


def build_partial_update(update: Mapping[str, Any], mapper: ColumnMapper) -> PartialUpdate:
    """Turn ``{"numEmployees": 10, "logoUrl": None}`` into SET fragments.

    Returns assignments like ``'"num_employees"=$1'`` with the values list
    aligned to the placeholders. Raises ``EmptyInputError`` for an empty
    update and ``UnsupportedFieldError`` for fields the mapper does not accept.
    """
    if not update:
        raise EmptyInputError("No data")

    columns = [mapper.resolve(name) for name in update]
    bind = _Binder()
    assignments = [f'"{column}"={bind(value)}' for column, value in zip(columns, update.values())]
    return PartialUpdate(assignments=assignments, values=bind.values)


class FilterOperator(str, Enum):
    CONTAINS = "contains"
    AT_LEAST = "at_least"
    AT_MOST = "at_most"
    POSITIVE = "positive"


def coerce_text(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidFilterValueError(f"{key} must be a string")
    return value


def coerce_count(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidFilterValueError(f"{key} must be a non-negative integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        # str.isdigit() alone also accepts superscripts, which int() rejects.
        number = int(value.strip())
    else:
        raise InvalidFilterValueError(f"{key} must be a non-negative integer")
    if number < 0:
        raise InvalidFilterValueError(f"{key} must be a non-negative integer")
    return number


def coerce_flag(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
    raise InvalidFilterValueError(f"{key} must be a boolean")


@dataclass(slots=True, frozen=True)
class FilterRule:
    column: str
    operator: FilterOperator
    coerce: Callable[[str, Any], Any]

    def render(self, value: Any, bind: Callable[[Any], str]) -> str | None:
        if self.operator is FilterOperator.CONTAINS:
            return f"{self.column} ILIKE {bind(f'%{value}%')}"
        if self.operator is FilterOperator.AT_LEAST:
            return f"{self.column} >= {bind(value)}"
        if self.operator is FilterOperator.AT_MOST:
            return f"{self.column} <= {bind(value)}"
        if self.operator is FilterOperator.POSITIVE:
            # A false flag leaves the result set unrestricted.
            return f"{self.column} > 0" if value else None
        raise ValueError(f"unknown filter operator: {self.operator}")


@dataclass(slots=True, frozen=True)
class FilterRuleSet:
    rules: Mapping[str, FilterRule]
    ranges: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))


@dataclass(slots=True)
class Predicates:
    predicates: list[str]
    values: list[Any]

    @property
    def where_clause(self) -> str:
        return " AND ".join(self.predicates) if self.predicates else "true"

    @property
    def next_placeholder(self) -> str:
        return f"${len(self.values) + 1}"


def build_predicates(filters: Mapping[str, Any], rules: FilterRuleSet) -> Predicates:
    """Turn a sparse filter into ANDed predicates with aligned values.

    Every key is coerced and every declared range is checked before any
    fragment is produced, so an error never comes with a partial result.
    """
    coerced: dict[str, Any] = {}
    for key, raw_value in filters.items():
        rule = rules.rules.get(key)
        if rule is None:
            raise UnsupportedFilterKeyError(f"unsupported filter key: {key}")
        coerced[key] = rule.coerce(key, raw_value)

    for lower_key, upper_key in rules.ranges:
        if lower_key in coerced and upper_key in coerced and coerced[lower_key] > coerced[upper_key]:
            raise InvalidRangeError(f"{lower_key} cannot be greater than {upper_key}")

    bind = _Binder()
    predicates: list[str] = []
    for key, value in coerced.items():
        predicate = rules.rules[key].render(value, bind)
        if predicate is not None:
            predicates.append(predicate)
    return Predicates(predicates=predicates, values=bind.values)


COMPANY_COLUMNS = ColumnMapper(
    {"numEmployees": "num_employees", "logoUrl": "logo_url"},
    fields=frozenset({"name", "description", "numEmployees", "logoUrl"}),
)
# company_handle is fixed once a job exists.
JOB_COLUMNS = ColumnMapper(
    {"companyHandle": "company_handle"},
    fields=frozenset({"title", "salary", "equity"}),
)
USER_COLUMNS = ColumnMapper(
    {"firstName": "first_name", "lastName": "last_name", "isAdmin": "is_admin"},
    fields=frozenset({"firstName", "lastName", "password", "email"}),
)

COMPANY_FILTER_RULES = FilterRuleSet(
    rules={
        "nameLike": FilterRule("name", FilterOperator.CONTAINS, coerce_text),
        "minEmployees": FilterRule("num_employees", FilterOperator.AT_LEAST, coerce_count),
        "maxEmployees": FilterRule("num_employees", FilterOperator.AT_MOST, coerce_count),
    },
    ranges=(("minEmployees", "maxEmployees"),),
)
JOB_FILTER_RULES = FilterRuleSet(
    rules={
        "title": FilterRule("title", FilterOperator.CONTAINS, coerce_text),
        "minSalary": FilterRule("salary", FilterOperator.AT_LEAST, coerce_count),
        "hasEquity": FilterRule("equity", FilterOperator.POSITIVE, coerce_flag),
    },
)
