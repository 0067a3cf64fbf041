"""
Translate native ``where`` predicates into SQLAlchemy filter expressions.

``build_where`` walks the predicate dict against a mapped model: ``AND``,
``OR`` and ``NOT`` become ``and_``/``or_``/``not_``, column keys compile
their operator dicts, and relationship keys become ``.any()`` (list
relations: ``some``/``none``/``every``) or ``.has()`` (to-one nesting).
Insensitive ``contains`` compiles to ``ILIKE``.

Operands for ``DateTime``/``Date`` columns are bound as Python datetimes:
ISO strings are parsed and timezones aligned with the column (naive means
UTC), so comparisons never fall back to string ordering.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, inspect, not_, or_, true

from ...exceptions import StoreError
from ...filters.utils import align_timezone, parse_iso

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.orm import RelationshipProperty


def build_where(
    model: type[Any], where: Mapping[str, Any] | None
) -> ColumnElement[bool] | None:
    """
    Build a filter expression for ``model`` from ``where``.

    Returns ``None`` for an empty predicate (no filtering).

    Raises:
        StoreError: If the predicate names an unknown attribute or operator.
    """
    if not where:
        return None
    clauses = [_compile_key(model, key, cond) for key, cond in where.items()]
    return clauses[0] if len(clauses) == 1 else and_(*clauses)


def _compile_key(model: type[Any], key: str, condition: Any) -> ColumnElement[bool]:
    if key in ("AND", "OR", "NOT"):
        parts = condition if isinstance(condition, (list, tuple)) else [condition]
        inner = [build_where(model, part) for part in parts]
        compiled = [c if c is not None else true() for c in inner]
        if key == "OR":
            return or_(*compiled)
        combined = and_(*compiled) if compiled else true()
        return combined if key == "AND" else not_(combined)

    mapper = inspect(model)
    if key in mapper.relationships:
        return _compile_relation(model, mapper.relationships[key], condition)
    if key not in mapper.column_attrs:
        raise StoreError(f"{model.__name__} has no attribute '{key}'")

    column = getattr(model, key)
    if condition is None:
        return cast("ColumnElement[bool]", column.is_(None))
    if isinstance(condition, Mapping):
        return _compile_ops(column, condition, insensitive=False)
    return cast("ColumnElement[bool]", column == _bind(column, condition))


def _compile_relation(
    model: type[Any], prop: RelationshipProperty[Any], condition: Any
) -> ColumnElement[bool]:
    attr = getattr(model, prop.key)
    target = prop.mapper.class_

    if prop.uselist:
        if not isinstance(condition, Mapping):
            raise StoreError(
                f"List relation '{prop.key}' needs some/none/every, got {condition!r}"
            )
        clauses = []
        for quantifier, sub in condition.items():
            inner = build_where(target, sub)
            if quantifier == "some":
                clauses.append(attr.any(inner) if inner is not None else attr.any())
            elif quantifier == "none":
                clauses.append(~(attr.any(inner) if inner is not None else attr.any()))
            elif quantifier == "every":
                clauses.append(
                    ~attr.any(not_(inner)) if inner is not None else true()
                )
            else:
                raise StoreError(
                    f"Unknown list-relation operator '{quantifier}' on '{prop.key}'"
                )
        return and_(*clauses)

    if condition is None:
        return cast("ColumnElement[bool]", ~attr.has())
    if not isinstance(condition, Mapping):
        raise StoreError(f"Invalid condition for relation '{prop.key}'")

    clauses = []
    rest: dict[str, Any] = {}
    for op, sub in condition.items():
        if op == "is":
            clauses.append(~attr.has() if sub is None else _has(attr, target, sub))
        elif op == "isNot":
            clauses.append(attr.has() if sub is None else ~_has(attr, target, sub))
        elif op == "not" and sub is None:
            clauses.append(attr.has())
        else:
            rest[op] = sub
    if rest:
        clauses.append(_has(attr, target, rest))
    return and_(*clauses)


def _has(attr: Any, target: type[Any], where: Mapping[str, Any]) -> Any:
    inner = build_where(target, where)
    return attr.has(inner) if inner is not None else attr.has()


def _compile_ops(
    column: Any, ops: Mapping[str, Any], *, insensitive: bool
) -> ColumnElement[bool]:
    insensitive = insensitive or ops.get("mode") == "insensitive"
    clauses = []
    for op, operand in ops.items():
        if op == "mode":
            continue
        if op == "not":
            if operand is None:
                clauses.append(column.is_not(None))
            elif isinstance(operand, Mapping):
                inner = _compile_ops(column, operand, insensitive=insensitive)
                clauses.append(not_(inner))
            else:
                clauses.append(column != _bind(column, operand))
            continue
        clauses.append(_compile_op(column, op, operand, insensitive))
    return and_(*clauses) if clauses else true()


def _compile_op(column: Any, op: str, operand: Any, insensitive: bool) -> Any:
    if op in _BOUND_OPERATORS:
        operand = _bind(column, operand)
    if op == "equals":
        if operand is None:
            return column.is_(None)
        if insensitive and isinstance(operand, str):
            return column.ilike(_escape_like(operand), escape="\\")
        return column == operand
    if op == "in":
        return column.in_(list(operand))
    if op == "notIn":
        return column.not_in(list(operand))
    if op == "lt":
        return column < operand
    if op == "lte":
        return column <= operand
    if op == "gt":
        return column > operand
    if op == "gte":
        return column >= operand
    if op == "contains":
        if insensitive:
            return column.icontains(operand, autoescape=True)
        return column.contains(operand, autoescape=True)
    if op == "startsWith":
        if insensitive:
            return column.istartswith(operand, autoescape=True)
        return column.startswith(operand, autoescape=True)
    if op == "endsWith":
        if insensitive:
            return column.iendswith(operand, autoescape=True)
        return column.endswith(operand, autoescape=True)
    raise StoreError(f"Unsupported predicate operator '{op}'")


_BOUND_OPERATORS = frozenset({"equals", "in", "notIn", "lt", "lte", "gt", "gte"})


def _temporal_type(column: Any) -> type[date] | None:
    try:
        python_type = column.type.python_type
    except (AttributeError, NotImplementedError):
        return None
    if isinstance(python_type, type) and issubclass(python_type, date):
        return python_type
    return None


def _bind(column: Any, operand: Any) -> Any:
    kind = _temporal_type(column)
    if kind is None or operand is None:
        return operand
    if isinstance(operand, (list, tuple)):
        return [_bind(column, item) for item in operand]
    if isinstance(operand, str):
        try:
            operand = parse_iso(operand, kind)
        except ValueError as exc:
            raise StoreError(
                f"Invalid {kind.__name__} value {operand!r} for '{column.key}'"
            ) from exc
    if isinstance(operand, datetime) and issubclass(kind, datetime):
        aware = bool(getattr(column.type, "timezone", False))
        return align_timezone(operand, aware)
    return operand


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
