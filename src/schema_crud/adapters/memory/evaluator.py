"""
In-memory evaluation of native ``where`` predicates.

Understands the predicate shape produced by the filter compiler plus the
usual hand-written extras:

* combinators ``AND`` / ``OR`` / ``NOT``
* scalar operators ``equals``, ``not``, ``in``, ``notIn``, ``lt``, ``lte``,
  ``gt``, ``gte``, ``contains``, ``startsWith``, ``endsWith`` (with
  ``mode: "insensitive"``)
* list-relation quantifiers ``some`` / ``none`` / ``every``
* to-one relation ``is`` / ``isNot`` and direct nested filters
* ``{field: None}`` and ``{field: {"not": None}}`` null checks

Comparisons against a ``None`` record value are false, matching SQL
three-valued logic.  When the record holds a datetime or date, ISO string
operands are parsed and naive values are taken as UTC, so naive and aware
datetimes compare.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any

from ...exceptions import StoreError
from ...filters.utils import align_timezone, parse_iso

if TYPE_CHECKING:
    from ...schema.descriptors import EntityDescriptor, FieldDescriptor
    from ...schema.registry import SchemaRegistry

ScalarOperator = Callable[[Any, Any, bool], bool]


def _fold(value: Any, insensitive: bool) -> Any:
    if insensitive and isinstance(value, str):
        return value.casefold()
    return value


def _equals(value: Any, operand: Any, insensitive: bool) -> bool:
    if operand is None:
        return value is None
    return bool(_fold(value, insensitive) == _fold(operand, insensitive))


def _in(value: Any, operand: Any, insensitive: bool) -> bool:
    return any(_equals(value, item, insensitive) for item in operand)


def _not_in(value: Any, operand: Any, insensitive: bool) -> bool:
    return not _in(value, operand, insensitive)


def _ordered(compare: Callable[[Any, Any], bool]) -> ScalarOperator:
    def evaluate(value: Any, operand: Any, insensitive: bool) -> bool:
        try:
            return bool(
                compare(_fold(value, insensitive), _fold(operand, insensitive))
            )
        except TypeError as exc:
            raise StoreError(f"Cannot order {value!r} against {operand!r}") from exc

    return evaluate


def _text(compare: Callable[[str, str], bool]) -> ScalarOperator:
    def evaluate(value: Any, operand: Any, insensitive: bool) -> bool:
        if not isinstance(value, str):
            return False
        return compare(_fold(value, insensitive), _fold(str(operand), insensitive))

    return evaluate


DEFAULT_OPERATORS: dict[str, ScalarOperator] = {
    "equals": _equals,
    "in": _in,
    "notIn": _not_in,
    "lt": _ordered(lambda a, b: a < b),
    "lte": _ordered(lambda a, b: a <= b),
    "gt": _ordered(lambda a, b: a > b),
    "gte": _ordered(lambda a, b: a >= b),
    "contains": _text(lambda a, b: b in a),
    "startsWith": _text(lambda a, b: a.startswith(b)),
    "endsWith": _text(lambda a, b: a.endswith(b)),
}


class PredicateEvaluator:
    """Evaluates ``where`` dicts against plain record dicts."""

    def __init__(
        self,
        schema: SchemaRegistry,
        operators: Mapping[str, ScalarOperator] | None = None,
    ) -> None:
        self._schema = schema
        self._operators = dict(operators or DEFAULT_OPERATORS)

    def register(self, name: str, operator: ScalarOperator) -> None:
        self._operators[name] = operator

    def matches(
        self,
        entity: EntityDescriptor,
        record: Mapping[str, Any],
        where: Mapping[str, Any] | None,
    ) -> bool:
        if not where:
            return True
        return all(
            self._matches_key(entity, record, key, condition)
            for key, condition in where.items()
        )

    # -- combinators and fields ---------------------------------------------

    def _matches_key(
        self,
        entity: EntityDescriptor,
        record: Mapping[str, Any],
        key: str,
        condition: Any,
    ) -> bool:
        if key == "AND":
            return all(self.matches(entity, record, c) for c in _as_list(condition))
        if key == "OR":
            return any(self.matches(entity, record, c) for c in _as_list(condition))
        if key == "NOT":
            return not all(
                self.matches(entity, record, c) for c in _as_list(condition)
            )

        field = entity.get_field(key)
        if field is None:
            raise StoreError(f"Unknown field '{key}' in predicate for {entity.name}")
        value = record.get(key)
        if field.is_relation:
            return self._matches_relation(field, value, condition)
        if condition is None:
            return value is None
        if isinstance(condition, Mapping):
            return self._matches_scalar(value, condition, insensitive=False)
        return _equals(value, _coerce(value, condition), False)

    def _matches_relation(
        self, field: FieldDescriptor, value: Any, condition: Any
    ) -> bool:
        target = self._schema.get_entity(field.target or "")
        if field.is_list:
            related = [r for r in (value or []) if isinstance(r, Mapping)]
            if not isinstance(condition, Mapping):
                raise StoreError(
                    f"List relation '{field.name}' needs some/none/every, "
                    f"got {condition!r}"
                )
            result = True
            for quantifier, sub in condition.items():
                hits = [self.matches(target, r, sub) for r in related]
                if quantifier == "some":
                    result = result and any(hits)
                elif quantifier == "none":
                    result = result and not any(hits)
                elif quantifier == "every":
                    result = result and all(hits)
                else:
                    raise StoreError(
                        f"Unknown list-relation operator '{quantifier}' "
                        f"on '{field.name}'"
                    )
            return result

        if condition is None:
            return value is None
        if not isinstance(condition, Mapping):
            raise StoreError(f"Invalid condition for relation '{field.name}'")
        result = True
        rest: dict[str, Any] = {}
        for op, sub in condition.items():
            if op == "is":
                result = result and (
                    value is None if sub is None else self._nested(target, value, sub)
                )
            elif op == "isNot":
                result = result and (
                    value is not None
                    if sub is None
                    else not self._nested(target, value, sub)
                )
            elif op == "not" and sub is None:
                result = result and value is not None
            else:
                rest[op] = sub
        if rest:
            result = result and self._nested(target, value, rest)
        return result

    def _nested(
        self, target: EntityDescriptor, value: Any, where: Mapping[str, Any]
    ) -> bool:
        if not isinstance(value, Mapping):
            return False
        return self.matches(target, value, where)

    # -- scalar operators ----------------------------------------------------

    def _matches_scalar(
        self, value: Any, ops: Mapping[str, Any], *, insensitive: bool
    ) -> bool:
        insensitive = insensitive or ops.get("mode") == "insensitive"
        for op, operand in ops.items():
            if op == "mode":
                continue
            if op == "not":
                if operand is None:
                    matched = value is not None
                elif value is None:
                    matched = False
                elif isinstance(operand, Mapping):
                    matched = not self._matches_scalar(
                        value, operand, insensitive=insensitive
                    )
                else:
                    matched = not _equals(value, _coerce(value, operand), insensitive)
            else:
                operator = self._operators.get(op)
                if operator is None:
                    raise StoreError(f"Unsupported predicate operator '{op}'")
                if value is None and not (op == "equals" and operand is None):
                    matched = False
                else:
                    matched = operator(value, _coerce(value, operand), insensitive)
            if not matched:
                return False
        return True


def _as_list(condition: Any) -> list[Any]:
    if isinstance(condition, (list, tuple)):
        return list(condition)
    return [condition]


def _coerce(value: Any, operand: Any) -> Any:
    if isinstance(operand, (list, tuple)):
        return [_coerce(value, item) for item in operand]
    if not isinstance(value, date):
        return operand
    kind = datetime if isinstance(value, datetime) else date
    if isinstance(operand, str):
        try:
            operand = parse_iso(operand, kind)
        except ValueError:
            return operand
    if kind is date:
        return operand.date() if isinstance(operand, datetime) else operand
    if isinstance(operand, datetime):
        return align_timezone(operand, value.tzinfo is not None)
    if isinstance(operand, date):
        combined = datetime.combine(operand, time.min)
        return align_timezone(combined, value.tzinfo is not None)
    return operand
