"""
Compile filter groups into a native ``where`` predicate.

A filter group is compiled entry by entry: each entry's mode is looked up
in a :class:`FilterModeRegistry`, its field is resolved against the
schema, and the handler's fragment is deep-merged into the group
predicate.  A list of groups compiles to ``{"OR": [group, ...]}``.

Validation always runs over the complete input before any fragment is
built, so an unknown mode or field never yields a partial predicate.
Modes are checked across every group first; an unknown mode anywhere is
reported ahead of an unknown field in any group.

Example::

    compiler = FilterCompiler(schema)
    compiler.compile_disjunction("Ticket", [
        {"status": {"mode": "EQ", "value": "open"}},
        {"created_at": {"mode": "EQ", "value": "2024-05-01"}},
    ])
    # {"OR": [
    #     {"status": {"contains": "open", "mode": "insensitive"}},
    #     {"created_at": {"gte": datetime(2024, 5, 1),
    #                     "lt": datetime(2024, 5, 2)}},
    # ]}
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ..exceptions import InvalidFieldReferenceError
from .handlers import build_default_registry
from .spec import FilterGroup, normalise_groups, parse_filter_spec
from .strategy import FilterContext, FilterModeHandler, FilterModeRegistry
from .utils import deep_merge

if TYPE_CHECKING:
    from ..schema.descriptors import EntityDescriptor
    from ..schema.registry import SchemaRegistry
    from .spec import FilterSpec

_Plan = list[tuple[FilterModeHandler, FilterContext]]


class FilterCompiler:
    """Turns filter groups into native predicates using live schema metadata."""

    def __init__(
        self,
        schema: SchemaRegistry,
        modes: FilterModeRegistry | None = None,
        *,
        case_insensitive: bool = True,
    ) -> None:
        self._schema = schema
        self._modes = modes if modes is not None else build_default_registry()
        self._case_insensitive = case_insensitive

    @property
    def modes(self) -> FilterModeRegistry:
        return self._modes

    # -- public API ----------------------------------------------------------

    def compile_group(
        self, entity: EntityDescriptor | str, group: FilterGroup
    ) -> dict[str, Any]:
        """
        Compile one group (entries AND-ed) into a predicate dict.

        Raises:
            UnsupportedFilterModeError: If an entry uses an unknown mode.
            InvalidFieldReferenceError: If an entry names an unknown field
                or an unresolvable nested path.
        """
        descriptor = self._entity(entity)
        return self._build(self._plan(descriptor, [group])[0])

    def compile_disjunction(
        self,
        entity: EntityDescriptor | str,
        groups: FilterGroup | Sequence[FilterGroup] | None,
    ) -> dict[str, Any]:
        """
        Compile groups into ``{"OR": [...]}``; no groups compile to ``{}``.

        Every group is validated before any is compiled.
        """
        descriptor = self._entity(entity)
        plans = self._plan(descriptor, normalise_groups(groups))
        if not plans:
            return {}
        return {"OR": [self._build(plan) for plan in plans]}

    def validate(
        self,
        entity: EntityDescriptor | str,
        groups: FilterGroup | Sequence[FilterGroup] | None,
    ) -> None:
        """Run all compile-time checks without building a predicate."""
        self._plan(self._entity(entity), normalise_groups(groups))

    # -- internals -----------------------------------------------------------

    def _entity(self, entity: EntityDescriptor | str) -> EntityDescriptor:
        if isinstance(entity, str):
            return self._schema.get_entity(entity)
        return entity

    def _plan(
        self, entity: EntityDescriptor, groups: Sequence[FilterGroup]
    ) -> list[_Plan]:
        resolved = [self._resolve_modes(group) for group in groups]
        return [
            [
                (handler, self._context(entity, name, spec))
                for name, (spec, handler) in entries.items()
            ]
            for entries in resolved
        ]

    def _resolve_modes(
        self, group: FilterGroup
    ) -> dict[str, tuple[FilterSpec, FilterModeHandler]]:
        if not isinstance(group, Mapping):
            raise TypeError(
                f"Filter group must be a mapping, got {type(group).__name__}"
            )
        entries: dict[str, tuple[FilterSpec, FilterModeHandler]] = {}
        for name, raw in group.items():
            spec = parse_filter_spec(name, raw)
            entries[name] = (spec, self._modes.resolve(spec.mode))
        return entries

    def _context(
        self, entity: EntityDescriptor, name: str, spec: FilterSpec
    ) -> FilterContext:
        field = entity.get_field(name)
        if field is None:
            raise InvalidFieldReferenceError(name, entity.name, entity.field_names)

        path: list[str] = [name]
        terminal = field
        nested = bool(spec.nested_field_path)
        if spec.nested_field_path:
            steps = self._schema.resolve_path(entity, spec.nested_field_path)
            path = []
            for index, (_, step) in enumerate(steps):
                path.append(step.name)
                if index < len(steps) - 1 and step.is_list:
                    path.append("some")
            terminal = steps[-1][1]

        is_relation = (
            spec.is_relation
            if spec.is_relation is not None
            else terminal.is_relation and terminal.is_list
        )
        return FilterContext(
            field_name=name,
            target_path=tuple(path),
            field=terminal,
            value=spec.value,
            is_relation=is_relation,
            nested=nested,
            case_insensitive=self._case_insensitive,
        )

    @staticmethod
    def _build(plan: _Plan) -> dict[str, Any]:
        predicate: dict[str, Any] = {}
        for handler, ctx in plan:
            fragment: dict[str, Any] = {}
            handler.apply(fragment, ctx)
            predicate = deep_merge(predicate, fragment)
        return predicate
