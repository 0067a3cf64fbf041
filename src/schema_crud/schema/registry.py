"""SchemaRegistry — immutable lookup table of loaded entity descriptors."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from ..exceptions import InvalidFieldReferenceError, UnknownEntityError
from .descriptors import EntityDescriptor, FieldDescriptor


class SchemaRegistry(Mapping[str, EntityDescriptor]):
    """
    Read-only mapping of entity name to :class:`EntityDescriptor`.

    Built once by a :class:`SchemaProvider` and shared by reference; safe
    for concurrent reads because nothing mutates it after construction.
    """

    __slots__ = ("_entities",)

    def __init__(self, entities: Iterable[EntityDescriptor]) -> None:
        self._entities: Mapping[str, EntityDescriptor] = MappingProxyType(
            {e.name: e for e in entities}
        )

    def __getitem__(self, name: str) -> EntityDescriptor:
        return self._entities[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __repr__(self) -> str:
        return f"SchemaRegistry({sorted(self._entities)!r})"

    def get_entity(self, name: str) -> EntityDescriptor:
        """Return the descriptor for ``name`` or raise ``UnknownEntityError``."""
        try:
            return self._entities[name]
        except KeyError:
            raise UnknownEntityError(name, list(self._entities)) from None

    def get_field_index(self, name: str) -> Mapping[str, FieldDescriptor]:
        """Return the field-name → descriptor mapping of an entity."""
        return self.get_entity(name).field_index

    def resolve_path(
        self, entity: EntityDescriptor, path: str
    ) -> list[tuple[EntityDescriptor, FieldDescriptor]]:
        """
        Walk a dotted field path through relations.

        Returns one ``(owner_entity, field)`` pair per segment.  Every
        segment but the last must be a relation whose target entity is
        loaded.

        Raises:
            InvalidFieldReferenceError: If a segment does not exist or a
                non-relation field is traversed.
        """
        steps: list[tuple[EntityDescriptor, FieldDescriptor]] = []
        current = entity
        parts = path.split(".")
        for index, part in enumerate(parts):
            field = current.get_field(part)
            if field is None:
                raise InvalidFieldReferenceError(
                    part, current.name, current.field_names, full_path=path
                )
            steps.append((current, field))
            if index == len(parts) - 1:
                break
            if not field.is_relation or field.target is None:
                raise InvalidFieldReferenceError(
                    part,
                    current.name,
                    current.field_names,
                    full_path=path,
                    reason=f"'{part}' is not a relation and cannot be traversed.",
                )
            target = self._entities.get(field.target)
            if target is None:
                raise InvalidFieldReferenceError(
                    parts[index + 1],
                    field.target,
                    [],
                    full_path=path,
                    reason=f"Relation target '{field.target}' is not loaded.",
                )
            current = target
        return steps
