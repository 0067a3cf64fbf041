"""Shared fixtures: a small ticketing schema and in-memory stores over it."""

from __future__ import annotations

from datetime import datetime

import pytest

from schema_crud import (
    EntityDescriptor,
    FieldType,
    FilterCompiler,
    SchemaRegistry,
    StaticSchemaProvider,
    relation,
    scalar,
)
from schema_crud.adapters.memory import InMemoryStoreClient
from schema_crud.instrumentation import HookRegistry

ROLE = EntityDescriptor(
    name="Role",
    fields=(
        scalar("id", FieldType.INT, is_id=True),
        scalar("name", FieldType.STRING),
    ),
    primary_key=("id",),
)

TAG = EntityDescriptor(
    name="Tag",
    fields=(
        scalar("id", FieldType.INT, is_id=True),
        scalar("label", FieldType.STRING),
    ),
    primary_key=("id",),
)

USER = EntityDescriptor(
    name="User",
    fields=(
        scalar("id", FieldType.INT, is_id=True),
        scalar("name", FieldType.STRING),
        scalar("email", FieldType.STRING, is_required=False),
        scalar("age", FieldType.INT, is_required=False),
        relation("roles", "Role", is_list=True),
        relation("tags", "Tag", is_list=True),
    ),
    primary_key=("id",),
    display_fields=("name", "roles.name"),
)

TICKET = EntityDescriptor(
    name="Ticket",
    fields=(
        scalar("id", FieldType.INT, is_id=True),
        scalar("title", FieldType.STRING),
        scalar("status", FieldType.STRING),
        scalar("priority", FieldType.INT),
        scalar("archived", FieldType.BOOLEAN),
        scalar("created_at", FieldType.DATETIME),
        scalar("closed_at", FieldType.DATETIME, is_required=False),
        relation("assignee", "User"),
        relation("tags", "Tag", is_list=True),
    ),
    primary_key=("id",),
)


@pytest.fixture
def schema() -> SchemaRegistry:
    return StaticSchemaProvider([ROLE, TAG, USER, TICKET]).load_schema()


@pytest.fixture
def compiler(schema: SchemaRegistry) -> FilterCompiler:
    return FilterCompiler(schema)


@pytest.fixture
def hook_registry() -> HookRegistry:
    """Fresh instrumentation registry per test."""
    return HookRegistry()


@pytest.fixture
def tag_store(schema: SchemaRegistry) -> InMemoryStoreClient:
    return InMemoryStoreClient(
        "Tag",
        schema,
        [
            {"id": 1, "label": "bug"},
            {"id": 2, "label": "ui"},
            {"id": 3, "label": "db"},
        ],
    )


@pytest.fixture
def user_store(
    schema: SchemaRegistry, tag_store: InMemoryStoreClient
) -> InMemoryStoreClient:
    store = InMemoryStoreClient(
        "User",
        schema,
        [
            {"id": 1, "name": "Ann", "email": "ann@example.com", "age": 31},
            {"id": 2, "name": "Bob", "email": None, "age": None},
        ],
    )
    store.link(tag_store)
    return store


def _make_tickets(open_count: int = 7, other_count: int = 3) -> list[dict]:
    """``open_count`` OPEN tickets followed by ``other_count`` CLOSED ones."""
    tickets = []
    for i in range(open_count + other_count):
        tickets.append(
            {
                "id": i + 1,
                "title": f"Ticket {i + 1}",
                "status": "OPEN" if i < open_count else "CLOSED",
                "priority": i % 5,
                "archived": False,
                "created_at": datetime(2024, 5, 1 + i % 3, 9, 30),
                "closed_at": None if i < open_count else datetime(2024, 6, 1),
            }
        )
    return tickets


@pytest.fixture
def ticket_store(
    schema: SchemaRegistry, tag_store: InMemoryStoreClient
) -> InMemoryStoreClient:
    store = InMemoryStoreClient("Ticket", schema, _make_tickets())
    store.link(tag_store)
    return store
