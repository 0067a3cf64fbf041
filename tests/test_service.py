"""End-to-end tests for GenericRepositoryService over the in-memory store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import pytest
from pydantic import ValidationError

from schema_crud import (
    ComputedField,
    CrudOperation,
    CrudSettings,
    GenericRepositoryService,
    NullRelationPolicy,
    SearchRequest,
    UpdateOptions,
)
from schema_crud.adapters.memory import InMemoryStoreClient
from schema_crud.exceptions import (
    InvalidFieldReferenceError,
    NotFoundError,
    SchemaError,
    UnknownEntityError,
    UnsupportedFilterModeError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from schema_crud import SchemaRegistry
    from schema_crud.events import ChangeEvent
    from schema_crud.instrumentation import HookRegistry, OperationContext


class SpyStore:
    """Store client that records calls and returns canned results."""

    def __init__(self, total: int = 0, items: list[Any] | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._total = total
        self._items = items or []

    async def create(self, data: dict[str, Any]) -> Any:
        self.calls.append(("create", {"data": data}))
        return {"id": 1, **data}

    async def find_first(self, where: dict[str, Any]) -> Any:
        self.calls.append(("find_first", {"where": where}))
        return None

    async def find_many(self, **kwargs: Any) -> list[Any]:
        self.calls.append(("find_many", kwargs))
        return self._items

    async def update(self, **kwargs: Any) -> Any:
        self.calls.append(("update", kwargs))
        return {"id": kwargs["where"]["id"]}

    async def delete(self, **kwargs: Any) -> Any:
        self.calls.append(("delete", kwargs))
        return {"id": kwargs["where"]["id"]}

    async def aggregate(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("aggregate", kwargs))
        return {"_count": {"id": self._total}}


@pytest.fixture
def tickets(
    schema: SchemaRegistry,
    ticket_store: InMemoryStoreClient,
    hook_registry: HookRegistry,
) -> GenericRepositoryService:
    return GenericRepositoryService(
        "Ticket", ticket_store, schema, hooks=hook_registry
    )


@pytest.fixture
def users(
    schema: SchemaRegistry,
    user_store: InMemoryStoreClient,
    hook_registry: HookRegistry,
) -> GenericRepositoryService:
    return GenericRepositoryService("User", user_store, schema, hooks=hook_registry)


def _collect(service: GenericRepositoryService) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []
    service.notifier.on_create.subscribe(events.append)
    service.notifier.on_update.subscribe(events.append)
    service.notifier.on_delete.subscribe(events.append)
    return events


def test_unknown_entity(schema: SchemaRegistry) -> None:
    with pytest.raises(UnknownEntityError):
        GenericRepositoryService("Tickets", SpyStore(), schema)


def test_properties(tickets: GenericRepositoryService) -> None:
    assert tickets.entity_name == "Ticket"
    assert tickets.entity.id_field == "id"
    assert tickets.settings.default_limit == 10


# -- get_all -----------------------------------------------------------------


class TestGetAll:
    async def test_filtered_page_with_total(
        self, tickets: GenericRepositoryService
    ) -> None:
        page = await tickets.get_all(
            {"filters": [{"status": {"mode": "EQ", "value": "OPEN"}}], "limit": 5}
        )
        assert page.total == 7
        assert len(page.items) == 5
        assert [t["id"] for t in page.items] == [1, 2, 3, 4, 5]

    async def test_defaults(self, tickets: GenericRepositoryService) -> None:
        page = await tickets.get_all()
        assert page.total == 10
        assert len(page.items) == 10

    async def test_limit_zero_uses_default(
        self, schema: SchemaRegistry, ticket_store: InMemoryStoreClient
    ) -> None:
        service = GenericRepositoryService(
            "Ticket", ticket_store, schema, settings=CrudSettings(default_limit=3)
        )
        page = await service.get_all(SearchRequest(limit=0, offset=8))
        assert page.total == 10
        assert [t["id"] for t in page.items] == [9, 10]

    async def test_max_limit_caps_page(
        self, schema: SchemaRegistry, ticket_store: InMemoryStoreClient
    ) -> None:
        service = GenericRepositoryService(
            "Ticket", ticket_store, schema, settings=CrudSettings(max_limit=4)
        )
        page = await service.get_all({"limit": 50})
        assert page.total == 10
        assert [t["id"] for t in page.items] == [1, 2, 3, 4]

    async def test_groups_are_ored(self, tickets: GenericRepositoryService) -> None:
        page = await tickets.get_all(
            {
                "filters": [
                    {"status": {"mode": "EQ", "value": "CLOSED"}},
                    {"priority": {"mode": "EQ", "value": 4}},
                ]
            }
        )
        # CLOSED: 8, 9, 10; priority 4: 5, 10
        assert sorted(t["id"] for t in page.items) == [5, 8, 9, 10]
        assert page.total == 4

    async def test_entries_in_group_are_anded(
        self, tickets: GenericRepositoryService
    ) -> None:
        page = await tickets.get_all(
            {
                "filters": {
                    "status": {"mode": "EQ", "value": "open"},
                    "priority": {"mode": "RG", "value": [1, 2]},
                }
            }
        )
        assert [t["id"] for t in page.items] == [2, 3, 7]

    async def test_null_checks(self, tickets: GenericRepositoryService) -> None:
        empty = await tickets.get_all({"filters": [{"closed_at": {"mode": "EM"}}]})
        assert empty.total == 7
        filled = await tickets.get_all({"filters": [{"closed_at": {"mode": "NEM"}}]})
        assert filled.total == 3

    async def test_calendar_day(self, tickets: GenericRepositoryService) -> None:
        page = await tickets.get_all(
            {"filters": [{"created_at": {"mode": "EQ", "value": "2024-05-02"}}]}
        )
        # created_at day is 1 + i % 3 for ids i + 1
        assert [t["id"] for t in page.items] == [2, 5, 8]

    async def test_calendar_day_on_aware_records(
        self, schema: SchemaRegistry
    ) -> None:
        records = [
            {
                "id": i + 1,
                "title": f"Ticket {i + 1}",
                "status": "OPEN",
                "priority": 0,
                "archived": False,
                "created_at": datetime(2024, 5, 1 + i % 3, 9, 30, tzinfo=timezone.utc),
                "closed_at": None,
            }
            for i in range(6)
        ]
        service = GenericRepositoryService(
            "Ticket", InMemoryStoreClient("Ticket", schema, records), schema
        )
        day = await service.get_all(
            {"filters": [{"created_at": {"mode": "EQ", "value": "2024-05-01"}}]}
        )
        assert [t["id"] for t in day.items] == [1, 4]
        later = await service.get_all(
            {"filters": [{"created_at": {"mode": "GT", "value": "2024-05-02"}}]}
        )
        assert later.total == 4

    async def test_exclusion(self, tickets: GenericRepositoryService) -> None:
        page = await tickets.get_all(
            {"filters": [{"title": {"mode": "EX", "value": "ticket 1"}}]}
        )
        assert page.total == 8

    async def test_order_by(self, tickets: GenericRepositoryService) -> None:
        page = await tickets.get_all(
            {"orderBy": {"priority": "desc", "id": "desc"}, "limit": 3}
        )
        assert [(t["id"], t["priority"]) for t in page.items] == [
            (10, 4),
            (5, 4),
            (9, 3),
        ]

    async def test_display_fields_projection(
        self, users: GenericRepositoryService
    ) -> None:
        page = await users.get_all()
        assert page.items == [{"name": "Ann"}, {"name": "Bob"}]

    async def test_explicit_fields(self, users: GenericRepositoryService) -> None:
        page = await users.get_all({"fields": ["id", "email"]})
        assert page.items == [
            {"id": 1, "email": "ann@example.com"},
            {"id": 2, "email": None},
        ]

    async def test_relation_filter(self, users: GenericRepositoryService) -> None:
        await users.update(1, {"tags": [1, 2]})
        page = await users.get_all(
            {"filters": [{"tags": {"mode": "EQ", "value": [2]}}], "fields": ["id"]}
        )
        assert page.items == [{"id": 1}]
        excluded = await users.get_all(
            {"filters": [{"tags": {"mode": "EX", "value": [2]}}], "fields": ["id"]}
        )
        assert excluded.items == [{"id": 2}]

    async def test_unknown_mode_rejected_before_store(self, schema: Any) -> None:
        store = SpyStore()
        service = GenericRepositoryService("Ticket", store, schema)
        with pytest.raises(UnsupportedFilterModeError):
            await service.get_all(
                {"filters": [{"title": {"mode": "FOO", "value": "x"}}]}
            )
        assert store.calls == []

    @pytest.mark.parametrize(
        "request_data",
        [
            {"filters": [{"nope": {"mode": "EQ", "value": 1}}]},
            {"fields": ["title", "assignee.nope"]},
            {"orderBy": {"nope": "asc"}},
            {"include": {"title": True}},
        ],
    )
    async def test_bad_references_rejected_before_store(
        self, schema: Any, request_data: dict[str, Any]
    ) -> None:
        store = SpyStore()
        service = GenericRepositoryService("Ticket", store, schema)
        with pytest.raises(InvalidFieldReferenceError):
            await service.get_all(request_data)
        assert store.calls == []

    async def test_malformed_request(self, schema: Any) -> None:
        service = GenericRepositoryService("Ticket", SpyStore(), schema)
        with pytest.raises(ValidationError):
            await service.get_all({"limit": -1})

    async def test_store_calls(self, schema: Any) -> None:
        store = SpyStore(total=42, items=[{"id": 1}])
        service = GenericRepositoryService(
            "User", store, schema, settings=CrudSettings(max_limit=20)
        )
        page = await service.get_all(
            {
                "filters": [{"name": {"mode": "EQ", "value": "an"}}],
                "offset": 5,
                "limit": 50,
            }
        )
        assert page.total == 42
        assert page.items == [{"id": 1}]
        where = {"OR": [{"name": {"contains": "an", "mode": "insensitive"}}]}
        assert store.calls == [
            ("aggregate", {"where": where, "count": {"id": True}}),
            (
                "find_many",
                {
                    "skip": 5,
                    "take": 20,
                    "order_by": {"id": "asc"},
                    "where": where,
                    "select": {"name": True, "roles": {"select": {"name": True}}},
                    "include": None,
                },
            ),
        ]


# -- get_one / mutations -----------------------------------------------------


class TestGetOne:
    async def test_found(self, tickets: GenericRepositoryService) -> None:
        ticket = await tickets.get_one(3)
        assert ticket["title"] == "Ticket 3"

    async def test_missing_returns_empty_dict(
        self, tickets: GenericRepositoryService
    ) -> None:
        assert await tickets.get_one(404) == {}


class TestMutations:
    async def test_create(self, users: GenericRepositoryService) -> None:
        events = _collect(users)
        created = await users.create({"name": "Cid", "email": None, "age": 20})
        assert created["id"] == 3
        assert (await users.get_one(3))["name"] == "Cid"
        assert len(events) == 1
        assert events[0].data == {"name": "Cid", "email": None, "age": 20}
        assert events[0].result == created

    async def test_update_scalars_and_relations(
        self, users: GenericRepositoryService
    ) -> None:
        events = _collect(users)
        await users.update(1, {"name": "Annie", "tags": [1, 3]})
        page = await users.get_all(
            {"filters": [{"id": {"mode": "EQ", "value": 1}}], "fields": ["tags.label"]}
        )
        assert page.items == [{"tags": [{"label": "bug"}, {"label": "db"}]}]
        assert (await users.get_one(1))["name"] == "Annie"
        assert len(events) == 1
        assert events[0].id == 1
        assert events[0].input_data == {"name": "Annie", "tags": [1, 3]}

    async def test_update_with_connect(self, users: GenericRepositoryService) -> None:
        await users.update(2, {"tags": [1]})
        await users.update(
            2, {"tags": [2]}, UpdateOptions(relation_operation="connect")
        )
        page = await users.get_all(
            {"filters": [{"id": {"mode": "EQ", "value": 2}}], "fields": ["tags.id"]}
        )
        assert page.items == [{"tags": [{"id": 1}, {"id": 2}]}]

    async def test_update_null_relation(
        self, schema: SchemaRegistry, user_store: InMemoryStoreClient
    ) -> None:
        service = GenericRepositoryService(
            "User",
            user_store,
            schema,
            settings=CrudSettings(null_relation_policy=NullRelationPolicy.DISCONNECT),
        )
        await service.update(1, {"tags": [1]})
        await service.update(1, {"tags": None})
        page = await service.get_all(
            {"filters": [{"id": {"mode": "EQ", "value": 1}}], "fields": ["tags"]}
        )
        assert page.items == [{"tags": []}]

    async def test_update_missing(self, tickets: GenericRepositoryService) -> None:
        events = _collect(tickets)
        with pytest.raises(NotFoundError):
            await tickets.update(404, {"title": "x"})
        assert events == []

    async def test_delete(self, tickets: GenericRepositoryService) -> None:
        events = _collect(tickets)
        assert await tickets.delete_item(2) == {"id": 2}
        assert await tickets.get_one(2) == {}
        assert len(events) == 1
        assert events[0].id == 2

    async def test_delete_missing(self, tickets: GenericRepositoryService) -> None:
        events = _collect(tickets)
        with pytest.raises(NotFoundError):
            await tickets.delete_item(404)
        assert events == []

    async def test_subscriber_failure_does_not_fail_mutation(
        self, tickets: GenericRepositoryService
    ) -> None:
        def broken(event: Any) -> None:
            raise RuntimeError("subscriber down")

        tickets.notifier.on_delete.subscribe(broken)
        assert await tickets.delete_item(1) == {"id": 1}

    async def test_build_update_payload(
        self, users: GenericRepositoryService
    ) -> None:
        assert users.build_update_payload({"name": "x", "roleId": 5}) == {
            "name": "x",
            "roleId": {"set": {"id": 5}},
        }


# -- computed fields ---------------------------------------------------------


def _label() -> ComputedField:
    return ComputedField(
        needs=("id", "title"), compute=lambda t: f"#{t['id']} {t['title']}"
    )


class TestComputedFields:
    async def test_get_one(self, tickets: GenericRepositoryService) -> None:
        tickets.extend({"label": _label()})
        found = await tickets.get_one(3)
        assert found["label"] == "#3 Ticket 3"
        assert found["title"] == "Ticket 3"
        assert await tickets.get_one(404) == {}

    async def test_get_all_without_projection(
        self, tickets: GenericRepositoryService
    ) -> None:
        tickets.extend({"label": _label()})
        page = await tickets.get_all({"limit": 2})
        assert [item["label"] for item in page.items] == [
            "#1 Ticket 1",
            "#2 Ticket 2",
        ]

    async def test_projected_computed_field_hides_its_needs(
        self, tickets: GenericRepositoryService
    ) -> None:
        tickets.extend({"label": _label()})
        page = await tickets.get_all({"fields": ["status", "label"], "limit": 1})
        assert page.items == [{"status": "OPEN", "label": "#1 Ticket 1"}]

    async def test_projection_without_computed_name(
        self, tickets: GenericRepositoryService
    ) -> None:
        tickets.extend({"label": _label()})
        page = await tickets.get_all({"fields": ["title"], "limit": 1})
        assert page.items == [{"title": "Ticket 1"}]

    async def test_needs_are_selected_from_the_store(
        self, schema: SchemaRegistry
    ) -> None:
        store = SpyStore(total=1, items=[{"id": 1, "title": "a"}])
        service = GenericRepositoryService("Ticket", store, schema)
        service.extend({"label": _label()})
        page = await service.get_all({"fields": ["label"]})
        assert page.items == [{"label": "#1 a"}]
        _, kwargs = store.calls[1]
        assert kwargs["select"] == {"id": True, "title": True}

    async def test_create_and_update_results(
        self, tickets: GenericRepositoryService
    ) -> None:
        events = _collect(tickets)
        tickets.extend({"label": _label()})
        created = await tickets.create({"id": 11, "title": "new", "status": "OPEN"})
        assert created["label"] == "#11 new"
        updated = await tickets.update(1, {"title": "renamed"})
        assert updated["label"] == "#1 renamed"
        assert [e.result["label"] for e in events] == ["#11 new", "#1 renamed"]

    async def test_missing_need_skips_field(self, schema: SchemaRegistry) -> None:
        service = GenericRepositoryService("Ticket", SpyStore(), schema)
        service.extend({"label": _label()})
        assert await service.update(7, {"status": "CLOSED"}) == {"id": 7}

    def test_needs_mapping_form(self) -> None:
        computed = ComputedField(
            needs={"priority": True, "title": False}, compute=lambda t: 0
        )
        assert computed.needs == ("priority",)

    def test_name_cannot_shadow_a_field(
        self, tickets: GenericRepositoryService
    ) -> None:
        with pytest.raises(SchemaError, match="shadows"):
            tickets.extend({"title": _label()})

    @pytest.mark.parametrize("need", ["nope", "assignee"])
    def test_needs_must_be_scalar_fields(
        self, tickets: GenericRepositoryService, need: str
    ) -> None:
        with pytest.raises(InvalidFieldReferenceError):
            tickets.extend({"x": ComputedField(needs=(need,), compute=len)})


# -- instrumentation ---------------------------------------------------------


class TestInstrumentation:
    async def test_operations_are_wrapped(
        self, tickets: GenericRepositoryService, hook_registry: HookRegistry
    ) -> None:
        seen: list[OperationContext] = []

        async def hook(
            ctx: OperationContext,
            next_handler: Callable[[], Awaitable[Any]],
        ) -> Any:
            seen.append(ctx)
            return await next_handler()

        hook_registry.register(hook)
        await tickets.get_all(
            {"filters": [{"status": {"mode": "EQ", "value": "OPEN"}}], "limit": 2}
        )
        await tickets.get_one(1)
        await tickets.update(1, {"title": "renamed"})
        await tickets.delete_item(1)

        assert [ctx.name for ctx in seen] == [
            "crud.get_all.Ticket",
            "crud.get_one.Ticket",
            "crud.update.Ticket",
            "crud.delete.Ticket",
        ]
        assert seen[0].operation is CrudOperation.GET_ALL
        assert seen[0].where == {
            "OR": [{"status": {"contains": "OPEN", "mode": "insensitive"}}]
        }
        assert (seen[0].skip, seen[0].take) == (0, 2)
        assert seen[1].item_id == 1
        assert seen[1].where == {"id": 1}
        assert seen[2].data == {"title": "renamed"}
        assert seen[3].where == {"id": 1}

    async def test_create_context_carries_payload(
        self, tickets: GenericRepositoryService
    ) -> None:
        seen: list[OperationContext] = []

        async def hook(
            ctx: OperationContext,
            next_handler: Callable[[], Awaitable[Any]],
        ) -> Any:
            seen.append(ctx)
            return await next_handler()

        tickets.hooks.register(hook, operations=[CrudOperation.CREATE])
        await tickets.create({"id": 11, "title": "new"})
        await tickets.get_one(11)
        assert len(seen) == 1
        assert seen[0].data == {"id": 11, "title": "new"}
        assert seen[0].where is None

    async def test_hook_can_replace_result(
        self, tickets: GenericRepositoryService, hook_registry: HookRegistry
    ) -> None:
        async def cached(
            ctx: OperationContext,
            next_handler: Callable[[], Awaitable[Any]],
        ) -> Any:
            return {"id": ctx.item_id, "cached": True}

        hook_registry.register(cached, operations=["get_one"])
        assert await tickets.get_one(5) == {"id": 5, "cached": True}
