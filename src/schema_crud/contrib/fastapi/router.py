"""HTTP routes over a :class:`GenericRepositoryService`.

Mounts the five CRUD routes (create, read, update, delete, search) and maps
the package's errors onto HTTP status codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, HTTPException, status

from ...exceptions import (
    CrudError,
    FilterError,
    NotFoundError,
    SchemaError,
    StoreError,
)
from ...search import SearchPage, SearchRequest

if TYPE_CHECKING:
    from ...service import GenericRepositoryService


def error_to_http(exc: CrudError) -> HTTPException:
    """Translate a :class:`CrudError` into an ``HTTPException``."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (FilterError, SchemaError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, StoreError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.to_dict())


def build_crud_router(
    service: GenericRepositoryService,
    *,
    prefix: str = "",
    tags: list[str] | None = None,
) -> APIRouter:
    """
    Build an ``APIRouter`` exposing ``service``.

    Routes:
        ``POST /`` create (201), ``GET /{item_id}``, ``PUT /{item_id}``,
        ``DELETE /{item_id}``, ``POST /search``.

    Example:
        ```python
        app = FastAPI()
        app.include_router(
            build_crud_router(ticket_service, prefix="/tickets", tags=["tickets"])
        )
        ```
    """
    router = APIRouter(prefix=prefix, tags=list(tags or [service.entity_name]))

    def item_key(raw: str) -> Any:
        field = service.entity.get_field(service.entity.id_field)
        if field is None or not field.type.is_numeric:
            return raw
        try:
            return int(raw)
        except ValueError as err:
            raise HTTPException(
                status_code=422,
                detail=f"Invalid id {raw!r} for {service.entity_name}",
            ) from err

    @router.post("/search", response_model=SearchPage)
    async def search(request: SearchRequest | None = None) -> SearchPage:
        try:
            return await service.get_all(request)
        except CrudError as exc:
            raise error_to_http(exc) from exc

    @router.post("/", status_code=status.HTTP_201_CREATED)
    async def create(data: dict[str, Any] = Body(...)) -> Any:  # noqa: B008
        try:
            return await service.create(data)
        except CrudError as exc:
            raise error_to_http(exc) from exc

    @router.get("/{item_id}")
    async def get_one(item_id: str) -> Any:
        try:
            return await service.get_one(item_key(item_id))
        except CrudError as exc:
            raise error_to_http(exc) from exc

    @router.put("/{item_id}")
    async def update(
        item_id: str,
        data: dict[str, Any] = Body(...),  # noqa: B008
    ) -> Any:
        try:
            return await service.update(item_key(item_id), data)
        except CrudError as exc:
            raise error_to_http(exc) from exc

    @router.delete("/{item_id}")
    async def delete_item(item_id: str) -> Any:
        try:
            return await service.delete_item(item_key(item_id))
        except CrudError as exc:
            raise error_to_http(exc) from exc

    return router
