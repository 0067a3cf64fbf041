"""FastAPI integration for schema-crud (``schema-crud[fastapi]``)."""

from .router import build_crud_router, error_to_http

__all__: list[str] = ["build_crud_router", "error_to_http"]
