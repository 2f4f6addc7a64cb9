from fastapi import APIRouter, FastAPI

from .admin import router as admin_router, scaffold_router as admin_scaffold_router
from .interests import router as interests_router, scaffold_router as interests_scaffold_router
from .matches import router as matches_router, scaffold_router as matches_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(interests_router, tags=["interests"])
    app.include_router(matches_router, tags=["matches"])
    app.include_router(admin_router, tags=["admin"])

    app.include_router(interests_scaffold_router, prefix="/_scaffold/interests", tags=["scaffold-interests"])
    app.include_router(matches_scaffold_router, prefix="/_scaffold/matches", tags=["scaffold-matches"])
    app.include_router(admin_scaffold_router, prefix="/_scaffold/admin", tags=["scaffold-admin"])


__all__ = ["include_modular_routers", "APIRouter"]
