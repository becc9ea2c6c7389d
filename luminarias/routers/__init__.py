"""Router package — collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from luminarias.routers import (
    admin,
    auth,
    conversions,
    ledger,
    marketplace,
    store,
)


def register_all_routers(app: FastAPI):
    app.include_router(auth.router)
    app.include_router(ledger.router)
    app.include_router(marketplace.router)
    app.include_router(conversions.router)
    app.include_router(store.router)
    app.include_router(admin.router)
