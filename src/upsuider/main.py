# src/upsuider/main.py
"""Main entry point for the Upsuider backend."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from upsuider.api.v1 import eventsub_router, salts_router, transactions_router, viewers_router
from upsuider.core.settings import settings
from upsuider.db.session import create_tables, dispose_engine
from upsuider.services.registry import ServiceContainer

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description="zkLogin wallet binding and Twitch reward minting on Sui",
    version=settings.app_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(salts_router, prefix="/api/v1")
app.include_router(viewers_router, prefix="/api/v1")
app.include_router(transactions_router, prefix="/api/v1")
# Twitch is configured with the bare callback path.
app.include_router(eventsub_router)


@app.on_event("startup")
async def on_startup() -> None:
    create_tables()
    app.state.services = ServiceContainer(settings)
    logger.info("Upsuider started on Sui %s (%s)", settings.sui_network, settings.fullnode_url)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    services: ServiceContainer | None = getattr(app.state, "services", None)
    if services is not None:
        await services.close()
    dispose_engine()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": f"{settings.app_name} API",
        "version": settings.app_version,
        "network": settings.sui_network,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("upsuider.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
