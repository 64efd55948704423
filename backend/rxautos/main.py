"""RX Autos: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rxautos.api.v1.auth import router as auth_router
from rxautos.api.v1.billing import router as billing_router
from rxautos.api.v1.profiles import router as profiles_router
from rxautos.api.v1.vehicles import router as vehicles_router
from rxautos.api.v1.webhooks import router as webhooks_router
from rxautos.config import settings

# Configure root logger so all rxautos.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Shutdown: dispose engine connections
    from rxautos.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Vehicle marketplace backend: listings, plans, subscriptions and Asaas billing.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router)
app.include_router(profiles_router)
app.include_router(vehicles_router)
app.include_router(billing_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str | bool]:
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "billing_sandbox": settings.is_sandbox,
    }
