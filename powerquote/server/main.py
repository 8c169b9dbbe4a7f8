import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from powerquote.logging_config import setup_logging
from powerquote.server.api import bom, products, quotes, system, workflow
from powerquote.server.db.session import init_db
from powerquote.server.settings.config import settings

log = logging.getLogger("powerquote.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    log.info("Starting %s (%s)", settings.app_name, settings.environment)
    init_db()
    yield
    log.info("Shutting down")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(system.router)      # /health, /roles, /__debug/routes
app.include_router(quotes.router)      # /quotes...
app.include_router(workflow.router)    # /workflow... submit, claim, decisions
app.include_router(products.router)    # /products... catalog + part number codes
app.include_router(bom.router)         # /bom... part numbers, consolidation, margin
