import logging
import os

from fastapi import FastAPI, Request
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi

from marketplace.core.database import Base, engine
from marketplace.core.exceptions import register_exception_handlers
from marketplace.routers import companies, containers, stats, users
from shared import (
    configure_cors,
    create_event_publisher,
    create_health_router,
    database_lifespan_factory,
    load_service_config,
)
from shared.logging import RequestContextLogMiddleware, configure_logging

if not logging.root.handlers:
    configure_logging("marketplace")
logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.3"

tags_metadata = [
    {"name": "Containers", "description": "Apps, voices and workflows: browse, create, edit, count views."},
    {"name": "Companies", "description": "Tenants and the marketplace containers assigned to them."},
    {"name": "Users", "description": "Members, roles and per-type access permissions."},
    {"name": "Statistics", "description": "Container counts, views and filter facets."},
    {"name": "Health", "description": "Liveness and readiness probes."},
]

_CONFIG = load_service_config("marketplace")

app = FastAPI(
    title="Container Marketplace",
    version="0.1.0",
    description="Multi-tenant marketplace of apps, AI voices and automation workflows.",
    openapi_tags=tags_metadata,
    root_path=os.getenv("APP_ROOT_PATH", ""),
    lifespan=database_lifespan_factory(service_name="marketplace", metadata=Base.metadata, engine=engine),
    docs_url=None,
    redoc_url="/redoc",
)

app.state.config = _CONFIG
app.state.event_publisher = create_event_publisher(_CONFIG.redis.url, _CONFIG.redis.stream)
if app.state.event_publisher is None:
    logger.info("REDIS_URL is empty, domain events are disabled")

configure_cors(app)
app.add_middleware(RequestContextLogMiddleware)
register_exception_handlers(app)


def marketplace_openapi():
    if not app.openapi_schema:
        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
            tags=app.openapi_tags,
        )
        schema["openapi"] = OPENAPI_VERSION
        app.openapi_schema = schema
    return app.openapi_schema


app.openapi = marketplace_openapi


@app.get("/docs", include_in_schema=False)
def swagger_ui(request: Request):
    # the schema URL must include the proxy prefix
    openapi_url = request.scope.get("root_path", "") + app.openapi_url
    return get_swagger_ui_html(openapi_url=openapi_url, title=f"{app.title} docs")


app.include_router(
    create_health_router(
        service_name="marketplace",
        database_engine=engine,
        redis_client=_CONFIG.redis.url or None,
    )
)
app.include_router(containers.router, prefix="/containers")
app.include_router(companies.router, prefix="/companies")
app.include_router(users.router, prefix="/users")
app.include_router(stats.router)


@app.get("/", include_in_schema=False)
def root():
    return {
        "service": "marketplace",
        "status": "ok",
        "docs_url": "/docs",
        "events": {
            "enabled": app.state.event_publisher is not None,
            "stream": _CONFIG.redis.stream,
        },
    }
