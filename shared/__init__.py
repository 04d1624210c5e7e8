"""Service-agnostic utilities: configuration, logging, events, health, CORS."""

from .config import AccessConfig, ServiceConfig, load_service_config
from .cors import configure_cors, get_cors_origins
from .health import create_health_router
from .messaging import EventPublisher, create_event_publisher
from .startup import create_schema, database_lifespan_factory

__all__ = [
    "AccessConfig",
    "ServiceConfig",
    "load_service_config",
    "configure_cors",
    "get_cors_origins",
    "create_health_router",
    "EventPublisher",
    "create_event_publisher",
    "create_schema",
    "database_lifespan_factory",
]
