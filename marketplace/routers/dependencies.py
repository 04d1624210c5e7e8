from fastapi import Request

from shared import AccessConfig


def get_access_config(request: Request) -> AccessConfig:
    return request.app.state.config.access


def get_event_publisher(request: Request):
    return getattr(request.app.state, "event_publisher", None)
