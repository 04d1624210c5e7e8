"""CORS for the marketplace API.

Outside production any origin may call the API. In production the browser
clients must be listed in ``CORS_ORIGINS`` (comma separated).
"""

from __future__ import annotations

import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

_ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
_EXPOSED_HEADERS = ["X-Request-ID"]


def _split_origins(raw: str) -> List[str]:
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


def get_cors_origins() -> List[str]:
    """Raises ValueError in production when no origin is configured."""
    environment = os.getenv("ENVIRONMENT", os.getenv("ENV", "development")).lower()
    if environment not in ("production", "prod"):
        return ["*"]

    origins = _split_origins(os.getenv("CORS_ORIGINS", ""))
    if not origins:
        raise ValueError(
            "CORS_ORIGINS must be set in production, e.g. "
            "CORS_ORIGINS=https://marketplace.example.com,https://admin.example.com"
        )
    return origins


def configure_cors(app: FastAPI) -> None:
    origins = get_cors_origins()
    # browsers refuse credentials with a wildcard origin
    allow_credentials = origins != ["*"] and os.getenv("CORS_ALLOW_CREDENTIALS", "false").lower() == "true"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=_ALLOWED_METHODS,
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Trace-ID", "X-Company-ID"],
        expose_headers=_EXPOSED_HEADERS,
        max_age=int(os.getenv("CORS_MAX_AGE", "600")),
    )
