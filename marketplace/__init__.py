"""Multi-tenant container marketplace service."""
