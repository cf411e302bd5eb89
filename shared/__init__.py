"""
Shared utilities for the Ticketing service.

This package aggregates common building blocks:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types mapped to HTTP status codes
- base_service: FastAPI application shell (middleware, health, handlers)

Do not import from service packages into shared/.
"""
