"""
Ticketing Service package.

This package exposes the FastAPI application for support tickets, their
comments and categories:

- app.main: Application entrypoint that wires routes and lifecycle.
- app.auth: Bearer credential verification and the access policy.
- app.cache: Redis cache-aside for paginated listings.
- app.domain: Models, pagination, write coordination and scoped reads.
- app.persistence: Store interface and the PostgreSQL implementation.
- app.notifications: Email task producer used on ticket creation.

Design notes:
- Module import must not perform network calls. All IO happens in route
  handlers or explicit startup hooks.
- Secrets and addresses come from ``shared.config`` and are handed to each
  component at construction.
"""
