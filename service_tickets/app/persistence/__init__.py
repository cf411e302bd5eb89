"""
Persistence package for the Ticketing service.

- store: the ``TicketStore`` interface and the ``RecordNotFound`` signal.
- postgres: asyncpg implementation; comments cascade with their ticket.
"""
