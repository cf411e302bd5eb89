"""
PostgreSQL persistence layer for the Ticketing service.
"""

from typing import Any, Optional, List

import asyncpg
from shared.logging import get_logger
from shared.errors import AccessLayerException
from ..domain.models import (
    Ticket, Comment, Category,
    CreateTicketParams, UpdateTicketParams, ListTicketsParams, ListAllTicketsParams,
    CreateCommentParams, UpdateCommentParams, ListCommentsParams, ListCategoriesParams
)
from .store import TicketStore, RecordNotFound


TICKET_COLUMNS = (
    "ticket_id, title, description, status, user_assigned, assigned_to, "
    "category_id, created_at, updated_at, closed_at"
)
COMMENT_COLUMNS = "comment_id, ticket_id, comment_text, user_commented, created_at"
CATEGORY_COLUMNS = "category_id, name"


class PostgresTicketStore(TicketStore):
    """asyncpg-backed implementation of ``TicketStore``."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("tickets.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise AccessLayerException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    category_id BIGSERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS tickets (
                    ticket_id BIGSERIAL PRIMARY KEY,
                    title VARCHAR(255) NOT NULL,
                    description TEXT NOT NULL,
                    status VARCHAR(20) NOT NULL
                        CHECK (status IN ('open', 'inprogress', 'closed')),
                    user_assigned VARCHAR(255) NOT NULL,
                    assigned_to VARCHAR(255),
                    category_id BIGINT NOT NULL REFERENCES categories(category_id),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    closed_at TIMESTAMP WITH TIME ZONE
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    comment_id BIGSERIAL PRIMARY KEY,
                    ticket_id BIGINT NOT NULL REFERENCES tickets(ticket_id) ON DELETE CASCADE,
                    comment_text TEXT NOT NULL,
                    user_commented VARCHAR(255) NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tickets_user_assigned ON tickets(user_assigned);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tickets_assigned_to ON tickets(assigned_to);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_comments_ticket ON comments(ticket_id);
            """)

    async def _fetch_one(self, query: str, *args: Any) -> asyncpg.Record:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *args)
        if row is None:
            raise RecordNotFound()
        return row

    async def _fetch_many(self, query: str, *args: Any) -> List[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def _execute(self, query: str, *args: Any) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(query, *args)

    # Tickets

    async def create_ticket(self, params: CreateTicketParams) -> Ticket:
        row = await self._fetch_one(
            f"""
            INSERT INTO tickets (title, description, status, user_assigned, category_id)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING {TICKET_COLUMNS}
            """,
            params.title, params.description, params.status.value,
            params.user_assigned, params.category_id
        )
        return Ticket.model_validate(dict(row))

    async def get_ticket(self, ticket_id: int) -> Ticket:
        row = await self._fetch_one(
            f"SELECT {TICKET_COLUMNS} FROM tickets WHERE ticket_id = $1 LIMIT 1",
            ticket_id
        )
        return Ticket.model_validate(dict(row))

    async def get_ticket_for_update(self, ticket_id: int) -> Ticket:
        row = await self._fetch_one(
            f"SELECT {TICKET_COLUMNS} FROM tickets WHERE ticket_id = $1 LIMIT 1 FOR NO KEY UPDATE",
            ticket_id
        )
        return Ticket.model_validate(dict(row))

    async def update_ticket(self, params: UpdateTicketParams) -> Ticket:
        status = params.status.value if params.status is not None else None
        row = await self._fetch_one(
            f"""
            UPDATE tickets SET
                status = COALESCE($2::varchar, status),
                assigned_to = COALESCE($3::varchar, assigned_to),
                updated_at = $4::timestamptz,
                closed_at = CASE WHEN $2::varchar = 'closed' THEN $4::timestamptz ELSE closed_at END
            WHERE ticket_id = $1
            RETURNING {TICKET_COLUMNS}
            """,
            params.ticket_id, status, params.assigned_to, params.updated_at
        )
        return Ticket.model_validate(dict(row))

    async def delete_ticket(self, ticket_id: int) -> None:
        await self._execute("DELETE FROM tickets WHERE ticket_id = $1", ticket_id)

    async def list_tickets(self, params: ListTicketsParams) -> List[Ticket]:
        rows = await self._fetch_many(
            f"""
            SELECT {TICKET_COLUMNS} FROM tickets
            WHERE user_assigned = $1
            ORDER BY ticket_id
            LIMIT $2 OFFSET $3
            """,
            params.user_assigned, params.limit, params.offset
        )
        return [Ticket.model_validate(dict(row)) for row in rows]

    async def list_all_tickets(self, params: ListAllTicketsParams) -> List[Ticket]:
        rows = await self._fetch_many(
            f"""
            SELECT {TICKET_COLUMNS} FROM tickets
            WHERE ($1::varchar IS NULL OR user_assigned = $1::varchar)
              AND ($2::varchar IS NULL OR assigned_to = $2::varchar)
              AND ($3::bigint IS NULL OR category_id = $3::bigint)
            ORDER BY ticket_id
            LIMIT $4 OFFSET $5
            """,
            params.user_assigned, params.assigned_to, params.category_id,
            params.limit, params.offset
        )
        return [Ticket.model_validate(dict(row)) for row in rows]

    # Comments

    async def create_comment(self, params: CreateCommentParams) -> Comment:
        row = await self._fetch_one(
            f"""
            INSERT INTO comments (ticket_id, comment_text, user_commented)
            VALUES ($1, $2, $3)
            RETURNING {COMMENT_COLUMNS}
            """,
            params.ticket_id, params.comment_text, params.user_commented
        )
        return Comment.model_validate(dict(row))

    async def get_comment(self, comment_id: int) -> Comment:
        row = await self._fetch_one(
            f"SELECT {COMMENT_COLUMNS} FROM comments WHERE comment_id = $1 LIMIT 1",
            comment_id
        )
        return Comment.model_validate(dict(row))

    async def get_comment_for_update(self, comment_id: int) -> Comment:
        row = await self._fetch_one(
            f"SELECT {COMMENT_COLUMNS} FROM comments WHERE comment_id = $1 LIMIT 1 FOR NO KEY UPDATE",
            comment_id
        )
        return Comment.model_validate(dict(row))

    async def update_comment(self, params: UpdateCommentParams) -> Comment:
        row = await self._fetch_one(
            f"""
            UPDATE comments SET comment_text = $2
            WHERE comment_id = $1
            RETURNING {COMMENT_COLUMNS}
            """,
            params.comment_id, params.comment_text
        )
        return Comment.model_validate(dict(row))

    async def delete_comment(self, comment_id: int) -> None:
        await self._execute("DELETE FROM comments WHERE comment_id = $1", comment_id)

    async def list_comments(self, params: ListCommentsParams) -> List[Comment]:
        rows = await self._fetch_many(
            f"""
            SELECT {COMMENT_COLUMNS} FROM comments
            WHERE ticket_id = $1
            ORDER BY comment_id
            LIMIT $2 OFFSET $3
            """,
            params.ticket_id, params.limit, params.offset
        )
        return [Comment.model_validate(dict(row)) for row in rows]

    # Categories

    async def create_category(self, name: str) -> Category:
        row = await self._fetch_one(
            f"INSERT INTO categories (name) VALUES ($1) RETURNING {CATEGORY_COLUMNS}",
            name
        )
        return Category.model_validate(dict(row))

    async def get_category(self, category_id: int) -> Category:
        row = await self._fetch_one(
            f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE category_id = $1 LIMIT 1",
            category_id
        )
        return Category.model_validate(dict(row))

    async def list_categories(self, params: ListCategoriesParams) -> List[Category]:
        rows = await self._fetch_many(
            f"""
            SELECT {CATEGORY_COLUMNS} FROM categories
            ORDER BY category_id
            LIMIT $1 OFFSET $2
            """,
            params.limit, params.offset
        )
        return [Category.model_validate(dict(row)) for row in rows]

    async def delete_category(self, category_id: int) -> None:
        await self._execute("DELETE FROM categories WHERE category_id = $1", category_id)

    async def health_check(self) -> bool:
        """Check PostgreSQL health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False
