"""
Write coordination for tickets, comments and categories.

Every mutation first confirms that the rows it touches exist, then issues
independent store calls. Nothing here opens a transaction: when a comment
edit succeeds but the follow-up ticket touch fails, the comment stays edited
and the ticket keeps its old ``updated_at``. The failure is logged and
reported as an ``InternalError``.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from shared.logging import get_logger
from shared.errors import AccessLayerException, NotFoundError, InternalError
from ..persistence.store import TicketStore, RecordNotFound
from ..notifications.distributor import EmailTaskDistributor, EmailPayload
from .models import (
    Ticket, Comment, Category, TicketStatus,
    CreateTicketParams, UpdateTicketParams, CreateCommentParams, UpdateCommentParams
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_to_second(value: datetime) -> datetime:
    """Round half up to the nearest whole second."""
    return (value + timedelta(microseconds=500_000)).replace(microsecond=0)


@contextmanager
def store_errors(entity: str, operation: str) -> Iterator[None]:
    """Translate store outcomes: a missing row is 404, anything else is 500."""
    try:
        yield
    except RecordNotFound as e:
        raise NotFoundError(f"{entity} not found") from e
    except AccessLayerException:
        raise
    except Exception as e:
        raise InternalError(f"{operation} failed: {e}") from e


class ConsistencyCoordinator:
    """Runs precondition checks and ordered mutations against the store."""

    def __init__(
        self,
        store: TicketStore,
        distributor: Optional[EmailTaskDistributor] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.distributor = distributor
        self.clock = clock
        self.logger = get_logger("tickets.coordinator")

    def next_updated_at(self, ticket: Ticket) -> datetime:
        """Current instant in whole seconds, always later than the stored value."""
        candidate = round_to_second(self.clock())
        previous = ticket.updated_at
        if previous is not None:
            if previous.tzinfo is None:
                previous = previous.replace(tzinfo=timezone.utc)
            if candidate <= previous:
                candidate = previous.replace(microsecond=0) + timedelta(seconds=1)
        return candidate

    # Tickets

    async def create_ticket(self, params: CreateTicketParams) -> Ticket:
        with store_errors("ticket", "create ticket"):
            ticket = await self.store.create_ticket(params)

        self.logger.info("Ticket created", ticket_id=ticket.ticket_id, user_assigned=ticket.user_assigned)

        if self.distributor is None:
            self.logger.debug("No email distributor configured, skipping notification")
            return ticket

        try:
            await self.distributor.enqueue_email_delivery(
                EmailPayload(user=params.user_assigned, content=params.description)
            )
        except AccessLayerException as e:
            self.logger.error(
                "Ticket created but notification was not enqueued",
                ticket_id=ticket.ticket_id,
                error=e.message
            )
            raise InternalError(e.message) from e

        return ticket

    async def update_ticket(
        self,
        ticket_id: int,
        status: TicketStatus,
        assigned_to: Optional[str] = None
    ) -> Ticket:
        """Assign a ticket or change its status."""
        with store_errors("ticket", "get ticket"):
            ticket = await self.store.get_ticket_for_update(ticket_id)

        params = UpdateTicketParams(
            ticket_id=ticket_id,
            updated_at=self.next_updated_at(ticket),
            status=status,
            assigned_to=assigned_to or None
        )
        with store_errors("ticket", "update ticket"):
            updated = await self.store.update_ticket(params)

        self.logger.info("Ticket updated", ticket_id=ticket_id, status=status.value)
        return updated

    async def delete_ticket(self, ticket_id: int) -> None:
        """Delete a ticket; its comments go with it at the store level."""
        with store_errors("ticket", "get ticket"):
            await self.store.get_ticket(ticket_id)
        with store_errors("ticket", "delete ticket"):
            await self.store.delete_ticket(ticket_id)

        self.logger.info("Ticket deleted", ticket_id=ticket_id)

    # Comments

    async def create_comment(self, ticket_id: int, comment_text: str, user_commented: str) -> Comment:
        with store_errors("ticket", "get ticket"):
            await self.store.get_ticket(ticket_id)
        with store_errors("comment", "create comment"):
            comment = await self.store.create_comment(
                CreateCommentParams(
                    ticket_id=ticket_id,
                    comment_text=comment_text,
                    user_commented=user_commented
                )
            )

        self.logger.info("Comment created", ticket_id=ticket_id, comment_id=comment.comment_id)
        return comment

    async def update_comment(self, ticket_id: int, comment_id: int, comment_text: str) -> Comment:
        """Edit a comment and refresh its ticket's ``updated_at``.

        Order: ticket exists, comment exists under that ticket, comment text
        updated, ticket touched. The last two are separate store calls.
        """
        with store_errors("ticket", "get ticket"):
            ticket = await self.store.get_ticket_for_update(ticket_id)

        await self._get_child_comment(ticket_id, comment_id)

        with store_errors("comment", "update comment"):
            comment = await self.store.update_comment(
                UpdateCommentParams(comment_id=comment_id, comment_text=comment_text)
            )

        touch = UpdateTicketParams(ticket_id=ticket_id, updated_at=self.next_updated_at(ticket))
        try:
            with store_errors("ticket", "touch ticket"):
                await self.store.update_ticket(touch)
        except AccessLayerException as e:
            self.logger.warning(
                "Comment updated but ticket timestamp was not refreshed",
                ticket_id=ticket_id,
                comment_id=comment_id,
                error=e.message
            )
            raise

        self.logger.info("Comment updated", ticket_id=ticket_id, comment_id=comment_id)
        return comment

    async def delete_comment(self, ticket_id: int, comment_id: int) -> None:
        await self._get_child_comment(ticket_id, comment_id)
        with store_errors("comment", "delete comment"):
            await self.store.delete_comment(comment_id)

        self.logger.info("Comment deleted", ticket_id=ticket_id, comment_id=comment_id)

    async def _get_child_comment(self, ticket_id: int, comment_id: int) -> Comment:
        with store_errors("comment", "get comment"):
            comment = await self.store.get_comment_for_update(comment_id)
        if comment.ticket_id != ticket_id:
            raise NotFoundError("comment not found")
        return comment

    # Categories

    async def create_category(self, name: str) -> Category:
        with store_errors("category", "create category"):
            category = await self.store.create_category(name)

        self.logger.info("Category created", category_id=category.category_id)
        return category
