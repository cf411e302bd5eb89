"""
Store interface for the Ticketing service.

Every method is a single CRUD call. A missing row is reported by raising
``RecordNotFound``; any other exception is a store failure.
"""

from abc import ABC, abstractmethod
from typing import List

from ..domain.models import (
    Ticket, Comment, Category,
    CreateTicketParams, UpdateTicketParams, ListTicketsParams, ListAllTicketsParams,
    CreateCommentParams, UpdateCommentParams, ListCommentsParams, ListCategoriesParams
)


class RecordNotFound(LookupError):
    """No row matched the requested identity."""


class TicketStore(ABC):
    """Persistent store for tickets, comments and categories."""

    # Tickets

    @abstractmethod
    async def create_ticket(self, params: CreateTicketParams) -> Ticket: ...

    @abstractmethod
    async def get_ticket(self, ticket_id: int) -> Ticket: ...

    @abstractmethod
    async def get_ticket_for_update(self, ticket_id: int) -> Ticket: ...

    @abstractmethod
    async def update_ticket(self, params: UpdateTicketParams) -> Ticket: ...

    @abstractmethod
    async def delete_ticket(self, ticket_id: int) -> None: ...

    @abstractmethod
    async def list_tickets(self, params: ListTicketsParams) -> List[Ticket]: ...

    @abstractmethod
    async def list_all_tickets(self, params: ListAllTicketsParams) -> List[Ticket]: ...

    # Comments

    @abstractmethod
    async def create_comment(self, params: CreateCommentParams) -> Comment: ...

    @abstractmethod
    async def get_comment(self, comment_id: int) -> Comment: ...

    @abstractmethod
    async def get_comment_for_update(self, comment_id: int) -> Comment: ...

    @abstractmethod
    async def update_comment(self, params: UpdateCommentParams) -> Comment: ...

    @abstractmethod
    async def delete_comment(self, comment_id: int) -> None: ...

    @abstractmethod
    async def list_comments(self, params: ListCommentsParams) -> List[Comment]: ...

    # Categories

    @abstractmethod
    async def create_category(self, name: str) -> Category: ...

    @abstractmethod
    async def get_category(self, category_id: int) -> Category: ...

    @abstractmethod
    async def list_categories(self, params: ListCategoriesParams) -> List[Category]: ...

    @abstractmethod
    async def delete_category(self, category_id: int) -> None: ...
