"""
Scoped read path: listings behind the query cache and single-ticket reads.
"""

from typing import List, Mapping, Optional
from dataclasses import dataclass, field

from shared.logging import get_logger
from shared.errors import NotFoundError
from ..auth.policy import AccessPolicy, RequesterHint, TicketFilters, LIST_TICKETS, READ_TICKET
from ..cache.redis_cache import QueryCache, ListPayload
from ..persistence.store import TicketStore
from .coordinator import store_errors
from .models import (
    Ticket, Comment,
    ListTicketsParams, ListAllTicketsParams, ListCommentsParams, ListCategoriesParams
)
from .pagination import normalize_tickets, normalize_categories


@dataclass(frozen=True)
class RawQuery:
    """The request's path and query exactly as received, for cache keys."""
    path: str
    query_string: str = ""
    params: Mapping[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        return self.params.get(name, "")


class TicketQueries:
    """Read operations that honor the access policy and list cache."""

    def __init__(self, store: TicketStore, cache: QueryCache, policy: AccessPolicy):
        self.store = store
        self.cache = cache
        self.policy = policy
        self.logger = get_logger("tickets.queries")

    async def list_tickets(
        self,
        hint: RequesterHint,
        filters: TicketFilters,
        page_id: Optional[int],
        page_size: Optional[int],
        raw: RawQuery
    ) -> ListPayload:
        page = normalize_tickets(page_id, page_size)
        scope = self.policy.authorize(hint, LIST_TICKETS, filters)

        if hint.is_admin:
            key = self.cache.build_key(raw.path, "admin", raw.query_string)
            params = ListAllTicketsParams(
                limit=page.limit,
                offset=page.offset,
                user_assigned=scope.user_assigned,
                assigned_to=scope.assigned_to,
                category_id=scope.category_id
            )

            async def load():
                with store_errors("tickets", "list tickets"):
                    return await self.store.list_all_tickets(params)
        else:
            key = self.cache.build_key(
                raw.path, "user", hint.requester, raw.get("page_id"), raw.get("page_size")
            )
            owned = ListTicketsParams(user_assigned=scope.user_assigned, limit=page.limit, offset=page.offset)

            async def load():
                with store_errors("tickets", "list tickets"):
                    return await self.store.list_tickets(owned)

        return await self.cache.cached_list(key, load, cache_type="tickets")

    async def get_ticket(self, hint: RequesterHint, ticket_id: int) -> Ticket:
        """Fetch one ticket; non-admins only ever learn about their own."""
        ticket: Optional[Ticket]
        try:
            with store_errors("ticket", "get ticket"):
                ticket = await self.store.get_ticket(ticket_id)
        except NotFoundError:
            if hint.is_admin:
                raise
            ticket = None

        self.policy.authorize(hint, READ_TICKET, ticket)
        return ticket

    async def list_comments(self, ticket_id: int, page_id: Optional[int], page_size: Optional[int]) -> List[Comment]:
        page = normalize_tickets(page_id, page_size)

        with store_errors("ticket", "get ticket"):
            await self.store.get_ticket(ticket_id)
        with store_errors("comments", "list comments"):
            return await self.store.list_comments(
                ListCommentsParams(ticket_id=ticket_id, limit=page.limit, offset=page.offset)
            )

    async def list_categories(self, page_id: Optional[int], page_size: Optional[int], raw: RawQuery) -> ListPayload:
        page = normalize_categories(page_id, page_size)
        key = self.cache.build_key(raw.path, raw.get("page_id"), raw.get("page_size"))

        async def load():
            with store_errors("categories", "list categories"):
                return await self.store.list_categories(
                    ListCategoriesParams(limit=page.limit, offset=page.offset)
                )

        return await self.cache.cached_list(key, load, cache_type="categories")
