"""
Ticketing service: tickets, comments and categories over HTTP.
"""

from typing import Dict, List, Optional

from fastapi import Depends, Path, Query, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AccessLayerException

from .auth.token_verifier import TokenVerifier, Identity
from .auth.policy import AccessPolicy, TicketFilters, TICKETS_PUT, CATEGORIES_POST
from .auth.middleware import AuthMiddleware
from .cache.redis_cache import QueryCache, ListPayload
from .domain.coordinator import ConsistencyCoordinator
from .domain.queries import TicketQueries, RawQuery
from .domain.models import (
    Ticket, Comment, Category,
    TicketCreateRequest, TicketUpdateRequest,
    CommentCreateRequest, CommentUpdateRequest, CategoryCreateRequest,
    CreateTicketParams
)
from .notifications.distributor import EmailTaskDistributor
from .persistence.store import TicketStore
from .persistence.postgres import PostgresTicketStore

SERVICE_NAME = "tickets"
SERVICE_PORT = 8080


def _list_response(payload: ListPayload) -> Response:
    return Response(
        content=payload.body,
        media_type="application/json",
        headers={"X-Cache": "HIT" if payload.cache_hit else "MISS"}
    )


def _raw_query(request: Request) -> RawQuery:
    return RawQuery(
        path=request.url.path,
        query_string=request.url.query,
        params=dict(request.query_params)
    )


class TicketsService(BaseService):
    """Ticketing service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[TicketStore] = None,
        cache: Optional[QueryCache] = None,
        distributor: Optional[EmailTaskDistributor] = None,
        verifier: Optional[TokenVerifier] = None
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.store = store or PostgresTicketStore(self.config.postgres_dsn)
        self.cache = cache or QueryCache(
            self.config.redis_url,
            self.config.list_cache_ttl_seconds,
            metrics=self.metrics
        )
        self.distributor = distributor or EmailTaskDistributor(
            self.config.redis_url,
            queue=self.config.email_queue
        )
        self.verifier = verifier or TokenVerifier(self.config.token_secret)

        self.policy = AccessPolicy()
        self.auth = AuthMiddleware(self.verifier, self.policy)
        self.coordinator = ConsistencyCoordinator(self.store, self.distributor)
        self.queries = TicketQueries(self.store, self.cache, self.policy)

        @self.app.on_event("startup")
        async def _startup():
            await self.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stop()

        self._setup_ticket_routes()
        self._setup_comment_routes()
        self._setup_category_routes()

    # Dependencies

    async def _authenticated(self, request: Request) -> Identity:
        return self.auth.authenticate_request(request)

    def _requires(self, action: str):
        async def dependency(request: Request) -> None:
            self.auth.require_permission(request, action)
        return dependency

    def _setup_ticket_routes(self):
        """Set up ticket routes."""

        @self.app.post("/tickets", response_model=Ticket)
        async def create_ticket(body: TicketCreateRequest):
            """Create a support ticket and notify its owner."""
            return await self.coordinator.create_ticket(
                CreateTicketParams(
                    title=body.title,
                    description=body.description,
                    status=body.status,
                    user_assigned=body.user_assigned,
                    category_id=body.category_id
                )
            )

        @self.app.get("/tickets", dependencies=[Depends(self._authenticated)])
        async def list_tickets(
            request: Request,
            page_id: Optional[int] = Query(None),
            page_size: Optional[int] = Query(None),
            is_admin: Optional[bool] = Query(None),
            requester: Optional[str] = Query(None),
            user_assigned: Optional[str] = Query(None),
            assigned_to: Optional[str] = Query(None),
            category_id: Optional[int] = Query(None)
        ):
            """List tickets.

            Admins see every ticket and may filter by owner, assignee or
            category (first one supplied wins). Everyone else only sees the
            tickets they own.
            """
            hint = self.auth.requester_hint(is_admin, requester)
            payload = await self.queries.list_tickets(
                hint,
                TicketFilters(user_assigned=user_assigned, assigned_to=assigned_to, category_id=category_id),
                page_id,
                page_size,
                _raw_query(request)
            )
            return _list_response(payload)

        @self.app.get("/tickets/{ticket_id}", response_model=Ticket)
        async def get_ticket(
            ticket_id: int = Path(..., ge=1),
            is_admin: Optional[bool] = Query(None),
            requester: Optional[str] = Query(None)
        ):
            """Admins get any ticket, other users only a ticket they own."""
            hint = self.auth.requester_hint(is_admin, requester)
            return await self.queries.get_ticket(hint, ticket_id)

        @self.app.put(
            "/tickets/{ticket_id}",
            response_model=Ticket,
            dependencies=[Depends(self._requires(TICKETS_PUT))]
        )
        async def update_ticket(body: TicketUpdateRequest, ticket_id: int = Path(..., ge=1)):
            """Assign a ticket or update its status."""
            return await self.coordinator.update_ticket(ticket_id, body.status, body.assigned_to)

        @self.app.delete("/tickets/{ticket_id}", status_code=204)
        async def delete_ticket(ticket_id: int = Path(..., ge=1)):
            """Delete a ticket with its comments."""
            await self.coordinator.delete_ticket(ticket_id)
            return Response(status_code=204)

    def _setup_comment_routes(self):
        """Set up comment routes."""

        @self.app.post("/tickets/{ticket_id}/comments", response_model=Comment)
        async def create_comment(body: CommentCreateRequest, ticket_id: int = Path(..., ge=1)):
            """Add a comment to a ticket."""
            return await self.coordinator.create_comment(ticket_id, body.comment_text, body.user_commented)

        @self.app.get("/tickets/{ticket_id}/comments", response_model=List[Comment])
        async def list_comments(
            ticket_id: int = Path(..., ge=1),
            page_id: Optional[int] = Query(None),
            page_size: Optional[int] = Query(None)
        ):
            """List the comments of a ticket."""
            return await self.queries.list_comments(ticket_id, page_id, page_size)

        @self.app.put("/tickets/{ticket_id}/comments/{comment_id}", response_model=Comment)
        async def update_comment(
            body: CommentUpdateRequest,
            ticket_id: int = Path(..., ge=1),
            comment_id: int = Path(..., ge=1)
        ):
            """Edit a comment; the ticket's updated_at moves with it."""
            return await self.coordinator.update_comment(ticket_id, comment_id, body.comment_text)

        @self.app.delete("/tickets/{ticket_id}/comments/{comment_id}")
        async def delete_comment(ticket_id: int = Path(..., ge=1), comment_id: int = Path(..., ge=1)):
            """Delete a comment from a ticket."""
            await self.coordinator.delete_comment(ticket_id, comment_id)
            return True

    def _setup_category_routes(self):
        """Set up category routes."""

        @self.app.get("/categories")
        async def list_categories(
            request: Request,
            page_id: Optional[int] = Query(None),
            page_size: Optional[int] = Query(None)
        ):
            """List categories, served from the list cache when possible."""
            payload = await self.queries.list_categories(page_id, page_size, _raw_query(request))
            return _list_response(payload)

        @self.app.post(
            "/categories",
            response_model=Category,
            dependencies=[Depends(self._requires(CATEGORIES_POST))]
        )
        async def create_category(body: CategoryCreateRequest):
            """Create a new category."""
            return await self.coordinator.create_category(body.name)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check ticketing service dependencies."""
        dependencies = {}

        dependencies["redis"] = "ok" if await self.cache.health_check() else "error"

        health_check = getattr(self.store, "health_check", None)
        if health_check is not None:
            dependencies["postgres"] = "ok" if await health_check() else "error"

        return dependencies

    async def start(self):
        """Start ticketing service components."""
        if isinstance(self.store, PostgresTicketStore):
            await self.store.start()

        # Listings still work from the store without Redis
        try:
            await self.cache.start()
        except AccessLayerException as e:
            self.logger.warning("List cache unavailable at startup", error=e.message)

        try:
            await self.distributor.start()
        except AccessLayerException as e:
            self.logger.warning("Email task queue unavailable at startup", error=e.message)

        self.logger.info("Ticketing service started")

    async def stop(self):
        """Stop ticketing service components."""
        if isinstance(self.store, PostgresTicketStore):
            await self.store.stop()
        await self.cache.stop()
        await self.distributor.stop()

        self.logger.info("Ticketing service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create ticketing service application."""
    service = TicketsService(config)
    return service.app


if __name__ == "__main__":
    service = TicketsService()
    service.run()
