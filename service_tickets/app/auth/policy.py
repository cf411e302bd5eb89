"""
Access policy for the Ticketing service.

Two authorization strategies coexist and are kept apart because they carry
different trust levels:

- ``PermissionPolicy`` trusts a verified bearer identity and requires an exact
  permission string (e.g. ``tickets.PUT``) for the action.
- ``OwnershipPolicy`` trusts client-declared ``is_admin``/``requester`` hints.
  Admins see every ticket narrowed by at most one filter; everyone else is
  confined to the tickets they own.

``AccessPolicy.authorize`` picks the strategy from the kind of principal it is
given and never falls back from one to the other.
"""

from typing import Optional, Union
from dataclasses import dataclass
from enum import Enum

from shared.logging import get_logger
from shared.errors import AuthorizationError
from .token_verifier import Identity
from ..domain.models import Ticket
from ..domain.pagination import active_filter

# Permission tokens carried in bearer credentials
TICKETS_PUT = "tickets.PUT"
CATEGORIES_POST = "categories.POST"

# Ownership-mode actions
LIST_TICKETS = "tickets.list"
READ_TICKET = "tickets.read"

ADMIN_ONLY_MESSAGE = "only admins may perform this action"
NOT_OWNER_MESSAGE = "user doesn't own that ticket"


class AuthMode(str, Enum):
    """Which strategy decided a request."""
    PERMISSION = "permission"
    OWNERSHIP = "ownership"


@dataclass(frozen=True)
class RequesterHint:
    """Unsigned caller declaration taken from query parameters."""
    is_admin: bool
    requester: str


@dataclass(frozen=True)
class TicketFilters:
    """Listing filters as supplied by the caller."""
    user_assigned: Optional[str] = None
    assigned_to: Optional[str] = None
    category_id: Optional[int] = None


@dataclass(frozen=True)
class AllowedScope:
    """Records a request may touch.

    ``unrestricted`` with no filter set means every ticket. A non-admin scope
    always pins ``user_assigned`` to the requester.
    """
    mode: AuthMode
    unrestricted: bool = False
    user_assigned: Optional[str] = None
    assigned_to: Optional[str] = None
    category_id: Optional[int] = None


Principal = Union[Identity, RequesterHint]


class PermissionPolicy:
    """Exact permission-string check against a verified identity."""

    mode = AuthMode.PERMISSION

    def __init__(self):
        self.logger = get_logger("tickets.policy.permission")

    def authorize(self, identity: Identity, action: str) -> AllowedScope:
        if not identity.has_permission(action):
            self.logger.warning("Permission denied", sub=identity.subject, action=action)
            raise AuthorizationError(ADMIN_ONLY_MESSAGE, details={"action": action})
        return AllowedScope(mode=self.mode, unrestricted=True)


class OwnershipPolicy:
    """Scope decisions driven by declared ``is_admin``/``requester`` hints."""

    mode = AuthMode.OWNERSHIP

    def __init__(self):
        self.logger = get_logger("tickets.policy.ownership")

    def list_scope(self, hint: RequesterHint, filters: Optional[TicketFilters] = None) -> AllowedScope:
        """Narrow a ticket listing to what the requester may see."""
        if not hint.is_admin:
            # Caller-supplied filters are ignored for non-admins
            return AllowedScope(mode=self.mode, user_assigned=hint.requester)

        filters = filters or TicketFilters()
        selected = active_filter(filters.user_assigned, filters.assigned_to, filters.category_id)
        return AllowedScope(
            mode=self.mode,
            unrestricted=True,
            user_assigned=selected.user_assigned,
            assigned_to=selected.assigned_to,
            category_id=selected.category_id
        )

    def check_read(self, hint: RequesterHint, ticket: Optional[Ticket]) -> AllowedScope:
        """Allow a single-ticket read.

        A non-admin is denied both for a foreign ticket and for a missing one.
        """
        if hint.is_admin:
            return AllowedScope(mode=self.mode, unrestricted=True)

        if ticket is None or ticket.user_assigned != hint.requester:
            self.logger.warning(
                "Ownership check failed",
                requester=hint.requester,
                ticket_id=ticket.ticket_id if ticket else None
            )
            raise AuthorizationError(NOT_OWNER_MESSAGE)

        return AllowedScope(mode=self.mode, user_assigned=hint.requester)


class AccessPolicy:
    """Dispatches to the strategy matching the principal."""

    def __init__(
        self,
        permission: Optional[PermissionPolicy] = None,
        ownership: Optional[OwnershipPolicy] = None
    ):
        self.permission = permission or PermissionPolicy()
        self.ownership = ownership or OwnershipPolicy()

    @staticmethod
    def mode_for(principal: Principal) -> AuthMode:
        if isinstance(principal, Identity):
            return AuthMode.PERMISSION
        if isinstance(principal, RequesterHint):
            return AuthMode.OWNERSHIP
        raise TypeError(f"Unsupported principal: {type(principal).__name__}")

    def authorize(
        self,
        principal: Principal,
        action: str,
        resource_scope: Union[TicketFilters, Ticket, None] = None
    ) -> AllowedScope:
        """Return the allowed scope or raise ``AuthorizationError``."""
        mode = self.mode_for(principal)

        if mode is AuthMode.PERMISSION:
            return self.permission.authorize(principal, action)

        if action == LIST_TICKETS:
            if resource_scope is not None and not isinstance(resource_scope, TicketFilters):
                raise TypeError("ticket listings are scoped by TicketFilters")
            return self.ownership.list_scope(principal, resource_scope)

        if action == READ_TICKET:
            if resource_scope is not None and not isinstance(resource_scope, Ticket):
                raise TypeError("ticket reads are scoped by the fetched Ticket")
            return self.ownership.check_read(principal, resource_scope)

        raise ValueError(f"Unknown ownership-mode action: {action}")
