"""
Authentication middleware for the Ticketing service.
"""

from typing import Optional

from fastapi import Request

from shared.logging import get_logger, set_subject
from shared.errors import ValidationError
from .token_verifier import TokenVerifier, Identity
from .policy import AccessPolicy, AllowedScope, RequesterHint

AUTHORIZATION_HEADER_KEY = "authorization"


class AuthMiddleware:
    """Binds the credential verifier and access policy to incoming requests."""

    def __init__(self, verifier: TokenVerifier, policy: AccessPolicy):
        self.verifier = verifier
        self.policy = policy
        self.logger = get_logger("tickets.auth_middleware")

    def authenticate_request(self, request: Request) -> Identity:
        """Verify the bearer credential and attach the identity to the request."""
        identity = self.verifier.verify(request.headers.get(AUTHORIZATION_HEADER_KEY))

        request.state.identity = identity
        set_subject(identity.subject)

        self.logger.info("Request authenticated", sub=identity.subject)
        return identity

    def require_permission(self, request: Request, action: str) -> AllowedScope:
        """Authenticate, then require ``action`` in the identity's permissions."""
        identity = self.authenticate_request(request)
        return self.policy.authorize(identity, action)

    @staticmethod
    def requester_hint(is_admin: Optional[bool], requester: Optional[str]) -> RequesterHint:
        """Build the unsigned ownership hint; both values are mandatory."""
        if is_admin is None:
            raise ValidationError("is_admin is required")
        if not requester:
            raise ValidationError("requester is required")
        return RequesterHint(is_admin=is_admin, requester=requester)
