"""
Shared fixtures for Ticketing service tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from jose import jwt

from service_tickets.app.domain.models import Ticket, Comment, Category, TicketStatus
from service_tickets.app.persistence.store import TicketStore

TEST_SECRET = "test-secret-key-for-ticketing"


def make_token(permissions=None, sub="admin", expires_in=timedelta(minutes=15), algorithm="HS256", secret=TEST_SECRET):
    """Mint a signed bearer token."""
    claims = {
        "sub": sub,
        "permissions": permissions if permissions is not None else [],
        "exp": int((datetime.now(timezone.utc) + expires_in).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def make_ticket(ticket_id=1, owner="alice", **overrides):
    created = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    data = {
        "ticket_id": ticket_id,
        "title": f"Ticket {ticket_id}",
        "description": "Printer is on fire",
        "status": TicketStatus.OPEN,
        "user_assigned": owner,
        "assigned_to": None,
        "category_id": 1,
        "created_at": created,
        "updated_at": created,
        "closed_at": None,
    }
    data.update(overrides)
    return Ticket(**data)


def make_comment(comment_id=1, ticket_id=1, text="Have you tried turning it off?", author="bob"):
    return Comment(
        comment_id=comment_id,
        ticket_id=ticket_id,
        comment_text=text,
        user_commented=author,
        created_at=datetime(2024, 1, 1, 13, 0, 0, tzinfo=timezone.utc),
    )


def make_category(category_id=1, name="VIP"):
    return Category(category_id=category_id, name=name)


@pytest.fixture
def mock_store():
    """Store double that fails loudly on unstubbed calls."""
    return AsyncMock(spec=TicketStore)


@pytest.fixture
def mock_redis():
    """Redis client double with an empty cache."""
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.setex = AsyncMock(return_value=True)
    client.ping = AsyncMock(return_value=True)
    return client
